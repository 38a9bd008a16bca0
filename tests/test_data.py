import numpy as np
import pytest

from FlowLXB import LXBIO
from FlowLXB.LXBErrors import (MissingDataSegment, TruncatedData,
                               DataSegmentError, UnsupportedBitWidth,
                               UnsupportedDataType, UnicodeUnsupported)
from conftest import build_lxb, lxb_key_words


def _decode(buf, npar, ntot, masks=None):
    if masks is None:
        masks = np.full(npar, 0xFFFFFFFF, dtype=np.uint32)
    return LXBIO.decode_data(buf, LXBIO.parse_header(buf), npar, ntot, masks)


def test_parameter_varies_fastest(simple_lxb):
    data = _decode(simple_lxb, 2, 3)

    assert data.shape == (2, 3)
    assert data.dtype == np.uint32
    assert data.tolist() == [[1, 3, 5], [2, 4, 6]]


def test_masks_applied_per_parameter():
    buf = build_lxb(lxb_key_words(), values=[0x1FFF, 0x1FFF, 4097, 300])
    masks = np.array([1023, 255], dtype=np.uint32)
    data = _decode(buf, 2, 2, masks=masks)

    assert data.tolist() == [[1023, 1], [255, 44]]


def test_zero_mask_zeroes_parameter():
    buf = build_lxb(lxb_key_words(), values=[7, 8, 9, 10])
    masks = np.array([0, 0xFFFFFFFF], dtype=np.uint32)
    data = _decode(buf, 2, 2, masks=masks)

    assert data.tolist() == [[0, 0], [8, 10]]


def test_values_are_unsigned():
    buf = build_lxb(lxb_key_words(npar=1), values=[0xFFFFFFFF, 0x80000000])
    data = _decode(buf, 1, 2)

    assert data.tolist() == [[4294967295, 2147483648]]


def test_data_copied_out_of_buffer():
    buf = bytearray(build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6]))
    data = _decode(buf, 2, 3)
    buf[-4:] = b"\x00\x00\x00\x00"

    assert data[1, 2] == 6


def test_end_data_beyond_file():
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6])
    header_end = len(buf) + 100
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6],
                    data_offsets=(len(buf) - 24, header_end))

    with pytest.raises(MissingDataSegment):
        _decode(buf, 2, 3)


@pytest.mark.parametrize("offsets", [(0, 0), (0, 24), (100, 100),
                                     (100, 90)])
def test_data_segment_not_located(offsets):
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6],
                    data_offsets=offsets)
    with pytest.raises(MissingDataSegment):
        _decode(buf, 2, 3)


def test_declared_events_overrun_segment():
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6])
    with pytest.raises(TruncatedData) as err:
        _decode(buf, 2, 4)

    assert err.value.expected == 32
    assert err.value.value == 24


def test_read_bounded_by_end_data():
    # data followed by trailing bytes the decoder must not read
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6, 7, 8])
    begin = len(buf) - 32
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6, 7, 8],
                    data_offsets=(begin, begin + 24))

    with pytest.raises(TruncatedData):
        _decode(buf, 2, 4)
    assert _decode(buf, 2, 3).tolist() == [[1, 3, 5], [2, 4, 6]]


def test_byte_after_end_data_not_read():
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6])
    begin = len(buf) - 24
    buf = build_lxb(lxb_key_words(), values=[1, 2, 3, 4, 5, 6],
                    data_offsets=(begin, begin + 23))

    with pytest.raises(TruncatedData) as err:
        _decode(buf, 2, 3)

    assert err.value.value == 23
    assert _decode(buf, 2, 2).tolist() == [[1, 3], [2, 4]]


def test_missing_event_count(simple_lxb):
    with pytest.raises(MissingDataSegment) as err:
        _decode(simple_lxb, 2, None)

    assert err.value.key == "$TOT"


def test_no_events(simple_lxb):
    data = _decode(simple_lxb, 2, 0)
    assert data.shape == (2, 0)


def test_lxb_object(simple_lxb):
    lxb = LXBIO.LXB(simple_lxb)

    assert lxb.filename is None
    assert lxb.error is None
    assert lxb.warnings == []
    assert lxb.n_parameters == 2
    assert lxb.n_events == 3
    assert lxb.labels == ["CH1", "CH2"]
    assert lxb.data.tolist() == [[1, 3, 5], [2, 4, 6]]
    assert list(lxb.masks) == [0xFFFFFFFF, 0xFFFFFFFF]
    assert list(lxb.items())[0] == ("$BYTEORD", "1,2,3,4")


def test_lxb_applies_range_masks():
    key_words = lxb_key_words(npar=2, ntot=2, ranges=[1024, 0])
    lxb = LXBIO.LXB(build_lxb(key_words, values=[1025, 5, 1023, 6]))

    assert list(lxb.masks) == [1023, 0]
    assert lxb.data.tolist() == [[1, 1023], [0, 0]]


def test_unsupported_format_keeps_text():
    key_words = lxb_key_words(npar=2, ranges=[1024, 16], **{"$P2B": "16"})
    lxb = LXBIO.LXB(build_lxb(key_words, values=[1, 2, 3, 4, 5, 6]))

    assert lxb.data is None
    assert isinstance(lxb.error, UnsupportedBitWidth)
    assert list(lxb.masks) == [1023, 15]
    assert lxb.key_words["$P2B"] == "16"


def test_unsupported_data_type_keeps_text():
    key_words = lxb_key_words(**{"$DATATYPE": "F"})
    lxb = LXBIO.LXB(build_lxb(key_words, values=[1, 2, 3, 4, 5, 6]))

    assert lxb.data is None
    assert isinstance(lxb.error, UnsupportedDataType)
    assert lxb.key_words["$DATATYPE"] == "F"


def test_bad_data_segment_keeps_text():
    buf = build_lxb(lxb_key_words(ntot=10), values=[1, 2, 3, 4, 5, 6])
    lxb = LXBIO.LXB(buf)

    assert lxb.data is None
    assert isinstance(lxb.error, DataSegmentError)
    assert lxb.n_events == 10


def test_unicode_warning_recorded():
    key_words = lxb_key_words(**{"$UNICODE": "UTF-8"})
    lxb = LXBIO.LXB(build_lxb(key_words, values=[1, 2, 3, 4, 5, 6]))

    assert lxb.data.tolist() == [[1, 3, 5], [2, 4, 6]]
    assert isinstance(lxb.warnings[0], UnicodeUnsupported)


def test_lxb_rejects_other_inputs():
    with pytest.raises(TypeError):
        LXBIO.LXB(12)


def test_parse_segments(simple_lxb):
    lxb = LXBIO.parse_segments(simple_lxb)
    assert lxb.data.tolist() == [[1, 3, 5], [2, 4, 6]]
