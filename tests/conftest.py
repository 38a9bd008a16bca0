import collections
import numpy as np
import pytest


def lxb_header(begin_text, end_text, begin_data, end_data,
               begin_analysis=0, end_analysis=0):
    offsets = (begin_text, end_text, begin_data, end_data,
               begin_analysis, end_analysis)
    return b"FCS3.0    " + b"".join(b"%8i" % off for off in offsets)


def lxb_text(key_words, delim="/"):
    text = delim + "".join(key + delim + value + delim
                           for key, value in key_words.items())
    return text.encode("latin-1")


def build_lxb(key_words, values=(), delim="/", data_offsets=None):
    '''
    Assemble an LXB file: header, TEXT then DATA.  `data_offsets`
    overrides the (begin_data, end_data) written to the header.
    '''

    text = lxb_text(key_words, delim=delim)
    data = np.asarray(values, dtype="<u4").tobytes()

    begin_text = 58
    end_text = begin_text + len(text)
    begin_data = end_text
    end_data = begin_data + len(data)
    if data_offsets is not None:
        begin_data, end_data = data_offsets

    return lxb_header(begin_text, end_text, begin_data, end_data) + \
        text + data


def lxb_key_words(npar=2, ntot=3, ranges=None, **extra):
    '''
    TEXT keywords of a supported LXB file with `npar` 32 bit
    parameters, ranges default to 2**32 (all bits kept)
    '''

    if ranges is None:
        ranges = [2 ** 32] * npar

    key_words = collections.OrderedDict()
    key_words["$BYTEORD"] = "1,2,3,4"
    key_words["$DATATYPE"] = "I"
    key_words["$MODE"] = "L"
    key_words["$PAR"] = str(npar)
    key_words["$TOT"] = str(ntot)
    for i in range(npar):
        key_words["$P%iB" % (i + 1)] = "32"
        key_words["$P%iN" % (i + 1)] = "CH%i" % (i + 1)
        key_words["$P%iR" % (i + 1)] = str(ranges[i])
    for key, value in extra.items():
        key_words[key] = value

    return key_words


@pytest.fixture
def simple_lxb():
    '''
    2 parameters x 3 events holding 1..6
    '''

    return build_lxb(lxb_key_words(npar=2, ntot=3), values=[1, 2, 3, 4, 5, 6])


@pytest.fixture
def lxb_path(tmp_path, simple_lxb):
    path = tmp_path / "well_A1.lxb"
    path.write_bytes(simple_lxb)
    return str(path)
