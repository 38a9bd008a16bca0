###########################################################
# LXB IO classes and functions
###########################################################
'''
Have an object/data structure to represent an LXB file.

LXB files are FCS3.0 files written by Luminex instruments.  Each
.lxb file is a single well, a plate is a collection of .lxb files.

LXB file segments::
  * header - 58 bytes, version plus three pairs of offsets
  * text - delimiter separated keyword: value pairs
  * data - little endian 32 bit unsigned integers, one per
    parameter per event
  * analysis - ignored

Only integer, list mode, little endian data with 32 bits per
parameter is decoded.  Files that fail these checks still have
their TEXT keywords returned.
'''
import collections
import os
import re
import numpy as np
import cgatcore.experiment as E

from FlowLXB.LXBErrors import (SourceUnavailable, TruncatedHeader,
                               BadMagic, MalformedOffsets,
                               MissingTextSegment, UnsupportedFormat,
                               TooManyParameters, UnsupportedDataType,
                               UnsupportedMode, UnsupportedByteOrder,
                               UnsupportedBitWidth, DataSegmentError,
                               MissingDataSegment, TruncatedData,
                               UnicodeUnsupported)

# max number of parameters in an LXB file that we handle
MAX_PAR = 99

HEADER_SIZE = 58
MAGIC = b"FCS3.0    "

# one byte per character, never fails to decode
TEXT_ENCODING = "latin-1"

# right-justified decimal, optionally signed
OFFSET_FIELD = re.compile(r" *[+-]?[0-9]+ *\Z")

LXBHeader = collections.namedtuple("LXBHeader",
                                   ["begin_text", "end_text",
                                    "begin_data", "end_data",
                                    "begin_analysis", "end_analysis"])

ParameterFormat = collections.namedtuple("ParameterFormat",
                                         ["npar", "masks", "warnings"])


def read_file(filename):
    '''
    Read the entire contents of a file into memory

    Arguments
    ---------
    filename: str
      path to an .lxb file

    Returns
    -------
    buf: bytes
      the file contents

    Raises
    ------
    SourceUnavailable
      if the file is missing, cannot be read or is empty
    '''

    try:
        with open(filename, "rb") as ofile:
            buf = ofile.read()
    except IOError as err:
        raise SourceUnavailable("could not read file %s: %s" % (filename,
                                                               err),
                                filename=filename)

    if not len(buf):
        raise SourceUnavailable("file %s is empty" % filename,
                                filename=filename)

    return buf


def parameter_key(n, kind):
    '''
    TEXT keyword for parameter index `n` (0-based),
    e.g. parameter_key(0, "R") == "$P1R".  Returns an
    empty string for indices outside [0, MAX_PAR).
    '''

    if n < 0 or n >= MAX_PAR:
        return ""

    return "$P%i%s" % (n + 1, kind)


def get_int(key_words, key):
    '''
    Integer value of a TEXT keyword, None if the keyword is
    missing or does not parse as an integer
    '''

    try:
        return int(key_words.get(key, "").strip())
    except ValueError:
        return None


def parse_header(buf):
    '''
    Parse the fixed 58 byte HEADER segment

    bytes 0-9 are the version, "FCS3.0" padded with spaces,
    then six right-justified 8 byte integers:

      bytes 10-17 offset to the start of TEXT segment
      bytes 18-25 offset to the end of the TEXT segment
      bytes 26-33 offset to the start of the DATA segment
      bytes 34-41 offset to the end of the DATA segment
      bytes 42-49 offset to the start of the ANALYSIS segment
      bytes 50-57 offset to the end of the ANALYSIS segment

    Arguments
    ---------
    buf: bytes
      the whole file

    Returns
    -------
    header: LXBHeader
      the six segment offsets.  These are not checked against
      the file size here
    '''

    if len(buf) < HEADER_SIZE:
        raise TruncatedHeader("header data is too small (%i bytes)" %
                              len(buf),
                              value=len(buf), expected=HEADER_SIZE)

    version = bytes(buf[:10])
    if version != MAGIC:
        raise BadMagic("magic bytes do not match (%r)" % version,
                       key="version", value=version, expected=MAGIC)

    offsets = []
    for field, start in zip(LXBHeader._fields, range(10, HEADER_SIZE, 8)):
        raw = bytes(buf[start:start + 8]).decode(TEXT_ENCODING)
        if not OFFSET_FIELD.match(raw):
            raise MalformedOffsets("failed to parse segment offset %s "
                                   "(%r)" % (field, raw),
                                   key=field, value=raw,
                                   expected="8 digit integer")
        offsets.append(int(raw))

    return LXBHeader._make(offsets)


def get_text_segment(buf, header):
    '''
    Slice the TEXT segment [begin_text, end_text) out of
    the file, checking it lies inside the buffer
    '''

    txt_size = header.end_text - header.begin_text
    if not (txt_size > 0 and header.begin_text > 0 and
            header.end_text <= len(buf)):
        raise MissingTextSegment("could not locate TEXT segment "
                                 "(%i-%i, file size %i)" %
                                 (header.begin_text, header.end_text,
                                  len(buf)),
                                 key="TEXT",
                                 value=(header.begin_text, header.end_text),
                                 expected=(1, len(buf)))

    return memoryview(buf)[header.begin_text:header.end_text]


def parse_text(segment):
    '''
    Split the TEXT segment into keyword: value pairs

    The first byte is the delimiter.  The remaining bytes are
    split on it into keyword, value, keyword, value...  An
    unpaired trailing keyword is dropped.

    FCS3.0 allows the delimiter inside keywords and values by
    repeating it twice; this is NOT handled.  With delimiter '/',
    "k//ey/value/" gives {"k": "", "ey": "value"}, not
    {"k/ey": "value"}.

    Arguments
    ---------
    segment: bytes
      the TEXT segment, delimiter first

    Returns
    -------
    key_words: collections.OrderedDict
      keywords in file order, verbatim including any leading '$'
    '''

    if len(segment) < 2:
        raise MissingTextSegment("TEXT segment is too small (%i bytes)" %
                                 len(segment),
                                 key="TEXT", value=len(segment), expected=2)

    text = bytes(segment).decode(TEXT_ENCODING)
    delim = text[0]

    tokens = text[1:].split(delim)
    kwords, vals = tokens[0::2], tokens[1::2]

    key_words = collections.OrderedDict()
    for kword, val in zip(kwords, vals):
        key_words[kword] = val

    return key_words


def parameter_masks(key_words, npar):
    '''
    Derive a bit mask per parameter from its range, $PnR - 1.
    A missing, unparseable or non-positive range gives a mask of
    0, which zeroes every value of that parameter.

    Arguments
    ---------
    key_words: dict
      TEXT keywords

    npar: int
      number of parameters, at most MAX_PAR

    Returns
    -------
    masks: numpy.ndarray
      uint32 array of length `npar`
    '''

    masks = np.zeros(npar, dtype=np.uint32)
    for i in range(npar):
        par_range = get_int(key_words, parameter_key(i, "R"))
        if par_range is not None and par_range > 0:
            masks[i] = (par_range - 1) & 0xFFFFFFFF

    return masks


def check_par_format(key_words):
    '''
    Check the TEXT keywords describe data this module can decode
    and derive the parameter masks.

    Checks, in order: $PAR <= MAX_PAR, $DATATYPE is I, $MODE is L,
    $BYTEORD is 1,2,3,4, then every $PnB is 32.  A non-empty
    $UNICODE only produces a warning.

    Arguments
    ---------
    key_words: dict
      TEXT keywords

    Returns
    -------
    fmt: ParameterFormat
      parameter count, masks and any UnicodeUnsupported warnings

    Raises
    ------
    UnsupportedFormat
      subclass naming the first failed check.  The masks are
      attached as `masks` when $PAR was usable
    '''

    npar = get_int(key_words, "$PAR")
    if npar is None or npar < 0:
        raise TooManyParameters("$PAR is missing or invalid ($PAR=%s)" %
                                key_words.get("$PAR"),
                                key="$PAR", value=key_words.get("$PAR"),
                                expected="<= %i" % MAX_PAR)
    elif npar > MAX_PAR:
        raise TooManyParameters("too many parameters ($PAR=%i)" % npar,
                                key="$PAR", value=key_words.get("$PAR"),
                                expected="<= %i" % MAX_PAR)

    masks = parameter_masks(key_words, npar)
    try:
        fmt_warnings = _check_layout(key_words, npar)
    except UnsupportedFormat as err:
        err.masks = masks
        raise

    return ParameterFormat(npar, masks, fmt_warnings)


def _check_layout(key_words, npar):

    data_type = key_words.get("$DATATYPE", "")
    if data_type.upper() != "I":
        raise UnsupportedDataType("data is not integral ($DATATYPE=%s)" %
                                  data_type,
                                  key="$DATATYPE", value=data_type,
                                  expected="I")

    mode = key_words.get("$MODE", "")
    if mode.upper() != "L":
        raise UnsupportedMode("data not in list format ($MODE=%s)" % mode,
                              key="$MODE", value=mode, expected="L")

    byte_order = key_words.get("$BYTEORD", "")
    if byte_order != "1,2,3,4":
        raise UnsupportedByteOrder("data not in little endian format "
                                   "($BYTEORD=%s)" % byte_order,
                                   key="$BYTEORD", value=byte_order,
                                   expected="1,2,3,4")

    fmt_warnings = []
    unicode_flag = key_words.get("$UNICODE", "")
    if unicode_flag:
        # TEXT is still decoded one byte per character
        E.warn("Unicode flag detected ($UNICODE=%s), output may be "
               "corrupted" % unicode_flag)
        fmt_warnings.append(
            UnicodeUnsupported("$UNICODE=%s is not supported" % unicode_flag))

    for i in range(npar):
        key = parameter_key(i, "B")
        bits = get_int(key_words, key)
        if bits != 32:
            raise UnsupportedBitWidth("parameter %i is not 32 bits (%s=%s)" %
                                      (i, key, key_words.get(key)),
                                      key=key, value=key_words.get(key),
                                      expected=32, parameter=i)

    return fmt_warnings


def decode_data(buf, header, npar, ntot, masks):
    '''
    Decode the DATA segment into a parameters x events matrix

    Values are stored event by event, parameter index varying
    fastest: value k belongs to parameter k % npar and event
    k // npar.  Each value is AND-ed with its parameter mask.

    Arguments
    ---------
    buf: bytes
      the whole file

    header: LXBHeader
      segment offsets

    npar: int
      number of parameters ($PAR)

    ntot: int
      number of events ($TOT)

    masks: numpy.ndarray
      per-parameter masks from `parameter_masks`

    Returns
    -------
    data: numpy.ndarray
      uint32 array of shape (npar, ntot), a copy independent
      of `buf`
    '''

    begin, end = header.begin_data, header.end_data
    data_size = end - begin
    if not (data_size > 0 and begin > 0 and end <= len(buf)):
        raise MissingDataSegment("could not locate DATA segment "
                                 "(%i-%i, file size %i)" %
                                 (begin, end, len(buf)),
                                 key="DATA", value=(begin, end),
                                 expected=(1, len(buf)))

    if ntot is None or ntot < 0:
        raise MissingDataSegment("number of events is missing or invalid",
                                 key="$TOT", value=ntot,
                                 expected=">= 0")

    count = npar * ntot
    # the segment is [begin_data, end_data)
    limit = end
    if begin + 4 * count > limit:
        raise TruncatedData("DATA segment holds %i bytes, %i parameters "
                            "x %i events needs %i" %
                            (limit - begin, npar, ntot, 4 * count),
                            key="DATA", value=limit - begin,
                            expected=4 * count)

    if not count:
        return np.zeros((npar, ntot), dtype=np.uint32)

    values = np.frombuffer(buf, dtype="<u4", count=count, offset=begin)
    values = values.astype(np.uint32).reshape((ntot, npar))

    return values.T & masks[:, np.newaxis]


class LXB(object):
    '''
    The base class representation of an .lxb file.  The file is
    decoded upon instantiation.

    attributes
    ----------
    filename - path the file was read from, None for a buffer
    header - LXBHeader of segment offsets
    key_words - OrderedDict of keyword: value pairs from TEXT
    masks - per-parameter uint32 masks, None if $PAR is unusable
    data - numpy ndarray of dimension (nParams, nEvents), None if
           the DATA segment could not be decoded
    error - the UnsupportedFormat or DataSegmentError that stopped
            DATA decoding, otherwise None
    warnings - non-fatal UnicodeUnsupported warnings
    '''

    def __init__(self, lxb_file):
        '''
        Instantiate the LXB object from a file path or
        a bytes-like buffer holding the file contents
        '''

        if isinstance(lxb_file, (str, os.PathLike)):
            self.filename = os.fspath(lxb_file)
            buf = read_file(self.filename)
        elif isinstance(lxb_file, (bytes, bytearray, memoryview)):
            self.filename = None
            buf = lxb_file
        else:
            raise TypeError("input must be either a path to an .lxb "
                            "file or a bytes-like buffer")

        self.masks = None
        self.data = None
        self.error = None
        self.warnings = []

        self.header = parse_header(buf)
        self.key_words = parse_text(get_text_segment(buf, self.header))
        self._get_data_segment(buf)

    def _get_data_segment(self, buf):
        '''
        Validate the data layout then decode the DATA segment.
        Failures are logged and kept in `error`; the keywords
        remain available.
        '''

        try:
            fmt = check_par_format(self.key_words)
            self.masks = fmt.masks
            self.warnings.extend(fmt.warnings)
            self.data = decode_data(buf, self.header, fmt.npar,
                                    get_int(self.key_words, "$TOT"),
                                    fmt.masks)
        except UnsupportedFormat as err:
            self.masks = err.masks
            self.error = err
            E.warn("Unsupported LXB %s: %s" % (self.name, err))
        except DataSegmentError as err:
            self.error = err
            E.warn("Bad LXB %s: %s" % (self.name, err))

    @property
    def name(self):
        return self.filename or "<buffer>"

    @property
    def n_parameters(self):
        return get_int(self.key_words, "$PAR")

    @property
    def n_events(self):
        return get_int(self.key_words, "$TOT")

    @property
    def labels(self):
        '''
        Parameter labels from $PnN, empty strings where absent
        '''

        npar = self.n_parameters or 0
        return [self.key_words.get(parameter_key(i, "N"), "")
                for i in range(min(npar, MAX_PAR))]

    def items(self):
        '''
        Iterate over TEXT keyword: value pairs in file order
        '''

        return iter(self.key_words.items())


def parse_segments(buf):
    '''
    Decode an in-memory LXB file.  Returns an LXB object,
    see `LXB` for which failures propagate.
    '''

    return LXB(buf)
