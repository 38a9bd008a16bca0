###########################################################
# LXB decoding errors
###########################################################
'''
Exceptions raised while decoding an LXB (FCS3.0) file.

Failures fall into three groups:
  * LXBFileError - the file, HEADER or TEXT segment cannot be
    used.  Nothing is returned to the caller.
  * UnsupportedFormat - the TEXT segment describes data this
    decoder does not handle.  The TEXT dictionary is still
    returned.
  * DataSegmentError - the DATA segment cannot be located or is
    shorter than the declared event count.  The TEXT dictionary
    is still returned.

UnicodeUnsupported is a warning, it is recorded but never raised.
'''


class LXBError(Exception):
    '''
    Base class for all LXB decoding errors.

    attributes
    ----------
    key - the TEXT keyword (or header field) at fault, if any
    value - the declared value found in the file
    expected - the value the decoder expected
    '''

    def __init__(self, message, key=None, value=None, expected=None):
        Exception.__init__(self, message)
        self.key = key
        self.value = value
        self.expected = expected


class LXBFileError(LXBError):
    pass


class SourceUnavailable(LXBFileError):
    '''
    The file could not be read from storage.
    '''

    def __init__(self, message, filename=None):
        LXBFileError.__init__(self, message)
        self.filename = filename


class TruncatedHeader(LXBFileError):
    pass


class BadMagic(LXBFileError):
    pass


class MalformedOffsets(LXBFileError):
    pass


class MissingTextSegment(LXBFileError):
    pass


class UnsupportedFormat(LXBError):
    '''
    The TEXT segment declares a data layout the decoder
    does not support.  `masks` holds the parameter masks
    derived before the failing check, or None if $PAR
    was not usable.
    '''

    masks = None


class TooManyParameters(UnsupportedFormat):
    pass


class UnsupportedDataType(UnsupportedFormat):
    pass


class UnsupportedMode(UnsupportedFormat):
    pass


class UnsupportedByteOrder(UnsupportedFormat):
    pass


class UnsupportedBitWidth(UnsupportedFormat):

    def __init__(self, message, key=None, value=None, expected=None,
                 parameter=None):
        UnsupportedFormat.__init__(self, message, key=key, value=value,
                                   expected=expected)
        self.parameter = parameter


class DataSegmentError(LXBError):
    pass


class MissingDataSegment(DataSegmentError):
    pass


class TruncatedData(DataSegmentError):
    pass


class UnicodeUnsupported(UserWarning):
    '''
    $UNICODE is set; TEXT values may not decode correctly.
    '''
    pass
