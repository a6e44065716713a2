"""Custom exception hierarchy for mstconv."""


class MstconvError(Exception):
    """Base exception for all mstconv errors."""


class ParseError(MstconvError):
    """Raised when a scene description cannot be read or deserialized."""


class ValidationError(MstconvError):
    """Raised when a warning code is escalated to an error by policy."""


class ExportError(MstconvError):
    """Raised when GLB export fails."""
