"""
Exception classes for icoloader.

Every error raised by the decoder derives from IcoError so callers can
treat an icon as absent with a single except clause.
"""


class IcoError(Exception):
    """Base exception for all icoloader errors."""

    def __init__(self, message: str = ""):
        """
        Initialize the exception with an optional error message.

        Args:
            message: Descriptive error message explaining what went wrong
        """
        self.message = message
        super().__init__(message)


class FormatError(IcoError):
    """
    Raised when the buffer is not a well-formed ICO container.

    This exception is raised when:
    - The buffer is shorter than the 6-byte header
    - The reserved header fields do not hold 0 and 1
    - The header declares zero images
    - A directory record is truncated
    """
    pass


class BoundsError(IcoError):
    """Raised when a directory entry points outside of the buffer."""
    pass


class FrameIndexError(IcoError, IndexError):
    """Raised when a frame other than frame 0 is requested."""
    pass


class UnsupportedFormatError(IcoError):
    """
    Raised when data is in a format the decoder does not handle.

    This exception is raised when:
    - An embedded payload is neither PNG nor a recognizable dib
    - The front end is handed a buffer that is not an ICO container
    """
    pass


class DecodeError(IcoError):
    """
    Raised when a sub-decoder accepted a payload but could not decode it.

    Attributes:
        reason: Short machine-readable code, e.g. 'png-init-failed'
    """

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or reason)
