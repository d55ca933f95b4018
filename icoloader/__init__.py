"""icoloader package entrypoints."""

from .bitmap import Bitmap, BitmapState, ImageFrame
from .exceptions import (
    BoundsError,
    DecodeError,
    FormatError,
    FrameIndexError,
    IcoError,
    UnsupportedFormatError,
)
from .ico_decoder import IcoImageDecoder, LoadingState
from .loader import IconLoader

__all__ = [
    'Bitmap', 'BitmapState', 'ImageFrame',
    'IcoError', 'FormatError', 'BoundsError', 'FrameIndexError',
    'UnsupportedFormatError', 'DecodeError',
    'IcoImageDecoder', 'LoadingState', 'IconLoader',
]
