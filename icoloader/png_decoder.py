import io
import logging
import struct
from typing import Optional

from PIL import Image

from .bitmap import Bitmap, ImageFrame
from .exceptions import DecodeError, FrameIndexError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

# Errors Pillow raises for malformed or oversized PNG data
PILLOW_ERRORS = (OSError, SyntaxError, ValueError, struct.error, Image.DecompressionBombError)


class PngImageDecoder(object):
    """PNG sub-decoder for payloads embedded in an ICO container."""

    def __init__(self, data):
        self._data = data
        self._image: Optional[Image.Image] = None

    @staticmethod
    def sniff(data) -> bool:
        """Compare the leading bytes against the PNG signature; nothing is decoded."""
        return bytes(data[:len(PNG_SIGNATURE)]) == PNG_SIGNATURE

    @classmethod
    def create(cls, data) -> 'PngImageDecoder':
        return cls(data)

    def initialize(self) -> bool:
        """
        Read the PNG header.

        Returns:
            True if Pillow accepts the payload as a PNG image
        """
        try:
            self._image = Image.open(io.BytesIO(self._data), formats=['PNG'])
        except PILLOW_ERRORS as e:
            logger.debug("PNG header rejected: %s", e)
            self._image = None
            return False
        return True

    def frame(self, index: int = 0) -> ImageFrame:
        """
        Decode the only frame of the PNG payload.

        Raises:
            FrameIndexError: If index is not 0
            DecodeError: If the decoder is not initialized or Pillow fails
        """
        if index != 0:
            raise FrameIndexError(f"Invalid PNG frame index: {index}")
        if self._image is None:
            raise DecodeError('png-init-failed', "PNG decoder not initialized")

        try:
            self._image.load()
            if self._image.width == 0 or self._image.height == 0:
                return ImageFrame(image=None)
            bitmap = Bitmap.from_image(self._image)
        except PILLOW_ERRORS as e:
            raise DecodeError('png-decode-failed', f"PNG decode failed: {e}") from e
        return ImageFrame(image=bitmap, duration=0)
