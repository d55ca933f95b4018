import logging
from dataclasses import dataclass
from typing import Union, Optional
from enum import Enum

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class BitmapState(Enum):
    """Memory-pressure state of a Bitmap."""
    NON_VOLATILE = "non_volatile"  # Pixels pinned
    VOLATILE = "volatile"  # Pixels may be purged under memory pressure
    PURGED = "purged"  # Pixels dropped, must be restored before use


class Bitmap(object):
    """
    In-memory RGBA bitmap produced by the ICO decoder.

    Pixels are kept as a numpy array of shape (height, width, 4). A bitmap
    can be marked volatile, after which purge() may drop its pixels; the
    owner calls restore_non_volatile() before touching them again and checks
    was_purged to learn whether the contents survived.
    """

    @property
    def width(self) -> int:
        """Bitmap width in pixels."""
        return self._width

    @property
    def height(self) -> int:
        """Bitmap height in pixels."""
        return self._height

    @property
    def size(self):
        """(width, height) tuple."""
        return self._width, self._height

    @property
    def pixels(self) -> np.ndarray:
        """RGBA pixel array (not available while purged)."""
        if self._state == BitmapState.PURGED:
            raise ValueError("Bitmap purged. Call restore_non_volatile() first.")
        return self._pixels

    @property
    def state(self) -> BitmapState:
        """Current memory-pressure state of this Bitmap."""
        return self._state

    @property
    def was_purged(self) -> bool:
        """True if the last restore_non_volatile() found the pixels purged."""
        return self._was_purged

    def __init__(self, pixels: np.ndarray):
        """
        Initialize Bitmap.

        Args:
            pixels: uint8 numpy array of shape (height, width, 4) with RGBA values
        """
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected (height, width, 4) RGBA array, got shape {pixels.shape}")
        self._pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
        self._height, self._width = self._pixels.shape[:2]
        self._state = BitmapState.NON_VOLATILE
        self._was_purged = False

    @classmethod
    def from_image(cls, img: Image.Image) -> 'Bitmap':
        """Build a Bitmap from a Pillow image of any mode."""
        if img.mode != 'RGBA':
            img = img.convert('RGBA')
        return cls(np.array(img, dtype=np.uint8))

    def mark_volatile(self) -> None:
        """Allow the pixels to be purged under memory pressure."""
        if self._state == BitmapState.NON_VOLATILE:
            self._state = BitmapState.VOLATILE

    def purge(self) -> bool:
        """
        Drop the pixels of a volatile bitmap.

        Returns:
            True if the pixels were dropped, False if the bitmap is not volatile
        """
        if self._state != BitmapState.VOLATILE:
            return False
        self._pixels = None
        self._state = BitmapState.PURGED
        logger.debug("Purged %dx%d bitmap", self._width, self._height)
        return True

    def restore_non_volatile(self) -> bool:
        """
        Pin the pixels again.

        A purged bitmap gets a fresh transparent buffer and was_purged is set;
        the caller has to redraw it.

        Returns:
            True on success, False if the pixel buffer could not be reallocated
        """
        self._was_purged = False
        if self._state == BitmapState.PURGED:
            try:
                self._pixels = np.zeros((self._height, self._width, 4), dtype=np.uint8)
            except MemoryError:
                logger.debug("Could not reallocate %dx%d bitmap", self._width, self._height)
                return False
            self._was_purged = True
        self._state = BitmapState.NON_VOLATILE
        return True

    def to_image(
        self,
        scale: Union[int, float] = 1,
        target_width: Optional[int] = None,
        target_height: Optional[int] = None,
    ) -> Image.Image:
        """
        Get Pillow Image of the bitmap.

        Args:
            scale: Optional scale factor
            target_width: Optional target width
            target_height: Optional target height

        Returns:
            PIL Image object in RGBA mode

        Raises:
            ValueError: If the bitmap is purged
        """
        img = Image.fromarray(self.pixels, 'RGBA')
        return self._resize(
            img, scale=scale, target_width=target_width, target_height=target_height
        )

    def _resize(
        self,
        img: Image.Image,
        scale: Union[int, float] = 1,
        target_width: Optional[int] = None,
        target_height: Optional[int] = None,
    ) -> Image.Image:
        """
        Resize image based on scale or target dimensions.

        Args:
            img: PIL Image to resize
            scale: Scale factor (default 1, no scaling)
            target_width: Optional explicit target width
            target_height: Optional explicit target height

        Returns:
            Resized PIL Image
        """
        if target_width is not None and target_height is not None:
            return img.resize((target_width, target_height), Image.NEAREST)
        elif target_width is not None:
            new_height = max(1, int(img.height * target_width / img.width))
            return img.resize((target_width, new_height), Image.NEAREST)
        elif target_height is not None:
            new_width = max(1, int(img.width * target_height / img.height))
            return img.resize((new_width, target_height), Image.NEAREST)
        elif scale != 1:
            new_width = max(1, int(img.width * scale))
            new_height = max(1, int(img.height * scale))
            return img.resize((new_width, new_height), Image.NEAREST)
        return img

    def save_to_png(
        self,
        output_path: str,
        scale: Union[int, float] = 1,
        target_width: Optional[int] = None,
        target_height: Optional[int] = None,
    ) -> None:
        """
        Save the bitmap as a PNG file.

        Args:
            output_path: Path to save PNG file
            scale: Optional scale factor
            target_width: Optional target width
            target_height: Optional target height

        Raises:
            ValueError: If the bitmap is purged
        """
        img = self.to_image(
            scale=scale,
            target_width=target_width,
            target_height=target_height,
        )
        img.save(output_path, format='PNG')

    def __repr__(self):
        return f"<Bitmap {self._width}x{self._height} {self._state.value}>"


@dataclass
class ImageFrame:
    """One decoded frame: the bitmap and its display duration in milliseconds."""
    image: Optional[Bitmap]
    duration: int = 0
