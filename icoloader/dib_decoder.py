"""
Header-less device-independent bitmap (dib) decoder.

Inside an ICO container a bitmap payload starts directly with its info
header (no 14-byte file header), and the declared height covers two
stacked bitmaps: the color (XOR) pixels followed by a 1-bpp transparency
(AND) mask. Rows are stored bottom-up and padded to 4 bytes.
"""

import logging
from struct import unpack_from
from typing import Optional, Tuple

import numpy as np

from .bitmap import Bitmap, ImageFrame
from .exceptions import DecodeError, FrameIndexError

logger = logging.getLogger(__name__)

# BITMAPCOREHEADER, BITMAPINFOHEADER, V2, V3, V4, V5
DIB_HEADER_SIZES = (12, 40, 52, 56, 108, 124)

BI_RGB = 0
BI_BITFIELDS = 3

SUPPORTED_BIT_DEPTHS = (1, 2, 4, 8, 16, 24, 32)

# (red, green, blue, alpha) masks used when the header carries none
DEFAULT_MASKS = {
    16: (0x7C00, 0x03E0, 0x001F, 0),
    32: (0x00FF0000, 0x0000FF00, 0x000000FF, 0xFF000000),
}


def row_stride(bits_per_pixel: int, width: int) -> int:
    """Bytes per row, rounded up to a multiple of 4."""
    return ((bits_per_pixel * width + 31) // 32) * 4


class DibImageDecoder(object):
    """
    Decoder for a dib payload.

    Use create_as_included_in_container() for payloads taken from an ICO
    directory entry; plain construction treats the data as a bare dib with
    no AND mask.
    """

    def __init__(self, data, included_in_container: bool = False):
        self._data = data
        self._included_in_container = included_in_container

    @classmethod
    def create_as_included_in_container(cls, data) -> 'DibImageDecoder':
        return cls(data, included_in_container=True)

    @property
    def header_size(self) -> int:
        if len(self._data) < 4:
            return 0
        return unpack_from('<I', self._data, 0)[0]

    def sniff_dib(self) -> bool:
        """Check that the payload starts with a complete dib info header of a known size."""
        header_size = self.header_size
        return header_size in DIB_HEADER_SIZES and len(self._data) >= header_size

    def frame(self, index: int = 0) -> ImageFrame:
        """
        Decode the bitmap.

        Returns:
            ImageFrame whose image is None when the header declares no pixels

        Raises:
            FrameIndexError: If index is not 0
            DecodeError: On a malformed, truncated or unsupported payload
        """
        if index != 0:
            raise FrameIndexError(f"Invalid dib frame index: {index}")
        if not self.sniff_dib():
            raise DecodeError('dib-invalid-header', f"Unrecognized dib header size: {self.header_size}")

        try:
            pixels = self._decode()
        except ValueError as e:
            # numpy reshape/frombuffer on inconsistent sizes
            raise DecodeError('dib-truncated', f"dib pixel data inconsistent: {e}") from e
        if pixels is None:
            return ImageFrame(image=None)
        return ImageFrame(image=Bitmap(pixels), duration=0)

    def _read_header(self):
        data = self._data
        header_size = self.header_size
        if header_size == 12:
            _, width, height, planes, bpp = unpack_from('<IHHHH', data, 0)
            return header_size, width, height, bpp, BI_RGB, 0, 3

        (_, width, height, planes, bpp, compression,
         _image_size, _x_ppm, _y_ppm, colors_used, _colors_important) = unpack_from('<IiiHHIIiiII', data, 0)
        return header_size, width, height, bpp, compression, colors_used, 4

    def _read_masks(self, header_size: int, bpp: int, compression: int) -> Tuple[Optional[tuple], int]:
        """Return the channel masks and the offset of the first byte after them."""
        data = self._data
        pos = header_size
        if compression == BI_RGB:
            return DEFAULT_MASKS.get(bpp), pos
        if compression != BI_BITFIELDS or bpp not in (16, 32):
            raise DecodeError(
                'dib-unsupported-compression',
                f"Unsupported dib compression {compression} at {bpp} bpp",
            )

        if header_size >= 56:
            return unpack_from('<IIII', data, 40), pos
        if header_size == 52:
            return unpack_from('<III', data, 40) + (0,), pos
        # BITMAPINFOHEADER: masks follow the header
        if len(data) < header_size + 12:
            raise DecodeError('dib-truncated', "dib bitfield masks truncated")
        return unpack_from('<III', data, header_size) + (0,), pos + 12

    def _read_palette(self, pos: int, count: int, entry_size: int) -> np.ndarray:
        if pos + count * entry_size > len(self._data):
            raise DecodeError('dib-truncated', f"dib palette of {count} entries truncated")
        raw = np.frombuffer(self._data, dtype=np.uint8, count=count * entry_size, offset=pos)
        raw = raw.reshape(count, entry_size)
        palette = np.zeros((256, 3), dtype=np.uint8)
        used = min(count, 256)
        palette[:used] = raw[:used, 2::-1]  # BGR(X) -> RGB
        return palette

    def _decode(self) -> Optional[np.ndarray]:
        header_size, width, height, bpp, compression, colors_used, entry_size = self._read_header()

        top_down = height < 0
        height = abs(height)
        if self._included_in_container:
            height //= 2

        if width < 0:
            raise DecodeError('dib-invalid-header', f"Negative dib width: {width}")
        if width == 0 or height == 0:
            return None
        if bpp not in SUPPORTED_BIT_DEPTHS:
            raise DecodeError('dib-unsupported-bit-depth', f"Unsupported dib bit depth: {bpp}")

        masks, pos = self._read_masks(header_size, bpp, compression)

        palette = None
        if bpp <= 8:
            palette_count = colors_used or (1 << bpp)
            palette = self._read_palette(pos, palette_count, entry_size)
            pos += palette_count * entry_size

        stride = row_stride(bpp, width)
        xor_size = stride * height
        if pos + xor_size > len(self._data):
            raise DecodeError(
                'dib-truncated',
                f"dib pixel data truncated: need {pos + xor_size} bytes, have {len(self._data)}",
            )
        rows = np.frombuffer(self._data, dtype=np.uint8, count=xor_size, offset=pos)
        rows = rows.reshape(height, stride)

        rgba = np.empty((height, width, 4), dtype=np.uint8)
        alpha = None
        if bpp <= 8:
            rgba[:, :, :3] = palette[self._unpack_indices(rows, bpp, width)]
        elif bpp == 24:
            rgba[:, :, :3] = rows[:, :width * 3].reshape(height, width, 3)[:, :, ::-1]
        else:
            dtype = '<u2' if bpp == 16 else '<u4'
            values = np.ascontiguousarray(rows[:, :width * (bpp // 8)]).view(dtype).astype(np.uint64)
            red_mask, green_mask, blue_mask, alpha_mask = masks
            rgba[:, :, 0] = self._extract_channel(values, red_mask)
            rgba[:, :, 1] = self._extract_channel(values, green_mask)
            rgba[:, :, 2] = self._extract_channel(values, blue_mask)
            if alpha_mask:
                alpha = self._extract_channel(values, alpha_mask)
                # All-zero alpha means the icon relies on its AND mask
                if not alpha.any():
                    alpha = None

        if alpha is None:
            alpha = self._read_and_mask(pos + xor_size, width, height)
        rgba[:, :, 3] = alpha

        if not top_down:
            rgba = rgba[::-1]
        return rgba

    @staticmethod
    def _unpack_indices(rows: np.ndarray, bpp: int, width: int) -> np.ndarray:
        if bpp == 8:
            return rows[:, :width]
        bits = np.unpackbits(rows, axis=1)[:, :width * bpp]
        if bpp == 1:
            return bits
        weights = 1 << np.arange(bpp - 1, -1, -1)
        return (bits.reshape(rows.shape[0], width, bpp) * weights).sum(axis=2)

    @staticmethod
    def _extract_channel(values: np.ndarray, mask: int) -> np.ndarray:
        if mask == 0:
            return np.zeros(values.shape, dtype=np.uint8)
        shift = (mask & -mask).bit_length() - 1
        max_value = mask >> shift
        channel = (values & mask) >> shift
        return ((channel * 255 + max_value // 2) // max_value).astype(np.uint8)

    def _read_and_mask(self, pos: int, width: int, height: int) -> np.ndarray:
        """1-bpp AND mask: a set bit is a transparent pixel. Missing mask means opaque."""
        stride = row_stride(1, width)
        if not self._included_in_container or pos + stride * height > len(self._data):
            if self._included_in_container:
                logger.debug("AND mask missing or truncated, treating dib as opaque")
            return np.full((height, width), 255, dtype=np.uint8)
        rows = np.frombuffer(self._data, dtype=np.uint8, count=stride * height, offset=pos)
        bits = np.unpackbits(rows.reshape(height, stride), axis=1)[:, :width]
        return np.where(bits == 1, 0, 255).astype(np.uint8)
