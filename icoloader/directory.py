"""
ICO container directory parsing and best-image selection.

Layout (little-endian, no padding):

    header    6 bytes   reserved u16 (0), type u16 (1), image_count u16
    entry    16 bytes   width u8, height u8, color_count u8, reserved u8,
                        planes u16, bits_per_pixel u16,
                        payload_size u32, payload_offset u32

Entries follow the header back to back, image_count times.
"""

import logging
from dataclasses import dataclass
from struct import unpack_from
from typing import List, Optional

from .bitmap import Bitmap
from .exceptions import BoundsError, FormatError

logger = logging.getLogger(__name__)

HEADER_FORMAT = '<HHH'
HEADER_SIZE = 6
ENTRY_FORMAT = '<BBBBHHII'
ENTRY_SIZE = 16

# Payload offsets are stored as u32
OFFSET_LIMIT = 0xFFFFFFFF


@dataclass
class ContainerHeader:
    reserved: int
    image_type: int
    image_count: int

    @property
    def is_valid(self) -> bool:
        return self.reserved == 0 and self.image_type == 1


@dataclass
class DirectoryEntry:
    """Raw directory record, with a zero width/height already mapped to 256."""
    width: int
    height: int
    color_count: int
    reserved: int
    planes: int
    bits_per_pixel: int
    payload_size: int
    payload_offset: int

    @property
    def payload_end(self) -> int:
        return self.payload_offset + self.payload_size

    def to_descriptor(self) -> 'ImageDescriptor':
        return ImageDescriptor(
            width=self.width,
            height=self.height,
            bits_per_pixel=self.bits_per_pixel,
            offset=self.payload_offset,
            size=self.payload_size,
        )


@dataclass
class ImageDescriptor:
    """One embedded image; owns its bitmap once decoded."""
    width: int
    height: int
    bits_per_pixel: int
    offset: int
    size: int
    bitmap: Optional[Bitmap] = None

    @property
    def area(self) -> int:
        return self.width * self.height


def read_header(data) -> ContainerHeader:
    """
    Read the container header.

    Args:
        data: Bytes-like object holding the ICO file

    Returns:
        ContainerHeader (sentinels not checked)

    Raises:
        FormatError: If the buffer is shorter than the header
    """
    if len(data) < HEADER_SIZE:
        raise FormatError(f"Buffer too short for ICO header: {len(data)} bytes")
    return ContainerHeader(*unpack_from(HEADER_FORMAT, data, 0))


def decode_ico_header(data) -> int:
    """
    Validate the container header and return the declared image count.

    Raises:
        FormatError: If the buffer is too short or the reserved fields are not 0 and 1
    """
    header = read_header(data)
    if not header.is_valid:
        raise FormatError(
            f"Invalid ICO header: reserved={header.reserved} type={header.image_type}"
        )
    return header.image_count


def decode_ico_direntry(data, index: int) -> DirectoryEntry:
    """
    Read directory record number `index`.

    Raises:
        FormatError: If the record runs past the end of the buffer
    """
    pos = HEADER_SIZE + index * ENTRY_SIZE
    if pos + ENTRY_SIZE > len(data):
        raise FormatError(f"Truncated directory entry {index} at offset {pos}")

    entry = DirectoryEntry(*unpack_from(ENTRY_FORMAT, data, pos))
    if entry.width == 0:
        entry.width = 256
    if entry.height == 0:
        entry.height = 256
    return entry


def read_directory(data) -> List[DirectoryEntry]:
    """
    Parse and bounds-check the whole directory.

    A single bad entry fails the whole parse; partial directories are
    never returned.

    Args:
        data: Bytes-like object holding the ICO file

    Returns:
        Directory entries in file order

    Raises:
        FormatError: Bad header, zero image count or truncated record
        BoundsError: An entry's payload wraps the u32 range or exceeds the buffer
    """
    image_count = decode_ico_header(data)
    if image_count == 0:
        raise FormatError("ICO file has no images")

    entries = []
    for index in range(image_count):
        entry = decode_ico_direntry(data, index)
        end = entry.payload_end
        if end > OFFSET_LIMIT or end > len(data):
            logger.debug(
                "offset: %d size: %d doesn't fit in ICO size: %d",
                entry.payload_offset, entry.payload_size, len(data),
            )
            raise BoundsError(
                f"Entry {index} payload [{entry.payload_offset}, {end}) "
                f"exceeds buffer of {len(data)} bytes"
            )
        logger.debug(
            "index %d width: %d height: %d offset: %d size: %d",
            index, entry.width, entry.height, entry.payload_offset, entry.payload_size,
        )
        entries.append(entry)
    return entries


def load_directory(data) -> List[ImageDescriptor]:
    """Parse the directory into image descriptors, in file order."""
    return [entry.to_descriptor() for entry in read_directory(data)]


def find_largest_image(images: List[ImageDescriptor]) -> int:
    """
    Pick the index of the image to show.

    An entry wins only if its area is at least the running maximum AND its
    bit depth is strictly higher than the running maximum. A smaller image
    never wins, whatever its depth, and a same-size image needs more bits.
    Existing files depend on this exact choice.
    """
    max_area = 0
    max_bits_per_pixel = 0
    largest_index = 0
    for index, desc in enumerate(images):
        area = desc.width * desc.height
        if area >= max_area:
            if desc.bits_per_pixel > max_bits_per_pixel:
                max_area = area
                max_bits_per_pixel = desc.bits_per_pixel
                largest_index = index
    return largest_index
