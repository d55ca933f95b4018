import logging
from io import IOBase
from typing import Any, Dict, List

from .bitmap import Bitmap
from .directory import find_largest_image, read_directory
from .exceptions import UnsupportedFormatError
from .ico_decoder import IcoImageDecoder, sniff_payload

logger = logging.getLogger(__name__)


class IconLoader(object):
    """Front end that turns ICO files, streams or buffers into bitmaps."""

    @staticmethod
    def decode_file(file_path: str) -> Bitmap:
        with open(file_path, 'rb') as fp:
            return IconLoader.decode_stream(fp)

    @staticmethod
    def decode_stream(fp: IOBase) -> Bitmap:
        return IconLoader.decode_bytes(fp.read())

    @staticmethod
    def decode_bytes(data: bytes) -> Bitmap:
        """
        Decode the representative image of an ICO buffer.

        Args:
            data: Complete ICO file contents

        Returns:
            The decoded Bitmap

        Raises:
            UnsupportedFormatError: If data is not an ICO container
            IcoError: If the container or the selected image cannot be decoded
        """
        if not IcoImageDecoder.sniff(data):
            raise UnsupportedFormatError("Not an ICO file")

        decoder = IcoImageDecoder.create(data)
        width, height = decoder.size()
        logger.debug("selected image %d (%dx%d)", decoder.largest_index, width, height)
        return decoder.frame(0).image

    @staticmethod
    def describe_file(file_path: str) -> List[Dict[str, Any]]:
        with open(file_path, 'rb') as fp:
            return IconLoader.describe_bytes(fp.read())

    @staticmethod
    def describe_bytes(data: bytes) -> List[Dict[str, Any]]:
        """
        List the directory of an ICO buffer without decoding any image.

        Returns:
            One dictionary per entry, keyed like Config.FIELD_MAPPINGS

        Raises:
            IcoError: If the directory is malformed
        """
        entries = read_directory(data)
        selected = find_largest_image([entry.to_descriptor() for entry in entries])

        rows = []
        for index, entry in enumerate(entries):
            payload = data[entry.payload_offset:entry.payload_end]
            kind = sniff_payload(payload)
            rows.append({
                "Index": index,
                "Width": entry.width,
                "Height": entry.height,
                "ColorCount": entry.color_count,
                "Planes": entry.planes,
                "BitsPerPixel": entry.bits_per_pixel,
                "PayloadSize": entry.payload_size,
                "PayloadOffset": entry.payload_offset,
                "Format": kind.value.upper(),
                "Selected": index == selected,
            })
        return rows
