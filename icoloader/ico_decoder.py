"""
ICO image decoder plugin.

The decoder works in stages and only does as much as the caller asks for:

    NOT_DECODED -> DIRECTORY_DECODED -> BITMAP_DECODED
         |                 |
         +-----------------+-------------> ERROR (terminal)

size() parses the directory and selects the image to show; frame(0)
additionally decodes that one image (PNG or dib payload) and caches it.
"""

import copy
import logging
from enum import Enum
from typing import List, Optional, Tuple

from .bitmap import ImageFrame
from .dib_decoder import DibImageDecoder
from .directory import (
    ImageDescriptor,
    decode_ico_header,
    find_largest_image,
    load_directory,
)
from .exceptions import (
    DecodeError,
    FormatError,
    FrameIndexError,
    IcoError,
    UnsupportedFormatError,
)
from .png_decoder import PngImageDecoder

logger = logging.getLogger(__name__)


class LoadingState(Enum):
    """Decode progress of a LoadingContext."""
    NOT_DECODED = "not_decoded"
    DIRECTORY_DECODED = "directory_decoded"
    BITMAP_DECODED = "bitmap_decoded"
    ERROR = "error"


class PayloadKind(Enum):
    """Encoding of an embedded image payload."""
    PNG = "png"
    DIB = "dib"


class LoadingContext(object):
    """
    Per-decoder state.

    `data` is a read-only memoryview over the caller's buffer. Nothing is
    copied, so the buffer must stay alive and unmodified for as long as the
    context is used.
    """

    def __init__(self, data):
        self.data = memoryview(data).cast('B').toreadonly()
        self.images: List[ImageDescriptor] = []
        self.largest_index = 0
        self.state = LoadingState.NOT_DECODED
        self.error: Optional[IcoError] = None

    def fail(self, error: IcoError) -> None:
        self.state = LoadingState.ERROR
        self.error = error

    def payload(self, desc: ImageDescriptor) -> memoryview:
        return self.data[desc.offset:desc.offset + desc.size]


def load_ico_directory(context: LoadingContext) -> None:
    """Parse the directory and select the image to show."""
    images = load_directory(context.data)
    context.images = images
    context.largest_index = find_largest_image(images)
    context.state = LoadingState.DIRECTORY_DECODED


def sniff_payload(data, png_decoder_class=PngImageDecoder) -> PayloadKind:
    """Anything that is not PNG is handed to the dib decoder."""
    if png_decoder_class.sniff(data):
        return PayloadKind.PNG
    return PayloadKind.DIB


def _decode_png_payload(data, png_decoder_class) -> ImageFrame:
    png_decoder = png_decoder_class.create(data)
    if not png_decoder.initialize():
        raise DecodeError('png-init-failed', "Couldn't initialize PNG decoder")
    decoded = png_decoder.frame(0)
    if decoded.image is None:
        raise DecodeError('png-empty-frame', "PNG payload decoded to no image")
    return decoded


def _decode_dib_payload(data, dib_decoder_class) -> ImageFrame:
    # Embedded dibs have no file header, so there is no regular initialize step
    dib_decoder = dib_decoder_class.create_as_included_in_container(data)
    if not dib_decoder.sniff_dib():
        raise UnsupportedFormatError("embedded payload is neither PNG nor dib")
    decoded = dib_decoder.frame(0)
    if decoded.image is None:
        raise DecodeError('dib-empty-frame', "dib payload decoded to no image")
    return decoded


def load_ico_bitmap(
    context: LoadingContext,
    png_decoder_class=PngImageDecoder,
    dib_decoder_class=DibImageDecoder,
) -> None:
    """
    Decode the selected image into its descriptor.

    Runs the directory stage first if it has not run yet. Only the selected
    descriptor is touched.

    Raises:
        IcoError: Any directory, dispatch or decode failure
    """
    if context.state == LoadingState.NOT_DECODED:
        load_ico_directory(context)

    index = context.largest_index
    desc = context.images[index]
    data = context.payload(desc)

    kind = sniff_payload(data, png_decoder_class)
    logger.debug("decoding image %d (%dx%d, %s)", index, desc.width, desc.height, kind.value)
    try:
        if kind == PayloadKind.PNG:
            decoded = _decode_png_payload(data, png_decoder_class)
        else:
            decoded = _decode_dib_payload(data, dib_decoder_class)
    except IcoError:
        logger.debug("failed to load %s encoded image index: %d", kind.value, index)
        raise

    desc.bitmap = decoded.image


class IcoImageDecoder(object):
    """
    Image decoder plugin for ICO containers.

    Usage:
        if IcoImageDecoder.sniff(data):
            decoder = IcoImageDecoder.create(data)
            width, height = decoder.size()
            bitmap = decoder.frame(0).image
    """

    png_decoder_class = PngImageDecoder
    dib_decoder_class = DibImageDecoder

    def __init__(self, data):
        self._context = LoadingContext(data)

    @staticmethod
    def sniff(data) -> bool:
        """True if `data` starts with a valid ICO header. Never raises for short input."""
        try:
            decode_ico_header(data)
        except FormatError:
            return False
        return True

    @classmethod
    def create(cls, data) -> 'IcoImageDecoder':
        """
        Create a decoder over `data` without parsing anything.

        Raises:
            TypeError: If data is not a bytes-like object
        """
        return cls(data)

    @property
    def state(self) -> LoadingState:
        return self._context.state

    @property
    def error(self) -> Optional[IcoError]:
        """The error that moved the decoder into ERROR, if any."""
        return self._context.error

    @property
    def images(self) -> Tuple[ImageDescriptor, ...]:
        """Directory descriptors in file order (empty until the directory is parsed)."""
        return tuple(self._context.images)

    @property
    def largest_index(self) -> int:
        return self._context.largest_index

    def _ensure_directory(self) -> bool:
        context = self._context
        if context.state == LoadingState.ERROR:
            return False
        if context.state == LoadingState.NOT_DECODED:
            try:
                load_ico_directory(context)
            except IcoError as e:
                logger.debug("directory decoding failed: %s", e)
                context.fail(e)
                return False
        return True

    def size(self) -> Tuple[int, int]:
        """
        Size of the selected image.

        Returns:
            (width, height), or (0, 0) if the directory cannot be decoded
        """
        if not self._ensure_directory():
            return 0, 0
        desc = self._context.images[self._context.largest_index]
        return desc.width, desc.height

    def initialize(self) -> bool:
        """Check the header only; the decoder state is left untouched."""
        return self.sniff(self._context.data)

    def is_animated(self) -> bool:
        return False

    def loop_count(self) -> int:
        return 0

    def frame_count(self) -> int:
        return 1

    def frame(self, index: int = 0) -> ImageFrame:
        """
        Decode (once) and return the selected image.

        Args:
            index: Frame index; ICO files have a single frame

        Returns:
            ImageFrame holding the cached Bitmap and a duration of 0

        Raises:
            FrameIndexError: If index is not 0 (decoder state unchanged)
            IcoError: Once decoding has failed, a copy of the stored error
                of the same type, chained to it
        """
        if index != 0:
            raise FrameIndexError(f"Invalid frame index: {index}")

        context = self._context
        if context.state == LoadingState.ERROR:
            # The stored error keeps the traceback of the original failure
            raise copy.copy(context.error) from context.error

        if context.state != LoadingState.BITMAP_DECODED:
            try:
                load_ico_bitmap(context, self.png_decoder_class, self.dib_decoder_class)
            except IcoError as e:
                context.fail(e)
                raise
            context.state = LoadingState.BITMAP_DECODED

        bitmap = context.images[context.largest_index].bitmap
        if bitmap is None:
            raise IcoError(f"No bitmap cached for image {context.largest_index}")
        return ImageFrame(image=bitmap, duration=0)

    def icc_data(self) -> Optional[bytes]:
        """ICO files carry no color profile."""
        return None

    # Memory-pressure hooks act on the first directory entry's bitmap,
    # whichever image was selected.

    def mark_volatile(self) -> None:
        images = self._context.images
        if images and images[0].bitmap is not None:
            images[0].bitmap.mark_volatile()

    def restore_non_volatile(self) -> bool:
        images = self._context.images
        if not images or images[0].bitmap is None:
            return False
        return images[0].bitmap.restore_non_volatile()
