import io
import struct

import numpy as np
import pytest
from PIL import Image


def png_bytes(width, height, color=(255, 0, 0, 255)):
    buf = io.BytesIO()
    Image.new('RGBA', (width, height), color).save(buf, format='PNG')
    return buf.getvalue()


def noisy_png_bytes(width, height, seed=0):
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(pixels, 'RGBA').save(buf, format='PNG')
    return buf.getvalue()


def pad_row(row: bytes) -> bytes:
    return row + b'\x00' * (-len(row) % 4)


def dib_bytes(
    width,
    height,
    bpp,
    rows,
    palette=b'',
    mask_rows=None,
    header_size=40,
    compression=0,
    colors_used=0,
    in_container=True,
):
    """
    Pack a header-less dib.

    `rows` and `mask_rows` are unpadded row bytes listed top to bottom; they
    are padded and stored bottom-up. Without mask_rows an all-opaque AND
    mask is written when in_container is set.
    """
    stored_height = height * 2 if in_container else height
    if header_size == 12:
        header = struct.pack('<IHHHH', 12, width, stored_height, 1, bpp)
    else:
        header = struct.pack(
            '<IiiHHIIiiII',
            header_size, width, stored_height, 1, bpp, compression, 0, 0, 0, colors_used, 0,
        )
        header += b'\x00' * (header_size - 40)

    pixels = b''.join(pad_row(row) for row in reversed(rows))
    data = header + palette + pixels
    if in_container:
        if mask_rows is None:
            mask_rows = [b'\x00' * ((width + 7) // 8)] * height
        data += b''.join(pad_row(row) for row in reversed(mask_rows))
    return data


def ico_bytes(images, image_count=None, reserved=0, image_type=1):
    """
    Pack an ICO container.

    Each image is a dict with payload and optional width, height, bpp,
    color_count, planes, plus offset/size to override the computed location.
    """
    count = len(images) if image_count is None else image_count
    header = struct.pack('<HHH', reserved, image_type, count)

    data_offset = 6 + 16 * len(images)
    directory = b''
    blob = b''
    for image in images:
        payload = image.get('payload', b'')
        offset = image.get('offset', data_offset + len(blob))
        size = image.get('size', len(payload))
        directory += struct.pack(
            '<BBBBHHII',
            image.get('width', 16) % 256,
            image.get('height', 16) % 256,
            image.get('color_count', 0),
            0,
            image.get('planes', 1),
            image.get('bpp', 32),
            size,
            offset,
        )
        blob += payload
    return header + directory + blob


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def make_noisy_png():
    return noisy_png_bytes


@pytest.fixture
def make_dib():
    return dib_bytes


@pytest.fixture
def make_ico():
    return ico_bytes


@pytest.fixture
def png_icon():
    """Two PNG entries; the 32x32 one is selected."""
    return ico_bytes([
        {'width': 16, 'height': 16, 'bpp': 8, 'payload': png_bytes(16, 16, (0, 0, 255, 255))},
        {'width': 32, 'height': 32, 'bpp': 32, 'payload': png_bytes(32, 32, (255, 0, 0, 255))},
    ])


@pytest.fixture
def dib_icon():
    """One 2x2 32-bpp dib entry."""
    rows = [
        bytes([0, 0, 255, 255, 0, 255, 0, 255]),  # red, green (BGRA)
        bytes([255, 0, 0, 255, 255, 255, 255, 0]),  # blue, transparent white
    ]
    return ico_bytes([
        {'width': 2, 'height': 2, 'bpp': 32, 'payload': dib_bytes(2, 2, 32, rows)},
    ])
