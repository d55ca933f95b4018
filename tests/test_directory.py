import pytest

from icoloader.directory import (
    ImageDescriptor,
    decode_ico_direntry,
    decode_ico_header,
    find_largest_image,
    load_directory,
    read_directory,
)
from icoloader.exceptions import BoundsError, FormatError


def desc(width, height, bpp):
    return ImageDescriptor(width=width, height=height, bits_per_pixel=bpp, offset=0, size=0)


class TestHeader:
    def test_image_count(self, make_ico):
        data = make_ico([{'payload': b'abcd'}, {'payload': b'efgh'}])
        assert decode_ico_header(data) == 2

    @pytest.mark.parametrize("data", [b'', b'\x00', b'\x00\x00\x01\x00\x01'])
    def test_short_buffer(self, data):
        with pytest.raises(FormatError):
            decode_ico_header(data)

    @pytest.mark.parametrize("reserved, image_type", [(1, 1), (0, 0), (0, 2)])
    def test_bad_sentinels(self, make_ico, reserved, image_type):
        data = make_ico([{'payload': b'abcd'}], reserved=reserved, image_type=image_type)
        with pytest.raises(FormatError):
            decode_ico_header(data)


class TestDirectory:
    def test_zero_image_count(self, make_ico):
        with pytest.raises(FormatError):
            read_directory(make_ico([]))

    def test_entry_fields(self, make_ico):
        data = make_ico([
            {'width': 48, 'height': 32, 'bpp': 8, 'color_count': 16, 'planes': 1, 'payload': b'x' * 10},
        ])
        entry = decode_ico_direntry(data, 0)
        assert (entry.width, entry.height) == (48, 32)
        assert entry.color_count == 16
        assert entry.planes == 1
        assert entry.bits_per_pixel == 8
        assert entry.payload_size == 10
        assert entry.payload_offset == 22

    def test_zero_dimensions_mean_256(self, make_ico):
        data = make_ico([{'width': 256, 'height': 256, 'payload': b'abcd'}])
        # 256 is stored as 0 in the u8 fields
        assert data[6] == 0 and data[7] == 0
        images = load_directory(data)
        assert (images[0].width, images[0].height) == (256, 256)

    def test_order_preserved(self, make_ico):
        data = make_ico([
            {'width': 32, 'height': 32, 'payload': b'a' * 4},
            {'width': 16, 'height': 16, 'payload': b'b' * 8},
            {'width': 48, 'height': 48, 'payload': b'c' * 2},
        ])
        images = load_directory(data)
        assert [d.width for d in images] == [32, 16, 48]
        assert [d.size for d in images] == [4, 8, 2]
        assert all(d.bitmap is None for d in images)

    def test_payload_wraparound_rejected(self, make_ico):
        data = make_ico([{'offset': 0xFFFFFFF0, 'size': 0x20}])
        data += b'\x00' * (64 * 1024 - len(data))
        with pytest.raises(BoundsError):
            read_directory(data)

    def test_payload_ending_at_buffer_end_accepted(self, make_ico):
        data = make_ico([{'payload': b'abcd'}])
        entry = read_directory(data)[0]
        assert entry.payload_offset + entry.payload_size == len(data)

    def test_payload_past_buffer_end_rejected(self, make_ico):
        data = make_ico([{'payload': b'abcd', 'size': 5}])
        with pytest.raises(BoundsError):
            read_directory(data)

    def test_one_bad_entry_fails_whole_directory(self, make_ico):
        data = make_ico([
            {'payload': b'abcd'},
            {'payload': b'efgh', 'offset': 1 << 20},
        ])
        with pytest.raises(BoundsError):
            load_directory(data)

    def test_truncated_entry(self, make_ico):
        data = make_ico([{'payload': b'abcd'}], image_count=2)
        with pytest.raises(FormatError):
            read_directory(data)

    def test_overlapping_payloads_accepted(self, make_ico):
        data = make_ico([
            {'payload': b'abcdefgh'},
            {'offset': 0, 'size': 16},
        ])
        assert len(read_directory(data)) == 2


class TestFindLargestImage:
    def test_equal_area_prefers_higher_depth(self):
        assert find_largest_image([desc(64, 64, 8), desc(64, 64, 32)]) == 1

    def test_equal_area_needs_strictly_higher_depth(self):
        assert find_largest_image([desc(64, 64, 32), desc(64, 64, 32)]) == 0
        assert find_largest_image([desc(64, 64, 32), desc(64, 64, 8)]) == 0

    def test_larger_area_with_higher_depth(self):
        assert find_largest_image([desc(16, 16, 8), desc(32, 32, 32)]) == 1

    def test_larger_area_with_lower_depth_is_not_selected(self):
        # A growing area alone does not win; the depth must also grow.
        assert find_largest_image([desc(16, 16, 32), desc(32, 32, 8)]) == 0

    def test_smaller_area_never_selected(self):
        assert find_largest_image([desc(32, 32, 8), desc(16, 16, 32)]) == 0

    def test_first_entry_provisionally_selected(self):
        assert find_largest_image([desc(16, 16, 1)]) == 0
        # max_area only moves when an entry is taken
        assert find_largest_image([desc(16, 16, 0), desc(8, 8, 4)]) == 1
        assert find_largest_image([desc(16, 16, 0), desc(16, 16, 4)]) == 1

    def test_running_maximum(self):
        images = [desc(16, 16, 4), desc(32, 32, 8), desc(24, 24, 32), desc(48, 48, 32), desc(48, 48, 24)]
        assert find_largest_image(images) == 3
