"""
Tests for the CHR codec, CHR source loading and the collision mask loader.
"""

import numpy as np
import pytest
from PIL import Image

from faberrors import FormatError
from fabchr import (BAD_TILE_IMAGE, CHR_BANK_SIZE, COLLISION_PAD_COLOR, NES_COLORS,
                    chr_to_bitmaps, decode_chr, image_to_chr, load_chr_source,
                    load_collision_file, png_to_chr, quantize_image)
from fabmodel import ChrFile

FOUR_COLORS = [0, 0, 0, 85, 85, 85, 170, 170, 170, 255, 255, 255]
PATTERN_ROW = [0, 1, 2, 3, 0, 1, 2, 3]


def paletted_image(extra_colors=()):
    image = Image.new("P", (8, 8))
    image.putpalette(FOUR_COLORS + list(extra_colors))
    image.putdata(PATTERN_ROW * 8)
    return image


class TestImageToChr:
    """Test image -> planar CHR conversion."""

    def test_opaque_paletted_tile(self):
        """Test an opaque 4-color tile yields 16 bytes and one index."""
        patterns = image_to_chr(paletted_image())
        assert len(patterns.chr) == 16
        assert patterns.indices == [1]
        # low plane then high plane, leftmost pixel in the top bit
        assert patterns.chr[:8] == bytes([0x55] * 8)
        assert patterns.chr[8:] == bytes([0x33] * 8)

    def test_transparent_corner_pixel(self):
        """Test a single transparent pixel keeps the block and is flagged."""
        image = paletted_image(extra_colors=(255, 0, 255))
        pixels = PATTERN_ROW * 8
        pixels[0] = 4
        image.putdata(pixels)
        image.info["transparency"] = 4

        indices, transparent = quantize_image(image)
        assert transparent[0, 0]
        assert transparent.sum() == 1
        assert indices[0, 0] == 0

        patterns = image_to_chr(image)
        assert len(patterns.chr) == 16
        assert patterns.indices == [1]

    def test_fully_transparent_block(self):
        """Test a transparent grey+alpha tile emits no bytes but keeps its entry."""
        patterns = image_to_chr(Image.new("LA", (8, 8), (200, 0)))
        assert patterns.chr == b""
        assert patterns.indices == [0]

    def test_transparent_block_repeats_index(self):
        """Test skipped blocks record the running tile counter."""
        image = Image.new("LA", (24, 8), (255, 255))
        image.paste((0, 0), (8, 0, 16, 8))
        patterns = image_to_chr(image)
        assert len(patterns.chr) == 32
        assert patterns.indices == [1, 1, 2]

    def test_rgb_uses_first_channel(self):
        """Test RGB sources quantize the red channel only."""
        red = image_to_chr(Image.new("RGB", (8, 8), (255, 0, 0)))
        assert red.chr == bytes([0xFF] * 16)
        cyan = image_to_chr(Image.new("RGB", (8, 8), (0, 255, 255)))
        assert cyan.chr == bytes(16)

    def test_grayscale_top_bits(self):
        """Test grayscale keeps the top two bits of intensity."""
        indices, transparent = quantize_image(Image.new("L", (8, 8), 0x80))
        assert (indices == 2).all()
        assert not transparent.any()

    def test_16bit_grayscale_uses_high_byte(self):
        """Test 16-bit samples quantize from their high byte, not a clipped value."""
        indices, transparent = quantize_image(Image.new("I;16", (8, 8), 0x8000))
        assert (indices == 2).all()
        assert not transparent.any()
        indices, _ = quantize_image(Image.new("I", (8, 8), 0x40FF))
        assert (indices == 1).all()

    def test_rgba_alpha_threshold(self):
        """Test alpha below 128 is transparent, 128 and up is opaque."""
        image = Image.new("RGBA", (8, 8), (255, 255, 255, 127))
        image.putpixel((7, 7), (255, 255, 255, 128))
        _, transparent = quantize_image(image)
        assert transparent.sum() == 63
        assert not transparent[7, 7]

    @pytest.mark.parametrize("size", [(12, 8), (8, 9), (1, 1)])
    def test_dimensions_must_be_multiples_of_8(self, size):
        """Test any other size is a FormatError."""
        with pytest.raises(FormatError):
            image_to_chr(Image.new("L", size))

    def test_png_bytes(self, png_factory):
        """Test decoding from PNG file data."""
        path = png_factory(paletted_image())
        patterns = png_to_chr(path.read_bytes())
        assert len(patterns.chr) == 16

    def test_png_decode_error(self):
        """Test undecodable data is a FormatError."""
        with pytest.raises(FormatError):
            png_to_chr(b"not a png at all")


class TestChrToBitmaps:
    """Test CHR -> display bitmaps."""

    def test_decode_inverts_packing(self):
        """Test decode_chr recovers the 2-bit pixel values."""
        patterns = image_to_chr(paletted_image())
        pixels = decode_chr(patterns.chr)
        assert pixels.shape == (1, 8, 8)
        assert pixels[0].tolist() == [PATTERN_ROW] * 8

    def test_four_attribute_bitmaps(self):
        """Test each attribute maps through its own sub-palette."""
        palette = [0x0F, 0x01, 0x02, 0x03,
                   0x0F, 0x11, 0x12, 0x13,
                   0x0F, 0x21, 0x22, 0x23,
                   0x0F, 0x31, 0x32, 0x30]
        data = bytes([0xFF] * 16)
        bitmaps = chr_to_bitmaps(data, palette, [1])
        assert len(bitmaps) == 1
        for attr in range(4):
            image = bitmaps[0][attr]
            assert image.size == (8, 8)
            assert image.getpixel((0, 0)) == tuple(NES_COLORS[palette[attr * 4 + 3]].tolist())

    def test_placeholder_for_missing_entries(self):
        """Test repeated or missing index entries show the placeholder."""
        data = bytes(16 * 3)
        bitmaps = chr_to_bitmaps(data, [0x0F] * 16, [1, 1])
        assert bitmaps[0][0] is not BAD_TILE_IMAGE
        assert bitmaps[1] == (BAD_TILE_IMAGE,) * 4
        assert bitmaps[2] == (BAD_TILE_IMAGE,) * 4

    def test_tile_after_transparent_block(self):
        """Test a real tile following a skipped block is still drawn."""
        image = Image.new("LA", (24, 8), (255, 255))
        image.paste((0, 0), (8, 0, 16, 8))
        image.paste((64, 255), (16, 0, 24, 8))
        patterns = image_to_chr(image)
        assert patterns.indices == [1, 1, 2]

        palette = [0x0F, 0x01, 0x02, 0x03] * 4
        bitmaps = chr_to_bitmaps(patterns.chr, palette, patterns.indices)
        assert len(bitmaps) == 3
        assert bitmaps[1] == (BAD_TILE_IMAGE,) * 4
        assert bitmaps[0][0].getpixel((0, 0)) == tuple(NES_COLORS[0x03].tolist())
        assert bitmaps[2][0] is not BAD_TILE_IMAGE
        assert bitmaps[2][0].getpixel((0, 0)) == tuple(NES_COLORS[0x01].tolist())

    def test_raw_bank_draws_every_tile(self):
        """Test a raw bank with a counting index list has no placeholders."""
        bitmaps = chr_to_bitmaps(bytes([0xFF] * 32), [0x0F] * 16, [1, 2])
        assert len(bitmaps) == 2
        assert all(b[0] is not BAD_TILE_IMAGE for b in bitmaps)

    def test_placeholder_pixels(self):
        """Test the placeholder is an 8x8 RGB image."""
        assert BAD_TILE_IMAGE.size == (8, 8)
        assert BAD_TILE_IMAGE.mode == "RGB"
        assert BAD_TILE_IMAGE.getpixel((0, 0)) == (0x39, 0x00, 0x00)


class TestChrSources:
    """Test loading CHR sources from disk."""

    def test_raw_chr_file(self, tmp_path):
        """Test non-PNG files are raw CHR with a counting index list."""
        path = tmp_path / "tiles.chr"
        path.write_bytes(bytes(range(40)))
        patterns = load_chr_source(path)
        assert len(patterns.chr) == 40
        assert patterns.indices == [1, 2]

    def test_missing_file(self, tmp_path):
        """Test a missing source loads as nothing."""
        assert load_chr_source(tmp_path / "missing.png") == (b"", [])
        assert load_chr_source("") == (b"", [])

    def test_png_source(self, png_factory):
        """Test PNG sources go through the codec."""
        image = Image.new("L", (16, 8), 255)
        patterns = load_chr_source(png_factory(image))
        assert len(patterns.chr) == 32
        assert patterns.indices == [1, 2]

    def test_chr_file_pads_bank(self, tmp_path):
        """Test ChrFile always holds a full zero-padded bank."""
        path = tmp_path / "tiles.chr"
        path.write_bytes(b"\xAA" * 48)
        chr_file = ChrFile(0, "chr", str(path))
        chr_file.load()
        assert len(chr_file.chr) == CHR_BANK_SIZE
        assert chr_file.num_tiles == 3
        assert chr_file.chr[47] == 0xAA
        assert chr_file.chr[48] == 0

        chr_file.set_path(str(tmp_path / "gone.chr"))
        assert chr_file.num_tiles == 0
        assert chr_file.indices == []


class TestCollisionLoader:
    """Test slicing collision mask images."""

    def test_slices_and_pads(self, png_factory):
        """Test 4x64 tiles are cut row by row, magenta past the image."""
        image = Image.new("RGB", (32, 8), (10, 20, 30))
        image.putpixel((8, 0), (1, 2, 3))
        tiles = load_collision_file(str(png_factory(image)), 1)
        assert len(tiles) == 256
        assert tiles[0].size == (8, 8)
        assert tiles[0].getpixel((0, 0)) == (10, 20, 30)
        assert tiles[1].getpixel((0, 0)) == (1, 2, 3)
        assert tiles[4].getpixel((0, 0)) == COLLISION_PAD_COLOR

    def test_scale(self, png_factory):
        """Test tiles grow with the scale."""
        tiles = load_collision_file(str(png_factory("RGB", (64, 64))), 2)
        assert tiles[0].size == (16, 16)

    def test_nothing_to_load(self, tmp_path):
        """Test empty paths, zero scale and unreadable files give no tiles."""
        bogus = tmp_path / "bogus.png"
        bogus.write_bytes(b"garbage")
        assert load_collision_file("", 1) == []
        assert load_collision_file(str(bogus), 0) == []
        assert load_collision_file(str(bogus), 1) == []
        assert load_collision_file(str(tmp_path / "missing.png"), 1) == []


def test_nes_palette_shape():
    """Test the master palette has 64 RGB entries."""
    assert NES_COLORS.shape == (64, 3)
    assert NES_COLORS.dtype == np.uint8
