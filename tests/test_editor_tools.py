"""
Tests for the raster operations: stamp/erase, Bresenham lines, flood fill,
right-angle rotation and the eyedropper lookup.
"""
import pytest

from sprite_stacker.core.editor_tools import (
    RotateDirection, bresenham, brush_box, draw_brush_line, erase, flood_fill,
    rotate_buffer, rotate_layer, sample_color, stamp,
)
from sprite_stacker.core.errors import FillOverflowError
from sprite_stacker.core.layers import Layer
from sprite_stacker.core.pixel_buffer import PixelBuffer

from conftest import BLACK, BLUE, CLEAR, RED


# ══════════════════════════════════════════════════════════════════════════
# Stamp / erase
# ══════════════════════════════════════════════════════════════════════════

class TestStamp:

    def test_brush_box_even_size_leans_up_left(self):
        assert brush_box(3, 3, 2) == (2, 2, 4, 4)
        assert brush_box(3, 3, 3) == (2, 2, 5, 5)
        assert brush_box(3, 3, 1) == (3, 3, 4, 4)

    def test_single_pixel(self, buf8):
        stamp(buf8, 4, 4, RED, 1)
        assert buf8.get_pixel(4, 4) == RED
        assert buf8.count_opaque() == 1

    def test_square_brush(self, buf8):
        stamp(buf8, 3, 3, RED, 2)
        assert buf8.count_opaque() == 4
        assert buf8.get_pixel(2, 2) == RED
        assert buf8.get_pixel(3, 3) == RED
        assert buf8.get_pixel(4, 4) == CLEAR

    def test_clipped_at_edge(self, buf8):
        stamp(buf8, 0, 0, RED, 3)
        assert buf8.count_opaque() == 4

    def test_fully_outside_is_noop(self, buf8):
        stamp(buf8, -10, -10, RED, 3)
        assert buf8.count_opaque() == 0

    def test_semi_transparent_blends(self, buf8):
        stamp(buf8, 1, 1, (255, 0, 0, 128), 1)
        r, g, b, a = buf8.get_pixel(1, 1)
        assert 0 < a < 255
        assert r > 200 and g == 0 and b == 0

    def test_erase(self, buf8):
        buf8.image.paste(RED, (0, 0, 8, 8))
        erase(buf8, 4, 4, 2)
        assert buf8.get_pixel(3, 3) == CLEAR
        assert buf8.get_pixel(4, 4) == CLEAR
        assert buf8.count_opaque() == 60


# ══════════════════════════════════════════════════════════════════════════
# Lines
# ══════════════════════════════════════════════════════════════════════════

class TestLines:

    def test_bresenham_diagonal(self):
        assert list(bresenham((0, 0), (3, 3))) == [(0, 0), (1, 1), (2, 2), (3, 3)]

    def test_bresenham_single_point(self):
        assert list(bresenham((2, 5), (2, 5))) == [(2, 5)]

    def test_bresenham_includes_both_endpoints(self):
        pts = list(bresenham((7, 1), (0, 4)))
        assert pts[0] == (7, 1)
        assert pts[-1] == (0, 4)
        assert len(pts) == 8

    def test_diagonal_stroke_on_8x8(self, buf8):
        draw_brush_line(buf8, (0, 0), (7, 7), BLACK, 1)
        for x in range(8):
            for y in range(8):
                expected = BLACK if x == y else CLEAR
                assert buf8.get_pixel(x, y) == expected

    @pytest.mark.parametrize("size", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("p0,p1", [
        ((1, 2), (14, 5)),    # shallow
        ((3, 1), (6, 14)),    # steep
        ((14, 5), (1, 2)),    # reversed
        ((6, 14), (3, 1)),    # reversed steep
        ((7, 1), (7, 14)),    # vertical
        ((1, 9), (14, 9)),    # horizontal
        ((14, 1), (1, 14)),   # anti-diagonal
    ])
    def test_stroke_leaves_no_gap(self, p0, p1, size):
        buf = PixelBuffer.blank(16, 16)
        steps = draw_brush_line(buf, p0, p1, BLACK, size)
        pts = list(bresenham(p0, p1))
        dx, dy = abs(p1[0] - p0[0]), abs(p1[1] - p0[1])
        assert steps == len(pts) == max(dx, dy) + 1
        assert (pts[0], pts[-1]) == (p0, p1)
        for (ax, ay), (bx, by) in zip(pts, pts[1:]):
            assert max(abs(bx - ax), abs(by - ay)) == 1
        for x, y in pts:
            x0, y0, x1, y1 = buf.clip_box(*brush_box(x, y, size))
            for px in range(x0, x1):
                for py in range(y0, y1):
                    assert buf.get_pixel(px, py) == BLACK
        # every step along the dominant axis has paint
        if dx >= dy:
            lo, hi = sorted((p0[0], p1[0]))
            for x in range(lo, hi + 1):
                assert any(buf.get_pixel(x, y) == BLACK for y in range(16))
        else:
            lo, hi = sorted((p0[1], p1[1]))
            for y in range(lo, hi + 1):
                assert any(buf.get_pixel(x, y) == BLACK for x in range(16))

    def test_erase_line(self, buf8):
        buf8.image.paste(RED, (0, 0, 8, 8))
        draw_brush_line(buf8, (0, 3), (7, 3), RED, 1, erase_mode=True)
        assert buf8.count_opaque() == 56
        assert buf8.get_pixel(5, 3) == CLEAR


# ══════════════════════════════════════════════════════════════════════════
# Flood fill
# ══════════════════════════════════════════════════════════════════════════

class TestFloodFill:

    def test_fill_empty_4x4(self, buf4):
        assert flood_fill(buf4, (0, 0), RED) == 16
        assert all(buf4.get_pixel(x, y) == RED for x in range(4) for y in range(4))

    def test_fill_stops_at_boundary(self):
        buf = PixelBuffer.blank(5, 5)
        draw_brush_line(buf, (2, 0), (2, 4), BLUE, 1)
        assert flood_fill(buf, (0, 0), RED) == 10
        assert buf.get_pixel(1, 4) == RED
        assert buf.get_pixel(2, 2) == BLUE
        assert buf.get_pixel(3, 2) == CLEAR

    def test_alpha_254_is_a_different_colour(self, buf4):
        buf4.set_pixel(0, 0, (255, 0, 0, 254))
        assert flood_fill(buf4, (2, 2), RED) == 15
        assert buf4.get_pixel(0, 0) == (255, 0, 0, 254)

    def test_fill_is_idempotent(self, buf4):
        flood_fill(buf4, (1, 1), RED)
        before = buf4.to_bytes()
        assert flood_fill(buf4, (1, 1), RED) == 0
        assert buf4.to_bytes() == before

    def test_seed_out_of_bounds(self, buf4):
        assert flood_fill(buf4, (4, 0), RED) == 0
        assert buf4.count_opaque() == 0

    def test_overflow_aborts_and_leaves_buffer_untouched(self):
        buf = PixelBuffer.blank(16, 16)
        with pytest.raises(FillOverflowError):
            flood_fill(buf, (0, 0), RED, cap_factor=0.01)
        assert buf.count_opaque() == 0


# ══════════════════════════════════════════════════════════════════════════
# Rotation
# ══════════════════════════════════════════════════════════════════════════

class TestRotation:

    def test_clockwise_moves_top_left_to_top_right(self, buf4):
        buf4.set_pixel(0, 0, RED)
        out = rotate_buffer(buf4, clockwise=True)
        assert out.get_pixel(3, 0) == RED
        assert out.count_opaque() == 1
        assert buf4.get_pixel(0, 0) == RED

    def test_counter_clockwise_moves_top_left_to_bottom_left(self, buf4):
        buf4.set_pixel(0, 0, RED)
        out = rotate_buffer(buf4, clockwise=False)
        assert out.get_pixel(0, 3) == RED

    def test_four_turns_restore_layer(self):
        layer = Layer.blank("L", 6, 6)
        layer.buffer.set_pixel(1, 0, RED)
        layer.buffer.set_pixel(4, 5, BLUE)
        before = layer.buffer.to_bytes()
        for _ in range(4):
            rotate_layer(layer, RotateDirection.RIGHT)
        assert layer.rotation == 0
        assert layer.buffer.to_bytes() == before

    def test_rotation_accumulates(self):
        layer = Layer.blank("L", 4, 4)
        rotate_layer(layer, "left")
        assert layer.rotation == 270
        rotate_layer(layer, "right")
        rotate_layer(layer, "right")
        assert layer.rotation == 90

    def test_rotate_refreshes_encoding(self):
        layer = Layer.blank("L", 4, 4)
        layer.buffer.set_pixel(0, 0, RED)
        rotate_layer(layer, "right")
        assert PixelBuffer.from_data_url(layer.encoded_image).get_pixel(3, 0) == RED


# ══════════════════════════════════════════════════════════════════════════
# Eyedropper
# ══════════════════════════════════════════════════════════════════════════

class TestSampleColor:

    def test_topmost_visible_wins(self, stack3):
        stack3[1].buffer.set_pixel(0, 0, BLUE)
        stack3[2].buffer.set_pixel(0, 0, RED)
        assert sample_color(stack3, 0, 0) == BLUE

    def test_hidden_layers_skipped(self, stack3):
        stack3[1].buffer.set_pixel(0, 0, BLUE)
        stack3[2].buffer.set_pixel(0, 0, RED)
        stack3[1].is_visible = False
        assert sample_color(stack3, 0, 0) == RED

    def test_nothing_under_pointer(self, stack3):
        assert sample_color(stack3, 1, 1) is None
        assert sample_color(stack3, 10, 10) is None
