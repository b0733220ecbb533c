import logging
from collections import deque
from enum import Enum
from typing import Iterator, Optional

from PIL import Image

from .errors import FillOverflowError
from .pixel_buffer import RGBA, PixelBuffer

logger = logging.getLogger(__name__)


class ToolType(Enum):
    PENCIL = "pencil"
    ERASER = "eraser"
    FILL = "fill"
    EYEDROPPER = "eyedropper"
    SELECTION = "selection"
    MOVE = "move"


class RotateDirection(Enum):
    LEFT = "left"
    RIGHT = "right"


def brush_box(cx: int, cy: int, brush_size: int) -> tuple[int, int, int, int]:
    """Half-open box of the square stamp centred on (cx, cy); even sizes lean up-left."""
    size = max(1, int(brush_size))
    x0 = cx - size // 2
    y0 = cy - size // 2
    return x0, y0, x0 + size, y0 + size


def stamp(buffer: PixelBuffer, cx: int, cy: int, color: RGBA, brush_size: int = 1):
    box = buffer.clip_box(*brush_box(cx, cy, brush_size))
    if not box:
        return
    x0, y0, x1, y1 = box
    if color[3] == 255:
        buffer.image.paste(tuple(color), box)
    elif color[3] > 0:
        tile = Image.new("RGBA", (x1 - x0, y1 - y0), tuple(color))
        buffer.image.alpha_composite(tile, (x0, y0))


def erase(buffer: PixelBuffer, cx: int, cy: int, brush_size: int = 1):
    x0, y0, x1, y1 = brush_box(cx, cy, brush_size)
    buffer.clear_rect(x0, y0, x1 - x0, y1 - y0)


def bresenham(p0: tuple[int, int], p1: tuple[int, int]) -> Iterator[tuple[int, int]]:
    x0, y0 = p0
    x1, y1 = p1
    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    x, y = x0, y0
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy
    while True:
        yield x, y
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            x += sx
        if e2 < dx:
            err += dx
            y += sy


def draw_brush_line(buffer: PixelBuffer, p0: tuple[int, int], p1: tuple[int, int],
                    color: RGBA, brush_size: int, erase_mode: bool = False) -> int:
    steps = 0
    for x, y in bresenham(p0, p1):
        if erase_mode:
            erase(buffer, x, y, brush_size)
        else:
            stamp(buffer, x, y, color, brush_size)
        steps += 1
    return steps


def flood_fill(buffer: PixelBuffer, seed: tuple[int, int], fill_color: RGBA, cap_factor: float = 2) -> int:
    """
    4-connected breadth-first fill on exact RGBA equality with the seed pixel.
    Works on a copy and only writes back on success, so an aborted fill leaves
    the buffer untouched. Returns the number of pixels painted.
    """
    w, h = buffer.size
    x, y = seed
    if not buffer.in_bounds(x, y):
        return 0
    fill_color = tuple(fill_color)
    target = buffer.get_pixel(x, y)
    if target == fill_color:
        return 0

    work = buffer.image.copy()
    px = work.load()
    cap = max(1, int(cap_factor * w * h))
    queue = deque([(x, y)])
    count = 0

    while queue:
        if len(queue) > cap:
            logger.warning("Fill queue exceeded safety limit (%d > %d), aborting", len(queue), cap)
            raise FillOverflowError(len(queue), cap)
        x, y = queue.popleft()
        if px[x, y] != target:
            continue
        px[x, y] = fill_color
        count += 1
        for nx, ny in ((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)):
            if 0 <= nx < w and 0 <= ny < h:
                queue.append((nx, ny))

    buffer.image = work
    logger.debug("Filled %d pixels from %s", count, seed)
    return count


def rotate_buffer(buffer: PixelBuffer, clockwise: bool) -> PixelBuffer:
    """
    Fresh same-size buffer holding the source turned 90 degrees about the
    canvas centre. Square canvases transpose exactly; on other shapes the
    corners that leave the canvas are dropped.
    """
    # Pillow angles run counter-clockwise
    angle = -90 if clockwise else 90
    rotated = buffer.image.rotate(angle, resample=Image.NEAREST, expand=False)
    return PixelBuffer(rotated)


def rotate_layer(layer, direction: RotateDirection | str):
    direction = RotateDirection(direction)
    clockwise = direction is RotateDirection.RIGHT
    layer.replace_buffer(rotate_buffer(layer.buffer, clockwise))
    layer.rotation = (layer.rotation + (90 if clockwise else -90)) % 360
    logger.debug("Rotated layer %s %s, rotation now %d", layer.name, direction.value, layer.rotation)


def sample_color(layers, x: int, y: int) -> Optional[RGBA]:
    """Topmost visible, non-transparent pixel under (x, y)."""
    for layer in layers:
        if not layer.is_visible or layer.buffer is None:
            continue
        color = layer.buffer.get_pixel(x, y)
        if color is not None and color[3] != 0:
            return color
    return None
