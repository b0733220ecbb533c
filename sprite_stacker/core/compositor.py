"""
Flat editor view and isometric stacked preview.

Flat view policy: only the active layer and the layers below it are shown.
Layers are drawn bottom-up (highest index first); the active layer uses its
own opacity, everything beneath it is drawn at opacity 1 and layers above the
active one are skipped. Each layer is shown turned by its ``rotation`` so the
picture lines up with InputTransform.to_logical; the preview applies the same
turn so both views agree.
"""
import logging
import math
from typing import Optional

from PIL import Image, ImageDraw, ImageOps

from .input_transform import InputTransform
from .layers import Layer, LayerStack
from .pixel_buffer import PixelBuffer
from .selection import FloatingSelection, Rect
from .transparency import create_checkerboard

logger = logging.getLogger(__name__)

ISO_CAMERA_PITCH_DEGREES = 45
Z_SPACING_SENSITIVITY = 5
DEFAULT_PREVIEW_SCALE = 18
GRID_COLOR = (0, 0, 0, 40)
SELECTION_COLOR = (0, 200, 255, 255)


def with_opacity(img: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1.0:
        return img
    out = img.copy()
    alpha = out.getchannel("A").point(lambda a: int(round(a * max(0.0, opacity))))
    out.putalpha(alpha)
    return out


def display_image(layer: Layer, floating: Optional[FloatingSelection] = None) -> Optional[Image.Image]:
    """The layer's pixels as shown on screen: floating block on top, display rotation applied."""
    if layer.buffer is None:
        return None
    img = layer.buffer.image
    if floating is not None:
        preview = layer.buffer.copy()
        preview.paste_overwrite(floating.pixels, floating.x, floating.y)
        img = preview.image
    if layer.rotation % 360:
        img = img.rotate(-layer.rotation, resample=Image.NEAREST, expand=False)
    return img


# ---------- Flat editor composite ----------
def composite_active_and_below(stack: LayerStack, floating: Optional[FloatingSelection] = None) -> Image.Image:
    base = Image.new("RGBA", (stack.width, stack.height), (0, 0, 0, 0))
    active = stack.active_index
    if active < 0:
        active = 0
    for i in range(len(stack) - 1, active - 1, -1):
        layer = stack[i]
        if not layer.is_visible:
            continue
        img = display_image(layer, floating if i == active else None)
        if img is None:
            continue
        base.alpha_composite(with_opacity(img, layer.opacity if i == active else 1.0))
    return base


def render_flat(stack: LayerStack, zoom: int = 1, floating: Optional[FloatingSelection] = None,
                selection: Optional[Rect] = None, show_grid: bool = False,
                grid_threshold: int = 4) -> Image.Image:
    zoom = max(1, int(zoom))
    comp = composite_active_and_below(stack, floating)
    if zoom != 1:
        comp = comp.resize((stack.width * zoom, stack.height * zoom), Image.NEAREST)

    composed = create_checkerboard(comp.size, square_size=8)
    composed.alpha_composite(comp)

    if show_grid and zoom >= grid_threshold:
        draw = ImageDraw.Draw(composed, "RGBA")
        w, h = composed.size
        for x in range(0, w, zoom):
            draw.line([(x, 0), (x, h)], fill=GRID_COLOR)
        for y in range(0, h, zoom):
            draw.line([(0, y), (w, y)], fill=GRID_COLOR)

    if selection is not None:
        active = stack.active_layer
        rotation = active.rotation if active is not None else 0
        view = InputTransform(stack.width, stack.height, zoom=zoom)
        corners = [
            (selection.x, selection.y),
            (selection.x + selection.width, selection.y),
            (selection.x + selection.width, selection.y + selection.height),
            (selection.x, selection.y + selection.height),
        ]
        points = [view.to_screen(x, y, rotation) for x, y in corners]
        draw = ImageDraw.Draw(composed, "RGBA")
        draw.polygon(points, outline=SELECTION_COLOR)
    return composed


# ---------- Isometric preview ----------
def _matmul(a, b):
    return [[sum(a[i][k] * b[k][j] for k in range(3)) for j in range(3)] for i in range(3)]


def _translate(tx, ty):
    return [[1, 0, tx], [0, 1, ty], [0, 0, 1]]


def _scale(sx, sy):
    return [[sx, 0, 0], [0, sy, 0], [0, 0, 1]]


def _rotate(degrees):
    r = math.radians(degrees)
    c, s = math.cos(r), math.sin(r)
    return [[c, -s, 0], [s, c, 0], [0, 0, 1]]


def _inverse_affine(m) -> tuple[float, float, float, float, float, float]:
    """Coefficients Pillow's AFFINE transform wants: output pixel -> source pixel."""
    a, b, c = m[0]
    d, e, f = m[1]
    det = a * e - b * d
    if abs(det) < 1e-12:
        raise ValueError("degenerate preview transform")
    ia, ib = e / det, -b / det
    id_, ie = -d / det, a / det
    return ia, ib, -(ia * c + ib * f), id_, ie, -(id_ * c + ie * f)


def layer_depth_offset(depth: int, spacing: float, scale: float) -> float:
    return depth * spacing * Z_SPACING_SENSITIVITY * scale


def preview_size(width: int, height: int, layer_count: int, spacing: float,
                 scale: float = DEFAULT_PREVIEW_SCALE) -> int:
    """
    Side of the square preview canvas. Sized from the deepest possible layer
    offset plus the layer's half-diagonal (the worst case over every yaw), so
    nothing is clipped for any spacing, layer count or rotation.
    """
    pitch = math.radians(ISO_CAMERA_PITCH_DEGREES)
    squash = max(abs(math.cos(pitch)), abs(math.sin(pitch)))
    deepest = layer_depth_offset(max(0, layer_count - 1), abs(spacing), scale)
    half_diagonal = math.hypot(width * scale, height * scale) / 2
    radius = squash * (math.hypot(deepest, deepest) + half_diagonal)
    return max(1, int(math.ceil(radius * 2)) + 2)


def preview_matrix(width: int, height: int, depth: int, spacing: float, yaw: float,
                   scale: float, canvas_size: int):
    pitch = math.radians(ISO_CAMERA_PITCH_DEGREES)
    pos = layer_depth_offset(depth, spacing, scale)
    m = _translate(canvas_size / 2, canvas_size / 2)
    m = _matmul(m, _rotate(ISO_CAMERA_PITCH_DEGREES))
    m = _matmul(m, _scale(math.cos(pitch), math.sin(pitch)))
    m = _matmul(m, _translate(pos, pos))
    m = _matmul(m, _rotate(yaw))
    m = _matmul(m, _translate(-width * scale / 2, -height * scale / 2))
    return _matmul(m, _scale(scale, scale))


def render_preview(stack: LayerStack, yaw: float = 0.0, spacing: float = 1.0,
                   scale: float = DEFAULT_PREVIEW_SCALE) -> Image.Image:
    """
    Each visible layer, back (highest index) to front, is pushed along the
    45-degree diagonal by its depth, turned by the object yaw and drawn through
    the fixed camera pitch. Layers carry the same display rotation as the
    flat view. Layer opacity is respected.
    """
    size = preview_size(stack.width, stack.height, len(stack), spacing, scale)
    out = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    for depth in range(len(stack) - 1, -1, -1):
        layer = stack[depth]
        img = display_image(layer) if layer.is_visible else None
        if img is None:
            continue
        m = preview_matrix(stack.width, stack.height, depth, spacing, yaw, scale, size)
        projected = img.transform(
            (size, size), Image.Transform.AFFINE, _inverse_affine(m), resample=Image.NEAREST
        )
        out.alpha_composite(with_opacity(projected, layer.opacity))
    return out


# ---------- Thumbnails / export ----------
def layer_thumbnail(layer: Layer, size: int = 32) -> Image.Image:
    """Contained, centred on a transparent square, nearest-neighbour so pixels stay crisp."""
    out = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    if layer.buffer is None:
        return out
    fitted = ImageOps.contain(layer.buffer.image, (size, size), method=Image.NEAREST)
    x = (size - fitted.width) // 2
    y = (size - fitted.height) // 2
    out.paste(fitted, (x, y), fitted)
    return out


def export_layers(stack: LayerStack) -> list[tuple[str, PixelBuffer, int, int]]:
    """Read-only copies of every visible, hydrated layer for external encoders."""
    exported = []
    for layer in stack:
        if not layer.is_visible:
            continue
        if layer.buffer is None:
            logger.warning("Skipping layer %s: not hydrated", layer.name)
            continue
        exported.append((layer.name, layer.buffer.copy(), stack.width, stack.height))
    return exported
