import math
from dataclasses import dataclass
from typing import Optional

# Exact (cos, sin) for right angles, so 90-degree steps never pick up float noise.
_RIGHT_ANGLE_TRIG = {0: (1, 0), 90: (0, 1), 180: (-1, 0), 270: (0, -1)}


def _cos_sin(degrees: float) -> tuple[float, float]:
    key = degrees % 360
    if key in _RIGHT_ANGLE_TRIG:
        return _RIGHT_ANGLE_TRIG[key]
    rad = math.radians(degrees)
    return math.cos(rad), math.sin(rad)


def rotate_about(x: float, y: float, cx: float, cy: float, degrees: float) -> tuple[float, float]:
    """Rotate (x, y) about (cx, cy), y pointing down, positive = clockwise on screen."""
    c, s = _cos_sin(degrees)
    dx, dy = x - cx, y - cy
    return cx + dx * c - dy * s, cy + dx * s + dy * c


@dataclass
class InputTransform:
    """Maps device pointer positions to logical pixel indices and back."""

    width: int
    height: int
    zoom: float = 1.0
    origin_x: float = 0.0
    origin_y: float = 0.0

    def to_logical(self, screen_x: float, screen_y: float, rotation: int = 0) -> Optional[tuple[int, int]]:
        """
        (screen - origin) / zoom, then the inverse of the layer's display
        rotation about the canvas centre, then floor. None when the result lies
        outside the canvas; callers treat that as a no-op.
        """
        x = (screen_x - self.origin_x) / self.zoom
        y = (screen_y - self.origin_y) / self.zoom
        if rotation % 360:
            x, y = rotate_about(x, y, self.width / 2, self.height / 2, -rotation)
        ix, iy = math.floor(x), math.floor(y)
        if 0 <= ix < self.width and 0 <= iy < self.height:
            return ix, iy
        return None

    def to_logical_unbounded(self, screen_x: float, screen_y: float, rotation: int = 0) -> tuple[int, int]:
        x = (screen_x - self.origin_x) / self.zoom
        y = (screen_y - self.origin_y) / self.zoom
        if rotation % 360:
            x, y = rotate_about(x, y, self.width / 2, self.height / 2, -rotation)
        return math.floor(x), math.floor(y)

    def to_screen(self, x: float, y: float, rotation: int = 0) -> tuple[float, float]:
        if rotation % 360:
            x, y = rotate_about(x, y, self.width / 2, self.height / 2, rotation)
        return self.origin_x + x * self.zoom, self.origin_y + y * self.zoom
