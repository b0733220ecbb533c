import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

# Pointer travel, in logical pixels on either axis, that turns a press inside
# the selection into a drag.
DRAG_THRESHOLD = 2


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_points(cls, p0: tuple[int, int], p1: tuple[int, int]) -> "Rect":
        """Inclusive rectangle spanned by two pixel positions."""
        x0, x1 = sorted((p0[0], p1[0]))
        y0, y1 = sorted((p0[1], p1[1]))
        return cls(x0, y0, x1 - x0 + 1, y1 - y0 + 1)

    @classmethod
    def coerce(cls, value) -> "Rect":
        """A Rect from a Rect, an {x, y, width, height} dict or a 4-sequence."""
        if isinstance(value, Rect):
            return value
        if isinstance(value, dict):
            missing = [k for k in ("x", "y", "width", "height") if k not in value]
            if missing:
                raise ValueError(f"rect is missing {', '.join(missing)}")
            value = (value["x"], value["y"], value["width"], value["height"])
        if not isinstance(value, (list, tuple)) or len(value) != 4:
            raise ValueError(f"not a rect: {value!r}")
        try:
            return cls(*(int(v) for v in value))
        except (TypeError, ValueError):
            raise ValueError(f"rect fields must be integers: {value!r}") from None

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def clamped(self, width: int, height: int) -> Optional["Rect"]:
        x0, y0 = max(0, self.x), max(0, self.y)
        x1 = min(width, self.x + self.width)
        y1 = min(height, self.y + self.height)
        if x0 >= x1 or y0 >= y1:
            return None
        return Rect(x0, y0, x1 - x0, y1 - y0)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class FloatingSelection:
    pixels: PixelBuffer
    x: int
    y: int

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.pixels.width and self.y <= y < self.y + self.pixels.height


class SelectionState(Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    SELECTED = "selected"
    FLOATING = "floating"


class SelectionEngine:
    """
    Rectangular selection plus an optional lifted ("floating") block of pixels.
    History checkpoints are the caller's job: take one before lift(clear_original=True)
    and before stamp().
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.selection: Optional[Rect] = None
        self.floating: Optional[FloatingSelection] = None
        self._select_start: Optional[tuple[int, int]] = None
        self._select_end: Optional[tuple[int, int]] = None
        self._press: Optional[tuple[int, int]] = None
        self._press_offset: tuple[int, int] = (0, 0)

    @property
    def state(self) -> SelectionState:
        if self.floating is not None:
            return SelectionState.FLOATING
        if self._select_start is not None:
            return SelectionState.SELECTING
        if self.selection is not None:
            return SelectionState.SELECTED
        return SelectionState.IDLE

    def reset(self):
        self.selection = None
        self.floating = None
        self._select_start = None
        self._select_end = None
        self._press = None

    # ---------- Finalized rectangle ----------
    def set_selection(self, rect: Optional[Rect]):
        self.floating = None
        self._press = None
        self.selection = rect.clamped(self.width, self.height) if rect is not None else None

    # ---------- Rubber-band selecting ----------
    def begin_select(self, point: tuple[int, int]):
        self.floating = None
        self.selection = None
        self._select_start = point
        self._select_end = point

    def update_select(self, point: tuple[int, int]):
        if self._select_start is not None:
            self._select_end = point

    @property
    def pending_rect(self) -> Optional[Rect]:
        if self._select_start is None or self._select_end is None:
            return None
        return Rect.from_points(self._select_start, self._select_end).clamped(self.width, self.height)

    def finish_select(self) -> Optional[Rect]:
        """A press released without moving is a click and clears the selection."""
        start, end = self._select_start, self._select_end
        self._select_start = self._select_end = None
        if start is None or end is None or start == end:
            self.selection = None
        else:
            self.selection = Rect.from_points(start, end).clamped(self.width, self.height)
        return self.selection

    # ---------- Lift / move / stamp ----------
    def lift(self, buffer: PixelBuffer, clear_original: bool) -> Optional[FloatingSelection]:
        rect = self.selection
        if rect is None:
            return None
        pixels = buffer.crop(rect.x, rect.y, rect.width, rect.height)
        if clear_original:
            buffer.clear_rect(rect.x, rect.y, rect.width, rect.height)
        self.floating = FloatingSelection(pixels, rect.x, rect.y)
        self.selection = None
        logger.debug("Lifted %dx%d at (%d, %d), clear=%s", rect.width, rect.height, rect.x, rect.y, clear_original)
        return self.floating

    def move_floating(self, x: int, y: int) -> bool:
        if self.floating is None:
            return False
        self.floating.x = int(x)
        self.floating.y = int(y)
        return True

    def stamp(self, buffer: PixelBuffer) -> bool:
        if self.floating is None:
            return False
        f = self.floating
        buffer.paste_overwrite(f.pixels, f.x, f.y)
        logger.debug("Stamped floating selection at (%d, %d)", f.x, f.y)
        self.floating = None
        self._press = None
        return True

    def cancel_floating(self):
        self.floating = None
        self._press = None

    # ---------- Deferred drag-to-move ----------
    def press(self, point: tuple[int, int]) -> bool:
        """
        Remember a press inside the selection (or the floating block).
        Returns False when the point is outside, so the caller can start a new
        rubber-band instead.
        """
        if self.floating is not None and self.floating.contains(*point):
            self._press = point
            self._press_offset = (point[0] - self.floating.x, point[1] - self.floating.y)
            return True
        if self.selection is not None and self.selection.contains(*point):
            self._press = point
            self._press_offset = (point[0] - self.selection.x, point[1] - self.selection.y)
            return True
        self._press = None
        return False

    @property
    def is_pressed(self) -> bool:
        return self._press is not None

    def needs_lift(self, point: tuple[int, int]) -> bool:
        """True once a press inside an un-lifted selection has travelled far enough."""
        if self._press is None or self.floating is not None or self.selection is None:
            return False
        return (abs(point[0] - self._press[0]) >= DRAG_THRESHOLD
                or abs(point[1] - self._press[1]) >= DRAG_THRESHOLD)

    def drag_to(self, point: tuple[int, int], buffer: PixelBuffer | None = None) -> bool:
        """
        Follow the pointer. When needs_lift(point) is true the lift (clearing the
        source) and the first move happen together, so the pixels are never absent
        from both the buffer and the overlay. Returns True if anything moved.
        """
        if self._press is None:
            return False
        if self.floating is None:
            if buffer is None or not self.needs_lift(point):
                return False
            self.lift(buffer, clear_original=True)
        ox, oy = self._press_offset
        return self.move_floating(point[0] - ox, point[1] - oy)

    def release(self):
        self._press = None
