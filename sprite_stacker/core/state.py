from dataclasses import dataclass, field
from typing import Optional

from .editor_tools import ToolType
from .history import HistoryEngine
from .layers import ClipboardLayer, LayerStack
from .pixel_buffer import RGBA
from .selection import SelectionEngine

DEFAULT_CANVAS_SIZE = (32, 32)
DEFAULT_COLOR: RGBA = (0, 0, 0, 255)


def initial_zoom(width: int, height: int) -> int:
    max_dim = max(width, height)
    if max_dim <= 64:
        return 8
    if max_dim <= 128:
        return 4
    if max_dim <= 256:
        return 2
    return 1


@dataclass
class EditorState:
    """Everything one editing session owns. Mutated only through EditorEngine."""

    stack: LayerStack
    history: HistoryEngine
    selection: SelectionEngine
    clipboard: Optional[ClipboardLayer] = None
    tool: ToolType = ToolType.PENCIL
    color: RGBA = DEFAULT_COLOR
    brush_size: int = 1
    zoom: int = 4
    show_grid: bool = False
    preview_rotation: float = 0.0
    preview_spacing: float = 1.0
    origin: tuple[float, float] = field(default=(0.0, 0.0))

    @property
    def width(self) -> int:
        return self.stack.width

    @property
    def height(self) -> int:
        return self.stack.height

    @classmethod
    def new(cls, width: int, height: int, layer_count: int = 1, history_limit: int = 50) -> "EditorState":
        stack = LayerStack.create(width, height, layer_count)
        history = HistoryEngine(limit=history_limit)
        history.reset(stack.snapshot())
        return cls(
            stack=stack,
            history=history,
            selection=SelectionEngine(width, height),
            zoom=initial_zoom(width, height),
        )
