"""
Project state <-> plain dict, the shape hosts store as JSON.

Loading is forgiving: every missing or malformed field falls back to its
default so one bad value never loses the whole project. Layers come back with
``buffer=None`` and are hydrated lazily from ``encodedImage``.
"""
import logging
from typing import Any

from .editor_tools import ToolType
from .history import HistoryEngine
from .layers import ClipboardLayer, Layer, LayerStack
from .selection import SelectionEngine
from .state import DEFAULT_CANVAS_SIZE, DEFAULT_COLOR, EditorState, initial_zoom
from ..utils.config import EditorConfig
from ..utils.helpers import clamp, clamp_float, color_to_hex, parse_color
from ..utils.validators import validate_canvas_size

logger = logging.getLogger(__name__)


def serialize_state(state: EditorState) -> dict:
    return {
        "canvasWidth": state.width,
        "canvasHeight": state.height,
        "layers": state.stack.snapshot(),
        "activeLayerId": state.stack.active_layer_id,
        "history": state.history.entries,
        "historyIndex": state.history.index,
        "clipboard": state.clipboard.to_dict() if state.clipboard else None,
        "zoomLevel": state.zoom,
        "showGrid": state.show_grid,
        "brushSize": state.brush_size,
        "primaryColor": color_to_hex(state.color),
        "selectedTool": state.tool.value,
        "previewRotation": state.preview_rotation,
        "previewOffset": {"x": 1, "y": state.preview_spacing},
    }


def _get(data: dict, key: str, convert, default):
    if key not in data or data[key] is None:
        return default
    try:
        return convert(data[key])
    except (TypeError, ValueError):
        logger.warning("Project field %s is malformed, using default", key)
        return default


def _canvas_size(data: dict) -> tuple[int, int]:
    try:
        return validate_canvas_size(data.get("canvasWidth"), data.get("canvasHeight"))
    except ValueError:
        logger.warning("Project canvas size missing or invalid, using %dx%d", *DEFAULT_CANVAS_SIZE)
        return DEFAULT_CANVAS_SIZE


def deserialize_state(data: Any, config: EditorConfig | None = None) -> EditorState:
    config = config or EditorConfig(load=False)
    if not isinstance(data, dict):
        logger.warning("Project data is not an object, starting blank")
        data = {}
    width, height = _canvas_size(data)

    raw_layers = data.get("layers")
    layers = []
    if isinstance(raw_layers, list):
        seen = set()
        for item in raw_layers:
            if not isinstance(item, dict):
                continue
            layer = Layer.from_snapshot(item, width, height)
            if layer.id in seen:
                continue
            seen.add(layer.id)
            layers.append(layer)
    if not layers:
        stack = LayerStack.create(width, height, 1)
    else:
        stack = LayerStack(width, height, layers, None)
    active_id = data.get("activeLayerId")
    stack.active_layer_id = active_id if stack.get(active_id) is not None else stack[0].id

    history = HistoryEngine(limit=config.history_limit)
    live = stack.snapshot()
    if isinstance(data.get("history"), list) and data["history"]:
        history.load(data["history"], data.get("historyIndex"), live)
    if not len(history):
        history.reset(live)

    tool_value = data.get("selectedTool")
    try:
        tool = ToolType(tool_value) if tool_value else ToolType.PENCIL
    except ValueError:
        logger.warning("Unknown tool %r, using pencil", tool_value)
        tool = ToolType.PENCIL

    offset = data.get("previewOffset") if isinstance(data.get("previewOffset"), dict) else {}

    return EditorState(
        stack=stack,
        history=history,
        selection=SelectionEngine(width, height),
        clipboard=ClipboardLayer.from_dict(data.get("clipboard")),
        tool=tool,
        color=parse_color(data.get("primaryColor")) or DEFAULT_COLOR,
        brush_size=clamp(_get(data, "brushSize", int, config.brush_size), 1, config.max_brush_size),
        zoom=clamp(_get(data, "zoomLevel", int, initial_zoom(width, height)), 1, config.max_zoom),
        show_grid=_get(data, "showGrid", bool, False),
        preview_rotation=clamp_float(_get(data, "previewRotation", float, 0.0), -180.0, 180.0),
        preview_spacing=clamp_float(_get(offset, "y", float, config.preview_spacing), 0.0, 1.0),
    )
