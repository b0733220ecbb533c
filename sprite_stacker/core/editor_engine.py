import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from PIL import Image

from . import compositor
from .editor_tools import (
    RotateDirection, ToolType, draw_brush_line, erase, flood_fill, rotate_layer, sample_color, stamp,
)
from .errors import (
    LastLayerError, LayerLockedError, SpriteStackerError,
)
from .hydration import Hydrator
from .input_transform import InputTransform
from .layers import ClipboardLayer, Layer, new_layer_id
from .persistence import deserialize_state, serialize_state
from .selection import Rect
from .state import EditorState
from ..utils.config import EditorConfig
from ..utils.helpers import clamp, clamp_float, color_to_hex, parse_color
from ..utils.validators import validate_canvas_size, validate_layer_count

logger = logging.getLogger(__name__)


@dataclass
class _Stroke:
    """Pointer interaction in progress between press and release/leave."""
    kind: str  # "draw", "select" or "drag"
    layer_id: Optional[str] = None
    last: Optional[tuple[int, int]] = None
    erase: bool = False


class EditorEngine:
    """
    Owns one EditorState and funnels every change through dispatch().

    Pointer commands take device coordinates and resolve them through the
    view's InputTransform; anything landing outside the canvas is ignored.
    Undoable commands checkpoint history with the state before the change.
    """

    def __init__(self, config: EditorConfig | None = None, on_status=None, on_layers_changed=None):
        self.config = config or EditorConfig(load=False)
        self.on_status: Callable[[str], None] = on_status or (lambda text: None)
        self.on_layers_changed: Callable[[], None] = on_layers_changed or (lambda: None)
        self.state: Optional[EditorState] = None
        self.hydrator = Hydrator(on_hydrated=self._layer_hydrated)
        self._stroke: Optional[_Stroke] = None
        self._actions: dict[str, Callable[..., Any]] = {
            "initProject": self.init_project,
            "loadState": self.load_state,
            "strokeStart": self.stroke_start,
            "strokeMove": self.stroke_move,
            "strokeEnd": self.stroke_end,
            "pointerLeave": self.pointer_leave,
            "sample": self.sample,
            "fillAt": self.fill_at,
            "setSelection": self.set_selection,
            "liftSelection": self.lift_selection,
            "moveFloating": self.move_floating,
            "stampFloating": self.stamp_floating,
            "cancelFloating": self.cancel_floating,
            "undo": self.undo,
            "redo": self.redo,
            "rotateLayer": self.rotate_layer,
            "addLayer": self.add_layer,
            "deleteLayer": self.delete_layer,
            "reorderLayers": self.reorder_layers,
            "selectLayer": self.select_layer,
            "setLayerVisibility": self.set_layer_visibility,
            "setLayerLock": self.set_layer_lock,
            "setLayerOpacity": self.set_layer_opacity,
            "renameLayer": self.rename_layer,
            "copyLayer": self.copy_layer,
            "cutLayer": self.cut_layer,
            "pasteLayer": self.paste_layer,
            "setTool": self.set_tool,
            "setColor": self.set_color,
            "setBrushSize": self.set_brush_size,
            "setZoom": self.set_zoom,
            "setOrigin": self.set_origin,
            "toggleGrid": self.toggle_grid,
            "setPreviewRotation": self.set_preview_rotation,
            "setPreviewSpacing": self.set_preview_spacing,
        }

    # ---------- Dispatch ----------
    def dispatch(self, action: str, **payload) -> Any:
        """Run one command. Editor errors become a status notice, never an exception."""
        handler = self._actions.get(action)
        if handler is None:
            logger.warning("Unknown action: %s", action)
            self.on_status(f"Unknown action: {action}")
            return None
        if self.state is None and action not in ("initProject", "loadState"):
            logger.debug("Ignoring %s before a project is initialized", action)
            return None
        try:
            return handler(**payload)
        except SpriteStackerError as e:
            logger.warning("%s rejected: %s", action, e)
            self.on_status(str(e))
        except (ValueError, TypeError) as e:
            # bad payload: wrong keys or values of the wrong shape
            logger.warning("%s failed: %s", action, e)
            self.on_status(f"Invalid {action}: {e}")
        return None

    # ---------- Project lifecycle ----------
    def init_project(self, width: int, height: int, layer_count: int = 1):
        w, h = validate_canvas_size(width, height)
        n = validate_layer_count(layer_count)
        self.hydrator.cancel_all()
        self._stroke = None
        self.state = EditorState.new(w, h, n, history_limit=self.config.history_limit)
        self.state.brush_size = clamp(self.config.brush_size, 1, self.config.max_brush_size)
        self.on_status(f"New {w}x{h} canvas, {n} layer(s)")
        self.on_layers_changed()

    def load_state(self, data: dict):
        self.hydrator.cancel_all()
        self._stroke = None
        self.state = deserialize_state(data, self.config)
        self.hydrator.request_all(self.state.stack)
        self.on_status("Project loaded")
        self.on_layers_changed()

    def save_state(self) -> dict:
        self._finish_stroke()
        return serialize_state(self.state)

    # ---------- Helpers ----------
    @property
    def stack(self):
        return self.state.stack

    @property
    def history(self):
        return self.state.history

    @property
    def selection(self):
        return self.state.selection

    def view_transform(self) -> InputTransform:
        ox, oy = self.state.origin
        return InputTransform(self.state.width, self.state.height, self.state.zoom, ox, oy)

    def _active_rotation(self) -> int:
        layer = self.stack.active_layer
        return layer.rotation if layer is not None else 0

    def to_logical(self, screen_x: float, screen_y: float) -> Optional[tuple[int, int]]:
        return self.view_transform().to_logical(screen_x, screen_y, self._active_rotation())

    def _to_logical_clamped(self, screen_x: float, screen_y: float) -> tuple[int, int]:
        x, y = self.view_transform().to_logical_unbounded(screen_x, screen_y, self._active_rotation())
        return clamp(x, 0, self.state.width - 1), clamp(y, 0, self.state.height - 1)

    def _push_state(self, pre_snapshot: list[dict] | None = None):
        self.history.checkpoint(pre_snapshot if pre_snapshot is not None else self.stack.snapshot())

    def ensure_hydrated(self, layer: Layer) -> bool:
        """Edits on a layer still waiting for its decode finish the decode first."""
        if layer.buffer is not None:
            return True
        if not self.hydrator.is_pending(layer.id):
            self.hydrator.request(layer)
        self.hydrator.resolve(layer.id)
        return layer.buffer is not None

    def _editable_layer(self) -> Optional[Layer]:
        layer = self.stack.active_layer
        if layer is None:
            return None
        if layer.is_locked:
            raise LayerLockedError(layer.name)
        self.ensure_hydrated(layer)
        return layer

    def _layer_hydrated(self, layer: Layer):
        logger.debug("Layer %s ready", layer.name)
        self.on_layers_changed()

    def pump_hydration(self) -> int:
        return self.hydrator.pump()

    def can_undo(self) -> bool:
        return self.state is not None and self.history.can_undo()

    def can_redo(self) -> bool:
        return self.state is not None and self.history.can_redo()

    # ---------- Pointer: strokes, selection drags ----------
    def stroke_start(self, x: float, y: float):
        self._finish_stroke()
        tool = self.state.tool
        if tool == ToolType.FILL:
            return self.fill_at(x, y)
        if tool == ToolType.EYEDROPPER:
            return self.sample(x, y)
        point = self.to_logical(x, y)
        if point is None:
            return None
        if tool in (ToolType.PENCIL, ToolType.ERASER):
            layer = self._editable_layer()
            if layer is None:
                return None
            self._push_state()
            is_erase = tool == ToolType.ERASER
            if is_erase:
                erase(layer.buffer, point[0], point[1], self.state.brush_size)
            else:
                stamp(layer.buffer, point[0], point[1], self.state.color, self.state.brush_size)
            self._stroke = _Stroke("draw", layer.id, point, is_erase)
        elif tool in (ToolType.SELECTION, ToolType.MOVE):
            if self.selection.press(point):
                self._stroke = _Stroke("drag", self.stack.active_layer_id, point)
            elif tool == ToolType.SELECTION:
                if self.selection.floating is not None:
                    self.stamp_floating()
                self.selection.begin_select(point)
                self._stroke = _Stroke("select", last=point)
        return point

    def stroke_move(self, x: float, y: float):
        stroke = self._stroke
        if stroke is None:
            return None
        if stroke.kind == "draw":
            point = self.to_logical(x, y)
            if point is None:
                # left the canvas mid-stroke: commit what was drawn
                self._finish_stroke()
                return None
            layer = self.stack.get(stroke.layer_id)
            if layer is None or layer.buffer is None:
                self._stroke = None
                return None
            if point != stroke.last:
                draw_brush_line(layer.buffer, stroke.last, point, self.state.color,
                                self.state.brush_size, erase_mode=stroke.erase)
                stroke.last = point
            return point
        point = self._to_logical_clamped(x, y)
        if stroke.kind == "select":
            self.selection.update_select(point)
        elif stroke.kind == "drag":
            self._drag_selection(point)
        stroke.last = point
        return point

    def _drag_selection(self, point: tuple[int, int]):
        sel = self.selection
        if sel.floating is None and sel.needs_lift(point):
            layer = self._editable_layer()
            if layer is None:
                return
            self._push_state()
            # lift and first move land together
            sel.drag_to(point, layer.buffer)
            layer.refresh_encoding()
            self.on_layers_changed()
        else:
            sel.drag_to(point)

    def stroke_end(self, x: float | None = None, y: float | None = None):
        if self._stroke is not None and x is not None and y is not None:
            self.stroke_move(x, y)
        self._finish_stroke()

    def pointer_leave(self):
        self._finish_stroke()

    def _finish_stroke(self):
        stroke, self._stroke = self._stroke, None
        if stroke is None or self.state is None:
            return
        if stroke.kind == "draw":
            layer = self.stack.get(stroke.layer_id)
            if layer is not None:
                layer.refresh_encoding()
            self.on_layers_changed()
        elif stroke.kind == "select":
            rect = self.selection.finish_select()
            self.on_status(f"Selection {rect.width}x{rect.height}" if rect else "Selection cleared")
        elif stroke.kind == "drag":
            self.selection.release()

    # ---------- Single-click tools ----------
    def sample(self, x: float, y: float) -> Optional[str]:
        point = self.to_logical(x, y)
        if point is None:
            return None
        for layer in self.stack:
            if layer.is_visible:
                self.ensure_hydrated(layer)
        color = sample_color(self.stack, *point)
        if color is None:
            return None
        self.state.color = color
        hex_color = color_to_hex(color)
        self.on_status(f"Color: {hex_color}")
        return hex_color

    def fill_at(self, x: float, y: float) -> int:
        point = self.to_logical(x, y)
        if point is None:
            return 0
        layer = self._editable_layer()
        if layer is None:
            return 0
        pre = self.stack.snapshot()
        count = flood_fill(layer.buffer, point, self.state.color, self.config.fill_cap_factor)
        if count:
            self._push_state(pre)
            layer.refresh_encoding()
            self.on_layers_changed()
        return count

    # ---------- Selection ----------
    def set_selection(self, rect=None):
        if rect is not None:
            rect = Rect.coerce(rect)
        self._finish_stroke()
        if self.selection.floating is not None:
            self.stamp_floating()
        self.selection.set_selection(rect)
        return self.selection.selection

    def lift_selection(self, clear_original: bool = True) -> bool:
        if self.selection.selection is None:
            self.on_status("Nothing selected")
            return False
        if clear_original:
            layer = self._editable_layer()
            if layer is None:
                return False
            self._push_state()
            self.selection.lift(layer.buffer, clear_original=True)
            layer.refresh_encoding()
            self.on_layers_changed()
        else:
            layer = self.stack.active_layer
            if layer is None or not self.ensure_hydrated(layer):
                return False
            self.selection.lift(layer.buffer, clear_original=False)
        return True

    def move_floating(self, x: int, y: int) -> bool:
        return self.selection.move_floating(x, y)

    def stamp_floating(self) -> bool:
        if self.selection.floating is None:
            return False
        layer = self._editable_layer()
        if layer is None:
            return False
        self._push_state()
        self.selection.stamp(layer.buffer)
        layer.refresh_encoding()
        self.on_status("Selection stamped")
        self.on_layers_changed()
        return True

    def cancel_floating(self):
        self.selection.cancel_floating()

    # ---------- History ----------
    def _install(self, snapshot: list[dict]):
        self.hydrator.cancel_all()
        self.selection.cancel_floating()
        self.stack.restore(snapshot)
        self.hydrator.request_all(self.stack)
        self.on_layers_changed()

    def undo(self) -> bool:
        self._finish_stroke()
        snapshot = self.history.undo(self.stack.snapshot())
        if snapshot is None:
            return False
        self._install(snapshot)
        self.on_status("Undo")
        return True

    def redo(self) -> bool:
        self._finish_stroke()
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._install(snapshot)
        self.on_status("Redo")
        return True

    # ---------- Layer operations ----------
    def rotate_layer(self, direction: str = "right") -> bool:
        direction = RotateDirection(direction)
        self._finish_stroke()
        layer = self._editable_layer()
        if layer is None:
            return False
        self._push_state()
        rotate_layer(layer, direction)
        self.on_status(f"Rotated {layer.name} {direction.value}")
        self.on_layers_changed()
        return True

    def add_layer(self) -> str:
        self._finish_stroke()
        self._push_state()
        layer = self.stack.add_layer()
        self.on_layers_changed()
        return layer.id

    def delete_layer(self, layer_id: str | None = None) -> bool:
        self._finish_stroke()
        if len(self.stack) <= 1:
            raise LastLayerError("delete")
        self.stack.require(layer_id or self.stack.active_layer_id)
        self._push_state()
        self.stack.delete_layer(layer_id)
        self.on_layers_changed()
        return True

    def reorder_layers(self, source_index: int, destination_index: int) -> bool:
        n = len(self.stack)
        if not (0 <= source_index < n and 0 <= destination_index < n) or source_index == destination_index:
            return False
        self._finish_stroke()
        self._push_state()
        self.stack.reorder(source_index, destination_index)
        self.on_layers_changed()
        return True

    def select_layer(self, layer_id: str) -> bool:
        self._finish_stroke()
        ok = self.stack.select_layer(layer_id)
        if ok:
            self.on_status(f"Active layer: {self.stack.active_layer.name}")
            self.on_layers_changed()
        return ok

    def set_layer_visibility(self, layer_id: str, is_visible: bool):
        self.stack.set_visibility(layer_id, is_visible)
        self.on_layers_changed()

    def set_layer_lock(self, layer_id: str, is_locked: bool):
        self.stack.set_locked(layer_id, is_locked)
        self.on_layers_changed()

    def set_layer_opacity(self, layer_id: str, opacity: float):
        self.stack.set_opacity(layer_id, opacity)
        self.on_layers_changed()

    def rename_layer(self, layer_id: str, name: str):
        self.stack.rename(layer_id, name)
        self.on_layers_changed()

    # ---------- Clipboard ----------
    def copy_layer(self) -> bool:
        layer = self.stack.active_layer
        if layer is None:
            return False
        self.state.clipboard = ClipboardLayer.from_layer(layer, name=f"{layer.name} Copy")
        self.on_status(f"Copied {layer.name}")
        return True

    def cut_layer(self) -> bool:
        self._finish_stroke()
        layer = self.stack.active_layer
        if layer is None:
            return False
        self.state.clipboard = ClipboardLayer.from_layer(layer)
        if len(self.stack) <= 1:
            raise LastLayerError("cut")
        self._push_state()
        self.stack.delete_layer(layer.id, action="cut")
        self.on_layers_changed()
        return True

    def paste_layer(self) -> Optional[str]:
        clip = self.state.clipboard
        if clip is None:
            return None
        self._finish_stroke()
        self._push_state()
        layer = Layer(
            id=new_layer_id(),
            name=self.stack.unique_name(clip.name or "Pasted Layer"),
            width=self.state.width,
            height=self.state.height,
            is_visible=clip.is_visible,
            opacity=clip.opacity,
            rotation=clip.rotation,
            encoded_image=clip.encoded_image,
        )
        index = max(0, self.stack.active_index)
        self.stack.insert_layer(index, layer)
        self.hydrator.request(layer)
        self.on_layers_changed()
        return layer.id

    # ---------- Tool settings (not undoable) ----------
    def set_tool(self, tool):
        tool = ToolType(tool)
        self._finish_stroke()
        leaving = self.state.tool in (ToolType.MOVE, ToolType.SELECTION)
        if leaving and tool not in (ToolType.MOVE, ToolType.SELECTION) and self.selection.floating is not None:
            self.stamp_floating()
        self.state.tool = tool
        self.on_status(f"Tool: {tool.value}")

    def set_color(self, color):
        rgba = parse_color(color)
        if rgba is None:
            raise ValueError(f"not a color: {color!r}")
        self.state.color = rgba
        self.on_status(f"Color: {color_to_hex(rgba)}")

    def set_brush_size(self, size: int):
        self.state.brush_size = clamp(size, 1, self.config.max_brush_size)
        self.on_status(f"Brush size: {self.state.brush_size}")

    def set_zoom(self, zoom: int):
        self.state.zoom = clamp(zoom, 1, self.config.max_zoom)
        self.on_status(f"Zoom: {self.state.zoom}x")

    def set_origin(self, x: float, y: float):
        self.state.origin = (float(x), float(y))

    def toggle_grid(self):
        self.state.show_grid = not self.state.show_grid

    def set_preview_rotation(self, rotation: float):
        self.state.preview_rotation = clamp_float(rotation, -180.0, 180.0)

    def set_preview_spacing(self, spacing: float):
        self.state.preview_spacing = clamp_float(spacing, 0.0, 1.0)

    # ---------- Rendering / export ----------
    def render_flat(self) -> Image.Image:
        self.pump_hydration()
        sel = self.selection
        return compositor.render_flat(
            self.stack,
            zoom=self.state.zoom,
            floating=sel.floating,
            selection=sel.pending_rect or sel.selection,
            show_grid=self.state.show_grid,
            grid_threshold=self.config.grid_zoom_threshold,
        )

    def render_preview(self, scale: float | None = None) -> Image.Image:
        self.pump_hydration()
        return compositor.render_preview(
            self.stack,
            yaw=self.state.preview_rotation,
            spacing=self.state.preview_spacing,
            scale=scale or self.config.preview_scale,
        )

    def export_layers(self):
        self.pump_hydration()
        return compositor.export_layers(self.stack)
