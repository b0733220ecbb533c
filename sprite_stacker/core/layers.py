import logging
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from .errors import LastLayerError, LayerNotFoundError
from .pixel_buffer import PixelBuffer
from ..utils.helpers import clamp_float
from ..utils.validators import validate_rotation

logger = logging.getLogger(__name__)


class HydrationState(Enum):
    READY = "ready"
    PENDING = "pending"
    FAILED = "failed"


def new_layer_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Layer:
    id: str
    name: str
    width: int
    height: int
    is_visible: bool = True
    is_locked: bool = False
    opacity: float = 1.0
    rotation: int = 0
    buffer: Optional[PixelBuffer] = None
    encoded_image: Optional[str] = None
    hydration: HydrationState = HydrationState.READY

    def __post_init__(self):
        self.opacity = clamp_float(self.opacity, 0.0, 1.0)
        self.rotation = validate_rotation(self.rotation)
        if self.buffer is None and not self.encoded_image:
            self.buffer = PixelBuffer.blank(self.width, self.height)
        if self.buffer is not None and self.encoded_image is None:
            self.encoded_image = self.buffer.to_data_url()
        if self.buffer is None:
            self.hydration = HydrationState.PENDING

    @classmethod
    def blank(cls, name: str, width: int, height: int) -> "Layer":
        return cls(id=new_layer_id(), name=name, width=width, height=height)

    @classmethod
    def from_snapshot(cls, data: dict, width: int, height: int) -> "Layer":
        """Rebuild a layer whose buffer still has to be hydrated from encodedImage."""
        encoded = data.get("encodedImage") or data.get("dataURL")
        layer = cls(
            id=str(data.get("id") or new_layer_id()),
            name=str(data.get("name") or "Layer"),
            width=width,
            height=height,
            is_visible=bool(data.get("isVisible", True)),
            is_locked=bool(data.get("isLocked", False)),
            opacity=_as_float(data.get("opacity"), 1.0),
            rotation=data.get("rotation", 0),
            encoded_image=encoded or None,
        )
        return layer

    @property
    def is_hydrated(self) -> bool:
        return self.buffer is not None

    def refresh_encoding(self):
        """Regenerate the encoded snapshot after the buffer changed."""
        if self.buffer is not None:
            self.encoded_image = self.buffer.to_data_url()

    def replace_buffer(self, buffer: PixelBuffer):
        self.buffer = buffer
        self.hydration = HydrationState.READY
        self.refresh_encoding()

    def to_snapshot(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "isVisible": self.is_visible,
            "isLocked": self.is_locked,
            "opacity": self.opacity,
            "rotation": self.rotation,
            "encodedImage": self.encoded_image,
        }


def _as_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class ClipboardLayer:
    name: str
    is_visible: bool
    opacity: float
    rotation: int
    encoded_image: str
    original_id: Optional[str] = None

    @classmethod
    def from_layer(cls, layer: Layer, name: str | None = None) -> "ClipboardLayer":
        encoded = layer.buffer.to_data_url() if layer.buffer is not None else layer.encoded_image
        return cls(
            name=name or layer.name,
            is_visible=layer.is_visible,
            opacity=layer.opacity,
            rotation=layer.rotation,
            encoded_image=encoded,
            original_id=layer.id,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "isVisible": self.is_visible,
            "isLocked": False,
            "opacity": self.opacity,
            "rotation": self.rotation,
            "encodedImage": self.encoded_image,
            "originalId": self.original_id,
        }

    @classmethod
    def from_dict(cls, data) -> Optional["ClipboardLayer"]:
        if not isinstance(data, dict):
            return None
        encoded = data.get("encodedImage") or data.get("dataURL")
        if not encoded:
            return None
        return cls(
            name=str(data.get("name") or "Pasted Layer"),
            is_visible=bool(data.get("isVisible", True)),
            opacity=clamp_float(_as_float(data.get("opacity"), 1.0), 0.0, 1.0),
            rotation=validate_rotation(data.get("rotation", 0)),
            encoded_image=encoded,
            original_id=data.get("originalId"),
        )


_COPY_SUFFIX = re.compile(r" Copy( \d+)?$")


@dataclass
class LayerStack:
    """Ordered layers, index 0 is the topmost one."""

    width: int
    height: int
    layers: list[Layer] = field(default_factory=list)
    active_layer_id: Optional[str] = None

    @classmethod
    def create(cls, width: int, height: int, layer_count: int = 1) -> "LayerStack":
        created = [Layer.blank(f"Layer {i + 1}", width, height) for i in range(layer_count)]
        created.reverse()
        return cls(width, height, created, created[0].id if created else None)

    def __len__(self):
        return len(self.layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self.layers)

    def __getitem__(self, index: int) -> Layer:
        return self.layers[index]

    def index_of(self, layer_id: str | None) -> int:
        for i, layer in enumerate(self.layers):
            if layer.id == layer_id:
                return i
        return -1

    def get(self, layer_id: str | None) -> Optional[Layer]:
        i = self.index_of(layer_id)
        return self.layers[i] if i >= 0 else None

    def require(self, layer_id: str) -> Layer:
        layer = self.get(layer_id)
        if layer is None:
            raise LayerNotFoundError(layer_id)
        return layer

    @property
    def active_layer(self) -> Optional[Layer]:
        return self.get(self.active_layer_id)

    @property
    def active_index(self) -> int:
        return self.index_of(self.active_layer_id)

    def ids(self) -> list[str]:
        return [layer.id for layer in self.layers]

    # ---------- Structural edits ----------
    def add_layer(self) -> Layer:
        layer = Layer.blank(f"Layer {len(self.layers) + 1}", self.width, self.height)
        self.layers.insert(0, layer)
        self.active_layer_id = layer.id
        logger.debug("Added layer %s", layer.name)
        return layer

    def insert_layer(self, index: int, layer: Layer):
        index = max(0, min(len(self.layers), index))
        self.layers.insert(index, layer)
        self.active_layer_id = layer.id

    def delete_layer(self, layer_id: str | None = None, action: str = "delete") -> Layer:
        layer_id = layer_id or self.active_layer_id
        if len(self.layers) <= 1:
            raise LastLayerError(action)
        index = self.index_of(layer_id)
        if index < 0:
            raise LayerNotFoundError(str(layer_id))
        removed = self.layers.pop(index)
        if self.active_layer_id == removed.id or self.active_layer is None:
            self.active_layer_id = self.layers[max(0, index - 1)].id
        logger.debug("Deleted layer %s", removed.name)
        return removed

    def reorder(self, source_index: int, dest_index: int) -> bool:
        n = len(self.layers)
        if not (0 <= source_index < n and 0 <= dest_index < n) or source_index == dest_index:
            return False
        moved = self.layers.pop(source_index)
        self.layers.insert(dest_index, moved)
        return True

    def select_layer(self, layer_id: str) -> bool:
        if self.get(layer_id) is None:
            return False
        self.active_layer_id = layer_id
        return True

    def unique_name(self, name: str) -> str:
        taken = {layer.name for layer in self.layers}
        if name not in taken:
            return name
        base = _COPY_SUFFIX.sub("", name)
        n = 1
        candidate = f"{base} Copy {n}"
        while candidate in taken:
            n += 1
            candidate = f"{base} Copy {n}"
        return candidate

    # ---------- Non-undoable property edits ----------
    def set_visibility(self, layer_id: str, visible: bool):
        self.require(layer_id).is_visible = bool(visible)

    def set_locked(self, layer_id: str, locked: bool):
        self.require(layer_id).is_locked = bool(locked)

    def set_opacity(self, layer_id: str, opacity: float):
        self.require(layer_id).opacity = clamp_float(opacity, 0.0, 1.0)

    def rename(self, layer_id: str, name: str):
        name = (name or "").strip()
        if name:
            self.require(layer_id).name = name

    # ---------- History ----------
    def snapshot(self) -> list[dict]:
        return [layer.to_snapshot() for layer in self.layers]

    def restore(self, snapshot: list[dict]):
        """Replace the stack wholesale; buffers are left for hydration."""
        records = [data for data in snapshot if isinstance(data, dict)] if isinstance(snapshot, list) else []
        if not records:
            raise ValueError("snapshot holds no layers")
        previous_active = self.active_layer_id
        self.layers = [Layer.from_snapshot(data, self.width, self.height) for data in records]
        if self.get(previous_active) is not None:
            self.active_layer_id = previous_active
        else:
            self.active_layer_id = self.layers[0].id
