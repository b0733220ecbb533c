class SpriteStackerError(Exception):
    """Base class for every error the editor core raises."""


class LastLayerError(SpriteStackerError):
    def __init__(self, action: str = "delete"):
        super().__init__(f"Cannot {action} the last layer.")
        self.action = action


class LayerLockedError(SpriteStackerError):
    def __init__(self, name: str):
        super().__init__(f"Layer '{name}' is locked.")
        self.name = name


class LayerNotFoundError(SpriteStackerError):
    def __init__(self, layer_id: str):
        super().__init__(f"Layer not found: {layer_id}")
        self.layer_id = layer_id


class FillOverflowError(SpriteStackerError):
    """Flood fill queue grew past its safety cap; the buffer was left untouched."""

    def __init__(self, queued: int, cap: int):
        super().__init__("Fill area too large or complex. Fill aborted.")
        self.queued = queued
        self.cap = cap


class HydrationError(SpriteStackerError):
    def __init__(self, layer_id: str, reason: str):
        super().__init__(f"Failed to decode layer {layer_id}: {reason}")
        self.layer_id = layer_id
        self.reason = reason


class ProjectFormatError(SpriteStackerError):
    pass
