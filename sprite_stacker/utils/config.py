import json
import logging
from pathlib import Path


DEFAULT_PATH = Path.home() / ".sprite_stacker_config.json"

logger = logging.getLogger(__name__)


class EditorConfig:
    def __init__(self, path: Path | None = None, load: bool = True):
        self.path = path or DEFAULT_PATH
        self.recent_projects: list[str] = []
        self.history_limit: int = 50
        self.max_zoom: int = 64
        self.brush_size: int = 1
        self.max_brush_size: int = 32
        self.grid_zoom_threshold: int = 4
        self.fill_cap_factor: int = 2
        self.preview_scale: int = 18
        self.preview_spacing: float = 1.0
        if load:
            self._load()

    def _load(self):
        try:
            if not self.path.exists():
                return
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable config %s: %s", self.path, e)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: expected an object", self.path)
            return
        self.recent_projects = [str(p) for p in data.get("recent_projects", [])][:5]
        for key in ("history_limit", "max_zoom", "brush_size",
                    "max_brush_size", "grid_zoom_threshold", "fill_cap_factor", "preview_scale"):
            try:
                value = int(data.get(key, getattr(self, key)))
            except (TypeError, ValueError):
                logger.warning("Config %s: bad value for %s", self.path, key)
                continue
            if value >= 1:
                setattr(self, key, value)
        try:
            self.preview_spacing = float(data.get("preview_spacing", self.preview_spacing))
        except (TypeError, ValueError):
            logger.warning("Config %s: bad value for preview_spacing", self.path)

    def to_dict(self) -> dict:
        return {
            "recent_projects": self.recent_projects[:5],
            "history_limit": self.history_limit,
            "max_zoom": self.max_zoom,
            "brush_size": self.brush_size,
            "max_brush_size": self.max_brush_size,
            "grid_zoom_threshold": self.grid_zoom_threshold,
            "fill_cap_factor": self.fill_cap_factor,
            "preview_scale": self.preview_scale,
            "preview_spacing": self.preview_spacing,
        }

    def add_recent(self, path: str | Path):
        p = str(path)
        self.recent_projects = [p] + [r for r in self.recent_projects if r != p]
        self.recent_projects = self.recent_projects[:5]

    def save(self):
        try:
            self.path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save config %s: %s", self.path, e)
