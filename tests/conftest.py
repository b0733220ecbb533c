"""
Shared fixtures for sprite_stacker tests.

Provides small pixel buffers, layer stacks and a ready-to-draw EditorEngine
(zoom 1, origin 0, so a pixel's centre on screen is ``x + 0.5``).
"""
import pytest

from sprite_stacker.core.editor_engine import EditorEngine
from sprite_stacker.core.layers import LayerStack
from sprite_stacker.core.pixel_buffer import PixelBuffer
from sprite_stacker.utils.config import EditorConfig

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
BLACK = (0, 0, 0, 255)
CLEAR = (0, 0, 0, 0)


def c(v):
    """Screen coordinate of the centre of logical pixel v at zoom 1."""
    return v + 0.5


@pytest.fixture
def buf8():
    return PixelBuffer.blank(8, 8)


@pytest.fixture
def buf4():
    return PixelBuffer.blank(4, 4)


@pytest.fixture
def stack3():
    return LayerStack.create(4, 4, 3)


@pytest.fixture
def config(tmp_path):
    return EditorConfig(path=tmp_path / "config.json", load=False)


@pytest.fixture
def statuses():
    return []


@pytest.fixture
def make_engine(config, statuses):
    def _make(width=8, height=8, layers=1):
        engine = EditorEngine(config=config, on_status=statuses.append)
        engine.init_project(width, height, layers)
        engine.set_zoom(1)
        return engine
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


def active_pixel(engine, x, y):
    engine.pump_hydration()
    return engine.stack.active_layer.buffer.get_pixel(x, y)
