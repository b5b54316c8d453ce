"""
Shared test fixtures for the planner and export tests.
"""
import logging
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from models import ExportSettings
from slicing_engine import ImageWorkspace


class RecordingWorkspace(ImageWorkspace):
    """
    In-memory workspace that records every call.

    fail_on_save: 1-based save call number that raises OSError.
    """

    def __init__(self, width_px=300, height_px=100, resolution=25.4, name="poster.tif", fail_on_save=None):
        self.name = name
        self.resolution = resolution
        self._size = (width_px, height_px)
        self._active_size = None
        self.fail_on_save = fail_on_save
        self.calls = []
        self.saved = []

    @property
    def pixel_size(self):
        return self._size

    def duplicate(self, name):
        self.calls.append(("duplicate", name))
        self._active_size = self._size

    def flatten(self):
        self.calls.append(("flatten",))

    def crop(self, rect):
        self.calls.append(("crop", rect))
        x1, y1, x2, y2 = rect
        self._active_size = (x2 - x1, y2 - y1)

    def active_size(self):
        return self._active_size

    def resize_canvas(self, size):
        self.calls.append(("resize_canvas", size))
        self._active_size = size

    def save(self, path, settings):
        self.calls.append(("save", path))
        if self.fail_on_save is not None and len(self.saved) + 1 == self.fail_on_save:
            raise OSError("disk full")
        self.saved.append(path)

    def close(self):
        self.calls.append(("close",))
        self._active_size = None

    def restore_context(self):
        self.calls.append(("restore_context",))

    def call_names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def recording_workspace():
    return RecordingWorkspace()


@pytest.fixture
def make_image(tmp_path):
    """Write a solid-colour image and return its path."""

    def _make(name="poster.png", size=(300, 100), mode="RGB", color=(200, 30, 30), dpi=(25.4, 25.4), **save_kw):
        path = tmp_path / name
        img = Image.new(mode, size, color)
        img.save(path, dpi=dpi, **save_kw)
        return str(path)

    return _make


@pytest.fixture
def export_settings():
    return ExportSettings()


@pytest.fixture
def restore_root_logging():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
