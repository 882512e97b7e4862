"""
Pytest configuration and shared fixtures for chrfab tests.
"""

import pytest
import sys
import os

# Add the repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from PIL import Image

from fabmodel import Project
from fablayer import ChrLayer


@pytest.fixture
def project():
    """Create a fresh default Project."""
    return Project()


@pytest.fixture
def level(project):
    """The default level of the project fixture."""
    return project.levels[0]


@pytest.fixture
def chr_layer():
    """Create a ChrLayer with a small 8x8 canvas."""
    return ChrLayer((8, 8))


@pytest.fixture
def png_factory(tmp_path):
    """
    Build PNG files in tmp_path. Call with a PIL image (or mode, size, color)
    and an optional file name; returns the path written.
    """
    counter = {"n": 0}

    def make(image_or_mode, size=None, color=0, name=None):
        if isinstance(image_or_mode, Image.Image):
            image = image_or_mode
        else:
            image = Image.new(image_or_mode, size, color)
        if name is None:
            counter["n"] += 1
            name = f"image{counter['n']}.png"
        path = tmp_path / name
        image.save(path)
        return path

    return make
