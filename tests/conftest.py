"""Shared fixtures: small images on disk."""

import pytest
from PIL import Image


@pytest.fixture
def make_image(tmp_path):
    """Write an RGBA image filled with one color and return its path."""
    def _make(rgba=(100, 150, 200, 255), size=(16, 16), name='sample.png'):
        path = tmp_path / name
        Image.new('RGBA', size, rgba).save(path)
        return path
    return _make
