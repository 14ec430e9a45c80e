"""测试公共工具。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image


def make_image(path: Path, size: tuple[int, int] = (64, 48), color: str = "gray") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new("RGB", size, color)
    if path.suffix.lower() in {".jpg", ".jpeg"}:
        image.save(path, format="JPEG")
    else:
        image.save(path)
    return path


@pytest.fixture
def image_factory():
    return make_image
