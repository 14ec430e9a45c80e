"""图片加载与基础预处理实现。"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from catalog_images.core.exceptions import InvalidImageError, NotFoundError

LOGGER = logging.getLogger(__name__)


def load_image(path: Path) -> Image.Image:
    """加载单张图片并执行 EXIF 旋转与 RGB 归一化。

    返回值为新的 Image 对象，调用者负责关闭。
    """

    if not path.is_file():
        raise NotFoundError(f"Input file not found: {path}")

    try:
        with Image.open(path) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = _convert_to_rgb(img)
            loaded = img.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise InvalidImageError(f"无法加载图像: {path}") from exc

    width, height = loaded.size
    if width <= 0 or height <= 0:
        loaded.close()
        raise InvalidImageError(f"Invalid image dimensions: {path}")
    return loaded


def _convert_to_rgb(img: Image.Image) -> Image.Image:
    """将任意模式图像转换为 RGB，透明区域以白色背景合成。"""

    if img.mode == "P" and "transparency" in img.info:
        img = img.convert("RGBA")

    if img.mode in {"RGBA", "LA"}:
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img.convert("RGBA"), mask=img.split()[-1])
        return background

    return img.convert("RGB")
