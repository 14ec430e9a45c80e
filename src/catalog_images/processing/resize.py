"""最小损失的居中裁剪缩放。

先按目标宽高比从源图中心裁出最大区域，再用 Lanczos 缩放到精确尺寸，
最后以高质量 JPEG 重新编码。
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from catalog_images.core.config import ResizeSettings
from catalog_images.core.exceptions import FileSystemError, ValidationError
from catalog_images.processing.image_loader import load_image

LOGGER = logging.getLogger(__name__)

_RESAMPLING = getattr(Image, "Resampling", Image)

RESAMPLE_FILTERS = {
    "lanczos": _RESAMPLING.LANCZOS,
    "bicubic": _RESAMPLING.BICUBIC,
    "bilinear": _RESAMPLING.BILINEAR,
}


@dataclass(frozen=True, slots=True)
class CropBox:
    left: int
    top: int
    width: int
    height: int

    def as_box(self) -> tuple[int, int, int, int]:
        return self.left, self.top, self.left + self.width, self.top + self.height


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_crop_box(original_width: int, original_height: int, target_width: int, target_height: int) -> CropBox:
    """计算与目标宽高比一致的居中裁剪区域。

    源图相对更宽时保留全部高度、裁掉左右；否则保留全部宽度、裁掉上下。
    """

    target_ratio = target_width / target_height
    original_ratio = original_width / original_height

    if original_ratio > target_ratio:
        crop_height = original_height
        crop_width = round_half_up(original_height * target_ratio)
    else:
        crop_width = original_width
        crop_height = round_half_up(original_width / target_ratio)

    # 极端比例下四舍五入可能得到 0
    crop_width = max(1, min(crop_width, original_width))
    crop_height = max(1, min(crop_height, original_height))

    return CropBox(
        left=round_half_up((original_width - crop_width) / 2),
        top=round_half_up((original_height - crop_height) / 2),
        width=crop_width,
        height=crop_height,
    )


def resize_with_minimal_loss(
    source: Path,
    destination: Path,
    target_width: int,
    target_height: int,
    settings: ResizeSettings | None = None,
) -> Path:
    """将 ``source`` 居中裁剪并缩放为 ``target_width × target_height`` 写入 ``destination``。

    目标目录不存在时自动创建；目标文件已存在时先删除再写入（非原子操作）。
    """

    settings = settings or ResizeSettings()
    if target_width <= 0 or target_height <= 0:
        raise ValidationError(f"Invalid width or height values: {target_width}x{target_height}")

    resample = RESAMPLE_FILTERS.get(settings.resample)
    if resample is None:
        raise ValidationError(f"未知的缩放算法: {settings.resample}")

    source = Path(source)
    destination = Path(destination)
    LOGGER.info("处理 %s", source.name)

    image = load_image(source)
    try:
        original_width, original_height = image.size
        crop = compute_crop_box(original_width, original_height, target_width, target_height)
        LOGGER.debug(
            "原图 %dx%d -> 目标 %dx%d，裁剪区域 %dx%d@(%d,%d)",
            original_width,
            original_height,
            target_width,
            target_height,
            crop.width,
            crop.height,
            crop.left,
            crop.top,
        )

        with image.crop(crop.as_box()) as cropped:
            resized = cropped.resize((target_width, target_height), resample)

        try:
            _prepare_destination(destination)
            resized.save(
                destination,
                format="JPEG",
                quality=settings.quality,
                subsampling=settings.subsampling,
                optimize=settings.optimize,
            )
        except OSError as exc:
            raise FileSystemError(f"写入文件失败: {destination}") from exc
        finally:
            resized.close()
    finally:
        image.close()

    LOGGER.info("完成 %s", destination.name)
    return destination


def _prepare_destination(destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.exists():
        LOGGER.info("覆盖已存在的文件: %s", destination.name)
        destination.unlink()
