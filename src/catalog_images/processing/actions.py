"""批处理中对每个匹配文件执行的动作。"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from catalog_images.core.config import ResizeSettings
from catalog_images.core.exceptions import NotFoundError, ValidationError
from catalog_images.core.models import FileRecord, Preset
from catalog_images.matching.filename import derived_filename, nas_destination
from catalog_images.processing.resize import resize_with_minimal_loss

LOGGER = logging.getLogger(__name__)


class BatchAction:
    """动作基类：``apply`` 返回产出文件路径（删除动作返回 ``None``）。"""

    status = "processed"

    def apply(self, record: FileRecord) -> Optional[Path]:
        raise NotImplementedError

    def describe(self) -> str:
        return self.status


def _require_source(record: FileRecord) -> None:
    if not record.path.is_file():
        raise NotFoundError(f"Input file not found: {record.path}")


class CopyAction(BatchAction):
    """1px 复制：在源文件同目录下生成带预设后缀的副本，不做缩放。"""

    status = "copied"

    def __init__(self, preset_name: str) -> None:
        if not preset_name or not preset_name.strip():
            raise ValidationError("preset_name 不能为空")
        self.preset_name = preset_name.strip()

    def apply(self, record: FileRecord) -> Optional[Path]:
        _require_source(record)
        destination = record.path.with_name(derived_filename(record.name, self.preset_name))
        shutil.copyfile(record.path, destination)
        LOGGER.info("复制 %s -> %s", record.relative_path, destination.name)
        return destination


class ResizeAction(BatchAction):
    """同步：按预设尺寸缩放，写到源文件同目录下的带预设后缀文件。"""

    status = "resized"

    def __init__(self, preset: Preset, settings: ResizeSettings | None = None) -> None:
        if preset.width <= 0 or preset.height <= 0:
            raise ValidationError(f"Invalid width or height values: {preset.width}x{preset.height}")
        self.preset = preset
        self.settings = settings or ResizeSettings()

    def apply(self, record: FileRecord) -> Optional[Path]:
        destination = record.path.with_name(derived_filename(record.name, self.preset.name))
        resize_with_minimal_loss(record.path, destination, self.preset.width, self.preset.height, self.settings)
        return destination

    def describe(self) -> str:
        return f"{self.status} {self.preset.width}x{self.preset.height}"


class DeleteAction(BatchAction):
    status = "deleted"

    def apply(self, record: FileRecord) -> Optional[Path]:
        try:
            record.path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Input file not found: {record.path}") from exc
        LOGGER.info("删除 %s", record.relative_path)
        return None


class NasTransferAction(BatchAction):
    """按 ``{base}/{season}/{段0}/{段1}/{文件名}`` 复制到 NAS 目录。"""

    status = "transferred"

    def __init__(self, base_path: Path, season: str) -> None:
        if not season:
            raise ValidationError("season 不能为空")
        self.base_path = Path(base_path)
        self.season = season

    def apply(self, record: FileRecord) -> Optional[Path]:
        destination = nas_destination(self.base_path, self.season, record.name)
        _require_source(record)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(record.path, destination)
        LOGGER.info("传输 %s -> %s", record.relative_path, destination.relative_to(self.base_path))
        return destination


class ResizeToFolderAction(BatchAction):
    """将图片缩放写入独立的输出目录，保留相对目录结构。"""

    status = "resized"

    def __init__(
        self,
        output_dir: Path,
        width: int,
        height: int,
        label: Optional[str] = None,
        settings: ResizeSettings | None = None,
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValidationError(f"Invalid width or height values: {width}x{height}")
        self.output_dir = Path(output_dir)
        self.width = width
        self.height = height
        self.label = label.strip() if label and label.strip() else None
        self.settings = settings or ResizeSettings()

    def apply(self, record: FileRecord) -> Optional[Path]:
        name = derived_filename(record.name, self.label) if self.label else record.name
        destination = self.output_dir / record.relative_path.parent / name
        resize_with_minimal_loss(record.path, destination, self.width, self.height, self.settings)
        return destination
