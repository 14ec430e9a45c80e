"""预设尺寸目录：名称到宽高的只读查询，以及 CLI 使用的 JSON 文件适配。"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, Mapping

from catalog_images.core.exceptions import FileSystemError, ValidationError
from catalog_images.core.models import Preset

LOGGER = logging.getLogger(__name__)


class PresetCatalog:
    """按名称索引的预设集合，名称唯一。"""

    def __init__(self, presets: Iterable[Preset] = ()) -> None:
        self._presets: dict[str, Preset] = {}
        for preset in presets:
            self.add(preset)

    def __contains__(self, name: object) -> bool:
        return name in self._presets

    def __iter__(self) -> Iterator[Preset]:
        return iter(self._presets.values())

    def __len__(self) -> int:
        return len(self._presets)

    def get(self, name: str) -> Preset:
        """按名称查询预设，不存在时抛出 ``ValidationError``。"""

        try:
            return self._presets[name]
        except KeyError:
            raise ValidationError(f"Preset not found: {name}") from None

    def names(self) -> frozenset[str]:
        return frozenset(self._presets)

    def add(self, preset: Preset) -> Preset:
        name = preset.name.strip()
        if not name:
            raise ValidationError("预设名称不能为空")
        if preset.width <= 0 or preset.height <= 0:
            raise ValidationError(f"预设尺寸必须大于 0: {preset.width}x{preset.height}")
        if name in self._presets:
            raise ValidationError(f"Preset name already exists: {name}")

        stored = Preset(name=name, width=int(preset.width), height=int(preset.height))
        self._presets[name] = stored
        return stored

    def remove(self, name: str) -> Preset:
        try:
            return self._presets.pop(name)
        except KeyError:
            raise ValidationError(f"Preset not found: {name}") from None

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "PresetCatalog":
        """从 ``{"presets": [{"name", "width", "height"}, ...]}`` 结构构建。"""

        entries = data.get("presets") or []
        if not isinstance(entries, list):
            raise ValidationError("presets 字段必须为列表")

        presets: list[Preset] = []
        for entry in entries:
            try:
                presets.append(Preset(name=str(entry["name"]), width=int(entry["width"]), height=int(entry["height"])))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(f"无法解析预设条目: {entry!r}") from exc
        return cls(presets)

    def to_mapping(self) -> dict[str, list[dict[str, object]]]:
        return {"presets": [preset.as_dict() for preset in self]}


def load_presets(path: Path) -> PresetCatalog:
    """读取预设文件；文件不存在时返回空目录。"""

    if not path.exists():
        LOGGER.info("预设文件不存在，使用空预设列表: %s", path)
        return PresetCatalog()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise FileSystemError(f"读取预设文件失败: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"预设文件格式错误: {path}") from exc

    if not isinstance(data, dict):
        raise ValidationError(f"预设文件格式错误: {path}")
    return PresetCatalog.from_mapping(data)


def save_presets(catalog: PresetCatalog, path: Path) -> Path:
    """将预设目录写回 JSON 文件。"""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(catalog.to_mapping(), ensure_ascii=False, indent=2), encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"写入预设文件失败: {path}") from exc
    return path
