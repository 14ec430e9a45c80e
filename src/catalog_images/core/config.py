"""引擎的不可变配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})

GENERAL_PATTERNS = ("promotion_00", "promotion_01", "promotion_02", "fit_01", "illust_01")
HTML_PATTERNS = ("desc_info_02", "title_info_01", "size_info_04", "spec_info_03")

# 两处调用方对同一代码变换使用了不同分隔符，暂时分别保留。
SYNC_CODE_SEPARATOR = "_"
COPY_CODE_SEPARATOR = "-"


def _casefolded(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(value.casefold() for value in values)


@dataclass(frozen=True, slots=True)
class ExclusionPolicy:
    """目录遍历时的排除规则（大小写不敏感），名称在构造时统一折叠大小写。"""

    excluded_folder_names: FrozenSet[str] = frozenset({"transparent"})
    excluded_file_prefixes: FrozenSet[str] = frozenset({"swatch"})

    def __post_init__(self) -> None:
        object.__setattr__(self, "excluded_folder_names", _casefolded(self.excluded_folder_names))
        object.__setattr__(self, "excluded_file_prefixes", _casefolded(self.excluded_file_prefixes))

    def excludes_folder(self, name: str) -> bool:
        return name.casefold() in self.excluded_folder_names

    def excludes_file(self, name: str) -> bool:
        lowered = name.casefold()
        return any(lowered.startswith(prefix) for prefix in self.excluded_file_prefixes)


@dataclass(frozen=True, slots=True)
class PatternSet:
    """1px 复制使用的推广标签分组。"""

    general: FrozenSet[str] = frozenset(GENERAL_PATTERNS)
    html: FrozenSet[str] = frozenset(HTML_PATTERNS)

    def __post_init__(self) -> None:
        overlap = self.general & self.html
        if overlap:
            raise ValueError(f"general 与 html 标签分组不能重叠: {sorted(overlap)}")

    @property
    def all(self) -> FrozenSet[str]:
        return self.general | self.html

    def is_html(self, tag: str) -> bool:
        return tag in self.html


@dataclass(frozen=True, slots=True)
class ResizeSettings:
    """裁剪缩放与重新编码参数。"""

    quality: int = 95
    subsampling: int = 0  # 4:4:4，不做色度下采样
    optimize: bool = True
    resample: str = "lanczos"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """单次批处理使用的配置集合，批处理期间只读。"""

    exclusion: ExclusionPolicy = field(default_factory=ExclusionPolicy)
    patterns: PatternSet = field(default_factory=PatternSet)
    resize: ResizeSettings = field(default_factory=ResizeSettings)
    image_extensions: FrozenSet[str] = IMAGE_EXTENSIONS


DEFAULT_CONFIG = EngineConfig()
