"""文件名匹配规则：单一的参数化匹配器。

六种规则共用 ``matches(kind, parsed, params, context)`` 入口，``RuleKind``
决定判定逻辑，``RuleParams`` 携带该规则需要的参数。所有规则都是纯函数，
目录级的排除策略在遍历阶段已经生效。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Iterator, Optional

from catalog_images.core.config import DEFAULT_CONFIG, EngineConfig, PatternSet
from catalog_images.core.exceptions import ValidationError
from catalog_images.core.models import FileRecord, ParsedFilename
from catalog_images.core.scanner import walk_images
from catalog_images.matching.filename import carries_known_preset, has_preset_suffix, parse_filename

LOGGER = logging.getLogger(__name__)

CODE_TAIL = r"_[A-Z0-9]{1,4}\.(jpg|jpeg|png|gif|webp)$"


class RuleKind(str, Enum):
    PATTERN = "pattern"
    PRESET = "preset"
    CODE = "code"
    EXCEL_CODE = "excel_code"
    EXCLUDE_PATTERN = "exclude_pattern"
    SEASON_PREFIX_SPLIT = "season_prefix_split"


class ArtifactKind(str, Enum):
    """清理时区分的两类派生产物。"""

    PATTERN_DERIVED = "pattern"  # 1px 复制产物，以季节开头
    SYNC_DERIVED = "sync"  # 同步缩放产物，不以季节开头


@dataclass(frozen=True, slots=True)
class RuleParams:
    """规则参数，各规则只读取自己需要的字段。"""

    season: Optional[str] = None
    preset_name: Optional[str] = None
    code: Optional[str] = None
    codes: FrozenSet[str] = frozenset()
    enabled_patterns: FrozenSet[str] = frozenset()
    include_html: bool = False
    artifact: Optional[ArtifactKind] = None

    def require_for(self, kind: RuleKind) -> None:
        """校验规则所需参数，缺失时抛出 ``ValidationError``。"""

        missing: list[str] = []
        if kind in _NEEDS_SEASON and not self.season:
            missing.append("season")
        if kind in _NEEDS_PRESET and not self.preset_name:
            missing.append("preset_name")
        if kind is RuleKind.CODE and not self.code:
            missing.append("code")
        if kind is RuleKind.SEASON_PREFIX_SPLIT and self.artifact is None:
            missing.append("artifact")
        if missing:
            raise ValidationError(f"规则 {kind.value} 缺少参数: {', '.join(missing)}")


@dataclass(frozen=True, slots=True)
class MatchContext:
    """匹配时共享的只读上下文。"""

    patterns: PatternSet = field(default_factory=PatternSet)
    known_presets: FrozenSet[str] = frozenset()


_NEEDS_SEASON = {
    RuleKind.PATTERN,
    RuleKind.EXCEL_CODE,
    RuleKind.EXCLUDE_PATTERN,
    RuleKind.SEASON_PREFIX_SPLIT,
}
_NEEDS_PRESET = {RuleKind.PRESET, RuleKind.SEASON_PREFIX_SPLIT}


def _is_source(parsed: ParsedFilename, context: MatchContext) -> bool:
    """已带有已知预设后缀的文件不能再作为复制/缩放的源。"""

    return not carries_known_preset(parsed.name, context.known_presets)


def _tag_allowed(tag: str, params: RuleParams, context: MatchContext) -> bool:
    if tag not in params.enabled_patterns:
        return False
    if context.patterns.is_html(tag) and not params.include_html:
        return False
    return True


def _match_pattern(parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    if not parsed.has_underscore:
        return False
    if not parsed.first_segment.startswith(params.season):
        return False
    if not _tag_allowed(parsed.remainder, params, context):
        return False
    return _is_source(parsed, context)


def _match_preset(parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    return has_preset_suffix(parsed.name, params.preset_name)


@lru_cache(maxsize=256)
def _code_regex(code: str) -> re.Pattern[str]:
    return re.compile(f"^{re.escape(code)}{CODE_TAIL}", re.IGNORECASE)


def _match_code(parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    if params.season and parsed.name.startswith(params.season):
        return False
    if not _code_regex(params.code).match(parsed.name):
        return False
    return _is_source(parsed, context)


def _match_excel_code(parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    if not parsed.has_underscore or not params.codes:
        return False

    expected = {f"{params.season}-{code}" for code in params.codes}
    for tag in params.enabled_patterns:
        suffix = f"_{tag}"
        if not parsed.stem.endswith(suffix):
            continue
        if not _tag_allowed(tag, params, context):
            continue
        if parsed.stem[: -len(suffix)] in expected:
            return _is_source(parsed, context)
    return False


def _match_exclude_pattern(parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    if not parsed.has_underscore:
        return False
    if not parsed.first_segment.startswith(params.season):
        return False
    if parsed.remainder in context.patterns.all:
        return False
    return _is_source(parsed, context)


def _match_season_prefix_split(parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    if not has_preset_suffix(parsed.name, params.preset_name):
        return False
    starts_with_season = parsed.name.startswith(params.season)
    if params.artifact is ArtifactKind.PATTERN_DERIVED:
        return starts_with_season
    return not starts_with_season


Matcher = Callable[[ParsedFilename, RuleParams, MatchContext], bool]

MATCHERS: dict[RuleKind, Matcher] = {
    RuleKind.PATTERN: _match_pattern,
    RuleKind.PRESET: _match_preset,
    RuleKind.CODE: _match_code,
    RuleKind.EXCEL_CODE: _match_excel_code,
    RuleKind.EXCLUDE_PATTERN: _match_exclude_pattern,
    RuleKind.SEASON_PREFIX_SPLIT: _match_season_prefix_split,
}


def matches(kind: RuleKind, parsed: ParsedFilename, params: RuleParams, context: MatchContext) -> bool:
    """判断单个文件名是否被指定规则选中。"""

    return MATCHERS[kind](parsed, params, context)


def build_context(config: EngineConfig, preset_names: Iterable[str] = ()) -> MatchContext:
    return MatchContext(patterns=config.patterns, known_presets=frozenset(preset_names))


def select_files(
    root: Path,
    kind: Optional[RuleKind],
    params: RuleParams,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    preset_names: Iterable[str] = (),
) -> Iterator[FileRecord]:
    """遍历 ``root`` 并惰性地产出被规则选中的文件。

    ``kind`` 为 ``None`` 时不做规则过滤，返回遍历得到的全部图片。
    参数校验在第一次迭代之前完成。
    """

    if kind is not None:
        params.require_for(kind)
    context = build_context(config, preset_names)
    LOGGER.debug("按规则 %s 扫描 %s", kind.value if kind else "all", root)
    return _filter_records(walk_images(root, config.exclusion, config.image_extensions), kind, params, context)


def _filter_records(
    records: Iterable[FileRecord],
    kind: Optional[RuleKind],
    params: RuleParams,
    context: MatchContext,
) -> Iterator[FileRecord]:
    for record in records:
        if kind is None or matches(kind, parse_filename(record.name), params, context):
            yield record
