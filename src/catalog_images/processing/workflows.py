"""业务流程入口：参数校验后组合规则与动作调用 ``run_batch``。

除 NAS 传输与目录缩放外，所有流程都在 ``source_path / season`` 下工作。
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from catalog_images.core.config import COPY_CODE_SEPARATOR, DEFAULT_CONFIG, SYNC_CODE_SEPARATOR, EngineConfig
from catalog_images.core.exceptions import ProcessingAborted, ValidationError
from catalog_images.core.models import BatchResult
from catalog_images.core.presets import PresetCatalog
from catalog_images.core.progress import ProgressCallback
from catalog_images.matching.filename import transform_code
from catalog_images.matching.rules import ArtifactKind, RuleKind, RuleParams
from catalog_images.processing.actions import (
    CopyAction,
    DeleteAction,
    NasTransferAction,
    ResizeAction,
    ResizeToFolderAction,
)
from catalog_images.processing.pipeline import CancelToken, run_batch

LOGGER = logging.getLogger(__name__)


def _require(**values: object) -> None:
    missing = [name for name, value in values.items() if value is None or (isinstance(value, str) and not value.strip())]
    if missing:
        raise ValidationError(f"缺少必需参数: {', '.join(missing)}")


def _season_path(source_path: Path, season: str) -> Path:
    season_path = Path(source_path) / season
    if not season_path.is_dir():
        raise ValidationError(f"Season path does not exist: {season_path}")
    return season_path


def prepare_codes(raw_codes: Iterable[str], separator: str) -> list[str]:
    """清理外部代码列表（去空白、去空行）并执行分隔符变换，保持原顺序。"""

    return [code for _, code in _code_pairs(raw_codes, separator)]


def _code_pairs(raw_codes: Iterable[str], separator: str) -> list[tuple[str, str]]:
    """返回 (原始代码, 变换后代码) 列表，重复行保留。"""

    pairs: list[tuple[str, str]] = []
    for raw in raw_codes:
        code = str(raw).strip()
        if not code:
            continue
        pairs.append((code, transform_code(code, separator)))
    return pairs


def _aborted_with(exc: ProcessingAborted, accumulated: BatchResult, skipped: int) -> ProcessingAborted:
    """把前几轮已合并的结果并入取消异常携带的部分结果。"""

    partial = accumulated.merge(exc.result or BatchResult.empty())
    return ProcessingAborted(str(exc), result=dataclasses.replace(partial, skipped_count=skipped))


def copy_pattern_images(
    source_path: Path,
    season: str,
    preset_name: str,
    enabled_patterns: Iterable[str],
    *,
    include_html: bool = False,
    presets: Optional[PresetCatalog] = None,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """1px 复制：将启用的推广标签图片复制为带预设后缀的副本。"""

    _require(source_path=source_path, season=season, preset_name=preset_name)
    season_path = _season_path(source_path, season)
    params = RuleParams(season=season, enabled_patterns=frozenset(enabled_patterns), include_html=include_html)
    if not params.enabled_patterns:
        LOGGER.warning("没有启用任何标签，不会匹配任何文件")

    return run_batch(
        season_path,
        RuleKind.PATTERN,
        params,
        CopyAction(preset_name),
        config=config,
        preset_names=_known_names(presets, preset_name),
        progress_callback=progress_callback,
        cancel_token=cancel_token,
    )


def copy_pattern_images_by_codes(
    source_path: Path,
    season: str,
    preset_name: str,
    raw_codes: Sequence[str],
    enabled_patterns: Iterable[str],
    *,
    include_html: bool = False,
    code_separator: str = COPY_CODE_SEPARATOR,
    presets: Optional[PresetCatalog] = None,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """按外部代码列表过滤的 1px 复制。

    ``skipped_count`` 为代码行数减去找到图片的不同代码数，重复行各计一次。
    """

    _require(source_path=source_path, season=season, preset_name=preset_name)
    pairs = _code_pairs(raw_codes, code_separator)
    codes = [code for _, code in pairs]
    if not codes:
        raise ValidationError("No valid codes found")
    season_path = _season_path(source_path, season)
    LOGGER.info("载入 %d 个代码", len(codes))

    params = RuleParams(
        season=season,
        codes=frozenset(codes),
        enabled_patterns=frozenset(enabled_patterns),
        include_html=include_html,
    )
    result = run_batch(
        season_path,
        RuleKind.EXCEL_CODE,
        params,
        CopyAction(preset_name),
        config=config,
        preset_names=_known_names(presets, preset_name),
        progress_callback=progress_callback,
        cancel_token=cancel_token,
    )

    names = [outcome.source_path.name for outcome in result.outcomes]
    counts = {code: sum(1 for name in names if name.startswith(f"{season}-{code}_")) for code in codes}
    for raw, code in pairs:
        LOGGER.info("代码 %s -> %s: %d 张", raw, code, counts[code])
    found = sum(1 for count in counts.values() if count)
    return dataclasses.replace(result, skipped_count=len(codes) - found)


def delete_preset_images(
    source_path: Path,
    season: str,
    preset_name: str,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """删除季节目录下所有带 ``_<preset>.`` 后缀的派生图片。"""

    _require(source_path=source_path, season=season, preset_name=preset_name)
    season_path = _season_path(source_path, season)
    LOGGER.info("删除预设 %s 的派生图片: %s", preset_name, season_path)
    return run_batch(
        season_path,
        RuleKind.PRESET,
        RuleParams(preset_name=preset_name),
        DeleteAction(),
        config=config,
        progress_callback=progress_callback,
        cancel_token=cancel_token,
    )


def sync_images_by_codes(
    source_path: Path,
    season: str,
    preset_name: str,
    raw_codes: Sequence[str],
    presets: PresetCatalog,
    *,
    code_separator: str = SYNC_CODE_SEPARATOR,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """按代码列表同步：逐个代码查找原图并按预设尺寸生成派生图。"""

    _require(source_path=source_path, season=season, preset_name=preset_name)
    season_path = _season_path(source_path, season)
    preset = presets.get(preset_name)
    action = ResizeAction(preset, config.resize)

    result = BatchResult.empty()
    skipped = 0
    for raw, code in _code_pairs(raw_codes, code_separator):
        try:
            code_result = run_batch(
                season_path,
                RuleKind.CODE,
                RuleParams(season=season, code=code),
                action,
                config=config,
                preset_names=presets.names(),
                progress_callback=progress_callback,
                cancel_token=cancel_token,
            )
        except ProcessingAborted as exc:
            raise _aborted_with(exc, result, skipped) from exc

        LOGGER.info("代码 %s -> %s: %d 张", raw, code, code_result.matched_count)
        if code_result.matched_count == 0:
            LOGGER.warning("没有找到代码对应的图片: %s", code)
            skipped += 1
        result = result.merge(code_result)

    return dataclasses.replace(result, skipped_count=skipped)


def sync_all_images(
    source_path: Path,
    season: str,
    preset_name: str,
    presets: PresetCatalog,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """全量同步：除推广标签图片外，季节下所有原图都生成派生图。"""

    _require(source_path=source_path, season=season, preset_name=preset_name)
    season_path = _season_path(source_path, season)
    preset = presets.get(preset_name)
    LOGGER.info("全量同步模式：排除推广标签图片")
    return run_batch(
        season_path,
        RuleKind.EXCLUDE_PATTERN,
        RuleParams(season=season),
        ResizeAction(preset, config.resize),
        config=config,
        preset_names=presets.names(),
        progress_callback=progress_callback,
        cancel_token=cancel_token,
    )


def delete_generated_images(
    source_path: Path,
    season: str,
    preset_name: str,
    *,
    pattern_images: bool = True,
    sync_images: bool = True,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """按季节前缀区分并删除 1px 复制产物和/或同步产物，原图从不删除。"""

    _require(source_path=source_path, season=season, preset_name=preset_name)
    season_path = _season_path(source_path, season)

    artifacts = []
    if pattern_images:
        artifacts.append(ArtifactKind.PATTERN_DERIVED)
    if sync_images:
        artifacts.append(ArtifactKind.SYNC_DERIVED)

    result = BatchResult.empty()
    for artifact in artifacts:
        LOGGER.info("删除 %s 类派生图片（预设 %s）", artifact.value, preset_name)
        try:
            side_result = run_batch(
                season_path,
                RuleKind.SEASON_PREFIX_SPLIT,
                RuleParams(season=season, preset_name=preset_name, artifact=artifact),
                DeleteAction(),
                config=config,
                progress_callback=progress_callback,
                cancel_token=cancel_token,
            )
        except ProcessingAborted as exc:
            raise _aborted_with(exc, result, 0) from exc
        result = result.merge(side_result)
    return result


def nas_transfer(
    source_path: Path,
    base_path: Path,
    season: str,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """将源目录下所有图片按文件名分段复制到 NAS 目录结构。"""

    _require(source_path=source_path, base_path=base_path, season=season)
    source = Path(source_path)
    if not source.is_dir():
        raise ValidationError(f"Path does not exist: {source}")
    return run_batch(
        source,
        None,
        RuleParams(),
        NasTransferAction(Path(base_path), season),
        config=config,
        progress_callback=progress_callback,
        cancel_token=cancel_token,
    )


def resize_folder(
    input_dir: Path,
    output_root: Path,
    width: int,
    height: int,
    *,
    label: Optional[str] = None,
    config: EngineConfig = DEFAULT_CONFIG,
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> tuple[Path, BatchResult]:
    """将目录下所有图片缩放到 ``output_root`` 下按尺寸命名的子目录。

    目录名为 ``"{label} ({w}x{h})"``，未指定 label 时为 ``"{w}x{h}"``；
    指定 label 时输出文件名追加 ``_{label}`` 后缀。
    """

    _require(input_dir=input_dir, output_root=output_root)
    label = label.strip() if label else None
    folder_name = f"{label} ({width}x{height})" if label else f"{width}x{height}"
    output_dir = Path(output_root) / folder_name
    action = ResizeToFolderAction(output_dir, width, height, label=label, settings=config.resize)

    result = run_batch(
        Path(input_dir),
        None,
        RuleParams(),
        action,
        config=config,
        progress_callback=progress_callback,
        cancel_token=cancel_token,
    )
    return output_dir, result


def _known_names(presets: Optional[PresetCatalog], applied: str) -> frozenset[str]:
    """已知预设名称加上本次要写入的名称，防止副本被再次选为源。"""

    names = presets.names() if presets is not None else frozenset()
    return names | {applied.strip()}
