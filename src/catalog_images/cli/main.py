"""命令行入口。"""

from __future__ import annotations

import logging
import signal
from pathlib import Path
from typing import Callable, List, Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from catalog_images.core.config import GENERAL_PATTERNS, EngineConfig, ExclusionPolicy
from catalog_images.core.exceptions import CatalogImageError, ProcessingAborted
from catalog_images.core.models import BatchResult, Preset
from catalog_images.core.presets import PresetCatalog, load_presets, save_presets
from catalog_images.core.progress import ProgressUpdate
from catalog_images.core.report import summarize, write_csv_report
from catalog_images.processing import workflows
from catalog_images.processing.pipeline import CancelToken
from catalog_images.utils.logging import setup_logging

app = typer.Typer(help="商品目录图片批处理工具：按命名约定匹配并批量缩放、复制、删除。")
preset_app = typer.Typer(help="管理预设尺寸。")
app.add_typer(preset_app, name="preset")

LOGGER = logging.getLogger(__name__)

DEFAULT_PRESETS_FILE = Path("presets.json")
MAX_LISTED_ERRORS = 20

PresetsOption = typer.Option(DEFAULT_PRESETS_FILE, "--presets", help="预设文件 (JSON)")
ReportOption = typer.Option(None, "--report", help="将逐条结果写入 CSV 报告")
VerboseOption = typer.Option(False, "--verbose", "-v", help="输出调试日志")
ExcludeFolderOption = typer.Option(None, "--exclude-folder", help="额外排除的目录名，可指定多次")
ExcludePrefixOption = typer.Option(None, "--exclude-prefix", help="额外排除的文件名前缀，可指定多次")


def _build_config(exclude_folders: Optional[List[str]], exclude_prefixes: Optional[List[str]]) -> EngineConfig:
    default = ExclusionPolicy()
    exclusion = ExclusionPolicy(
        excluded_folder_names=default.excluded_folder_names | frozenset(exclude_folders or ()),
        excluded_file_prefixes=default.excluded_file_prefixes | frozenset(exclude_prefixes or ()),
    )
    return EngineConfig(exclusion=exclusion)


def _read_codes(path: Path) -> list[str]:
    """读取代码列表文件：每行一个代码，首行为 ``imgs`` 表头时忽略。"""

    try:
        lines = [line.strip() for line in path.read_text(encoding="utf-8-sig").splitlines()]
    except OSError as exc:
        raise typer.BadParameter(f"无法读取代码文件: {path}") from exc

    codes = [line for line in lines if line]
    if codes and codes[0].lower() == "imgs":
        codes = codes[1:]
    return codes


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("处理图片", total=update.total)
        elif update.completed == 0:
            progress.reset(task_id, total=update.total)
        progress.update(task_id, completed=update.completed)
        if update.status == "aborted" and update.message:
            progress.log(update.message)

    return callback


def _execute(
    operation: Callable[..., BatchResult],
    *,
    verbose: bool,
    report: Optional[Path],
) -> BatchResult:
    """在进度条下执行一次批处理；Ctrl+C 触发协作式取消。"""

    setup_logging(verbose=verbose)
    token = CancelToken()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: token.cancel())

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )

    try:
        with progress:
            result = operation(progress_callback=_build_progress_callback(progress), cancel_token=token)
    except ProcessingAborted as exc:
        if exc.result is not None:
            _echo_result(exc.result, report)
        typer.echo("已取消。", err=True)
        raise typer.Exit(code=130) from exc
    except CatalogImageError as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _echo_result(result, report)
    return result


def _echo_result(result: BatchResult, report: Optional[Path]) -> None:
    typer.echo(f"处理完成：{summarize(result)}")
    for error in result.errors[:MAX_LISTED_ERRORS]:
        typer.echo(f"  ✗ {error}", err=True)
    if len(result.errors) > MAX_LISTED_ERRORS:
        typer.echo(f"  …另有 {len(result.errors) - MAX_LISTED_ERRORS} 条错误", err=True)
    if report is not None:
        path = write_csv_report(result, report.expanduser().resolve())
        typer.echo(f"报告文件：{path}")


def _load_catalog(path: Path) -> PresetCatalog:
    try:
        return load_presets(path.expanduser())
    except CatalogImageError as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("resize")
def resize_cli(
    input_dir: Path = typer.Argument(..., help="源图片目录"),
    output: Path = typer.Option(Path("img_out"), "--output", "-o", help="输出根目录"),
    width: int = typer.Option(..., "--width", min=1, help="目标宽度 (px)"),
    height: int = typer.Option(..., "--height", min=1, help="目标高度 (px)"),
    label: Optional[str] = typer.Option(None, "--label", help="输出目录与文件名后缀标签"),
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """将目录下所有图片居中裁剪并缩放到固定尺寸。"""

    output_dir_holder: list[Path] = []

    def operation(**kwargs) -> BatchResult:
        output_dir, result = workflows.resize_folder(
            input_dir.expanduser().resolve(),
            output.expanduser().resolve(),
            width,
            height,
            label=label,
            **kwargs,
        )
        output_dir_holder.append(output_dir)
        return result

    _execute(operation, verbose=verbose, report=report)
    typer.echo(f"输出目录：{output_dir_holder[0]}")


@app.command("copy-1px")
def copy_cli(
    source: Path = typer.Argument(..., help="源根目录（其下包含季节目录）"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码，如 25FW"),
    preset: str = typer.Option(..., "--preset", "-p", help="写入副本文件名的预设名称"),
    patterns: Optional[List[str]] = typer.Option(None, "--pattern", help="启用的标签，可指定多次；默认全部通用标签"),
    include_html: bool = typer.Option(False, "--include-html", help="同时包含 HTML 类标签图片"),
    presets_file: Path = PresetsOption,
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    exclude_prefix: Optional[List[str]] = ExcludePrefixOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """1px 复制：按推广标签复制源图片并追加预设后缀。"""

    catalog = _load_catalog(presets_file)
    config = _build_config(exclude_folder, exclude_prefix)
    _execute(
        lambda **kwargs: workflows.copy_pattern_images(
            source.expanduser(),
            season,
            preset,
            patterns or GENERAL_PATTERNS,
            include_html=include_html,
            presets=catalog,
            config=config,
            **kwargs,
        ),
        verbose=verbose,
        report=report,
    )


@app.command("copy-1px-codes")
def copy_codes_cli(
    source: Path = typer.Argument(..., help="源根目录（其下包含季节目录）"),
    codes_file: Path = typer.Option(..., "--codes", help="代码列表文件，每行一个"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码"),
    preset: str = typer.Option(..., "--preset", "-p", help="写入副本文件名的预设名称"),
    patterns: Optional[List[str]] = typer.Option(None, "--pattern", help="启用的标签，可指定多次；默认全部通用标签"),
    include_html: bool = typer.Option(False, "--include-html", help="同时包含 HTML 类标签图片"),
    presets_file: Path = PresetsOption,
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    exclude_prefix: Optional[List[str]] = ExcludePrefixOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """按代码列表过滤的 1px 复制。"""

    catalog = _load_catalog(presets_file)
    codes = _read_codes(codes_file)
    config = _build_config(exclude_folder, exclude_prefix)
    _execute(
        lambda **kwargs: workflows.copy_pattern_images_by_codes(
            source.expanduser(),
            season,
            preset,
            codes,
            patterns or GENERAL_PATTERNS,
            include_html=include_html,
            presets=catalog,
            config=config,
            **kwargs,
        ),
        verbose=verbose,
        report=report,
    )


@app.command("delete-preset")
def delete_preset_cli(
    source: Path = typer.Argument(..., help="源根目录（其下包含季节目录）"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码"),
    preset: str = typer.Option(..., "--preset", "-p", help="要删除的派生图片预设名称"),
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """删除带指定预设后缀的派生图片。"""

    config = _build_config(exclude_folder, None)
    _execute(
        lambda **kwargs: workflows.delete_preset_images(source.expanduser(), season, preset, config=config, **kwargs),
        verbose=verbose,
        report=report,
    )


@app.command("sync")
def sync_cli(
    source: Path = typer.Argument(..., help="源根目录（其下包含季节目录）"),
    codes_file: Path = typer.Option(..., "--codes", help="代码列表文件，每行一个"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码"),
    preset: str = typer.Option(..., "--preset", "-p", help="目标预设名称"),
    presets_file: Path = PresetsOption,
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    exclude_prefix: Optional[List[str]] = ExcludePrefixOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """按代码列表同步：为匹配的原图生成预设尺寸的派生图。"""

    catalog = _load_catalog(presets_file)
    codes = _read_codes(codes_file)
    config = _build_config(exclude_folder, exclude_prefix)
    _execute(
        lambda **kwargs: workflows.sync_images_by_codes(
            source.expanduser(), season, preset, codes, catalog, config=config, **kwargs
        ),
        verbose=verbose,
        report=report,
    )


@app.command("sync-all")
def sync_all_cli(
    source: Path = typer.Argument(..., help="源根目录（其下包含季节目录）"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码"),
    preset: str = typer.Option(..., "--preset", "-p", help="目标预设名称"),
    presets_file: Path = PresetsOption,
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    exclude_prefix: Optional[List[str]] = ExcludePrefixOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """全量同步：排除推广标签图片后，为所有原图生成派生图。"""

    catalog = _load_catalog(presets_file)
    config = _build_config(exclude_folder, exclude_prefix)
    _execute(
        lambda **kwargs: workflows.sync_all_images(source.expanduser(), season, preset, catalog, config=config, **kwargs),
        verbose=verbose,
        report=report,
    )


@app.command("cleanup")
def cleanup_cli(
    source: Path = typer.Argument(..., help="源根目录（其下包含季节目录）"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码"),
    preset: str = typer.Option(..., "--preset", "-p", help="派生图片的预设名称"),
    pattern_images: bool = typer.Option(True, "--pattern-images/--no-pattern-images", help="删除 1px 复制产物"),
    sync_images: bool = typer.Option(True, "--sync-images/--no-sync-images", help="删除同步产物"),
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """按季节前缀区分并删除派生图片，原图不会被删除。"""

    config = _build_config(exclude_folder, None)
    _execute(
        lambda **kwargs: workflows.delete_generated_images(
            source.expanduser(),
            season,
            preset,
            pattern_images=pattern_images,
            sync_images=sync_images,
            config=config,
            **kwargs,
        ),
        verbose=verbose,
        report=report,
    )


@app.command("nas")
def nas_cli(
    source: Path = typer.Argument(..., help="待传输的图片目录"),
    base: Path = typer.Option(..., "--base", help="NAS 根目录"),
    season: str = typer.Option(..., "--season", "-s", help="季节代码"),
    exclude_folder: Optional[List[str]] = ExcludeFolderOption,
    exclude_prefix: Optional[List[str]] = ExcludePrefixOption,
    report: Optional[Path] = ReportOption,
    verbose: bool = VerboseOption,
) -> None:
    """按文件名前两段下划线分段复制到 NAS 目录结构。"""

    config = _build_config(exclude_folder, exclude_prefix)
    _execute(
        lambda **kwargs: workflows.nas_transfer(source.expanduser(), base.expanduser(), season, config=config, **kwargs),
        verbose=verbose,
        report=report,
    )


@preset_app.command("list")
def preset_list_cli(presets_file: Path = PresetsOption) -> None:
    """列出所有预设。"""

    catalog = _load_catalog(presets_file)
    if not len(catalog):
        typer.echo("没有已保存的预设。")
        return
    for preset in catalog:
        typer.echo(f"{preset.name}\t{preset.width}x{preset.height}")


@preset_app.command("add")
def preset_add_cli(
    name: str = typer.Argument(..., help="预设名称"),
    width: int = typer.Option(..., "--width", min=1, help="宽度 (px)"),
    height: int = typer.Option(..., "--height", min=1, help="高度 (px)"),
    presets_file: Path = PresetsOption,
) -> None:
    """新增预设，名称不可重复。"""

    catalog = _load_catalog(presets_file)
    try:
        preset = catalog.add(Preset(name=name, width=width, height=height))
        save_presets(catalog, presets_file.expanduser())
    except CatalogImageError as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"已保存预设 {preset.name} ({preset.width}x{preset.height})")


@preset_app.command("remove")
def preset_remove_cli(
    name: str = typer.Argument(..., help="预设名称"),
    presets_file: Path = PresetsOption,
) -> None:
    """删除预设。"""

    catalog = _load_catalog(presets_file)
    try:
        catalog.remove(name)
        save_presets(catalog, presets_file.expanduser())
    except CatalogImageError as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"已删除预设 {name}")


if __name__ == "__main__":
    app()
