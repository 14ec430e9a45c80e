"""批处理编排：遍历、规则筛选、逐个执行动作并汇总部分失败。"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Optional

from catalog_images.core.config import DEFAULT_CONFIG, EngineConfig
from catalog_images.core.exceptions import CatalogImageError, ProcessingAborted, ValidationError
from catalog_images.core.models import BatchResult, FileOutcome, FileRecord, ItemError
from catalog_images.core.progress import ProgressCallback, ProgressUpdate
from catalog_images.matching.rules import RuleKind, RuleParams, select_files
from catalog_images.processing.actions import BatchAction

LOGGER = logging.getLogger(__name__)


class CancelToken:
    """协作式取消标记，在两个条目之间检查。"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class _ResultBuilder:
    def __init__(self, matched: int) -> None:
        self.matched = matched
        self.succeeded = 0
        self.errors: list[ItemError] = []
        self.outcomes: list[FileOutcome] = []

    def succeed(self, record: FileRecord, status: str, output_path: Optional[Path]) -> None:
        self.succeeded += 1
        self.outcomes.append(FileOutcome(source_path=record.path, status=status, output_path=output_path))

    def fail(self, record: FileRecord, message: str) -> None:
        self.errors.append(ItemError(item_name=record.name, message=message))
        self.outcomes.append(FileOutcome(source_path=record.path, status="error", message=message))

    def build(self) -> BatchResult:
        return BatchResult(
            matched_count=self.matched,
            succeeded_count=self.succeeded,
            failed_count=len(self.errors),
            errors=tuple(self.errors),
            outcomes=tuple(self.outcomes),
        )


def run_batch(
    root: Path,
    kind: Optional[RuleKind],
    params: RuleParams,
    action: BatchAction,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
    preset_names: Iterable[str] = (),
    progress_callback: ProgressCallback = None,
    cancel_token: Optional[CancelToken] = None,
) -> BatchResult:
    """执行一次批处理。

    参数校验失败时在触碰任何文件前抛出 ``ValidationError``；单个条目的失败
    记录到结果中，不会中断批处理。匹配集合在执行动作前一次性确定，
    动作新产生的文件不会被本批次再次选中。
    """

    root = Path(root)
    if not root.is_dir():
        raise ValidationError(f"Path does not exist: {root}")

    LOGGER.info("开始扫描 %s", root)
    records = list(select_files(root, kind, params, config=config, preset_names=preset_names))
    total = len(records)
    LOGGER.info("发现 %d 个匹配文件", total)

    builder = _ResultBuilder(matched=total)
    _emit_progress(progress_callback, 0, total, f"开始执行: {action.describe()}")

    for completed, record in enumerate(records, start=1):
        if cancel_token is not None and cancel_token.cancelled:
            partial = builder.build()
            LOGGER.warning("批处理已取消，已完成 %d/%d", completed - 1, total)
            _emit_progress(progress_callback, completed - 1, total, "已取消", status="aborted")
            raise ProcessingAborted("批处理已取消", result=partial)

        try:
            output_path = action.apply(record)
        except (CatalogImageError, OSError) as exc:
            LOGGER.error("处理失败 %s: %s", record.relative_path, exc)
            builder.fail(record, str(exc))
        else:
            builder.succeed(record, action.status, output_path)

        _emit_progress(progress_callback, completed, total, f"完成 {record.name}")

    result = builder.build()
    _emit_progress(progress_callback, total, total, "处理完成", status="done")
    LOGGER.info(
        "处理完成：匹配 %d，成功 %d，失败 %d",
        result.matched_count,
        result.succeeded_count,
        result.failed_count,
    )
    return result


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
    status: str = "running",
) -> None:
    if not callback:
        return
    callback(ProgressUpdate(total=total, completed=completed, message=message, status=status))
