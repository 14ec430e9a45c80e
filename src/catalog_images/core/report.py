"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path

from catalog_images.core.models import BatchResult

HEADER = ["source_path", "output_path", "status", "message"]


def write_csv_report(result: BatchResult, report_path: Path) -> Path:
    """将批处理中每个条目的结果写入 CSV 报告。"""

    report_path.parent.mkdir(parents=True, exist_ok=True)
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in result.outcomes:
            writer.writerow(
                [
                    str(record.source_path),
                    str(record.output_path) if record.output_path else "",
                    record.status,
                    record.message or "",
                ]
            )
    return report_path


def summarize(result: BatchResult) -> str:
    """生成一行结果摘要。"""

    summary = f"匹配 {result.matched_count} 张，成功 {result.succeeded_count} 张，失败 {result.failed_count} 张"
    if result.skipped_count:
        summary += f"，未找到图片的代码 {result.skipped_count} 个"
    return summary + "。"
