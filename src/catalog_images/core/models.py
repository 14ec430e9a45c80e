"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True, slots=True)
class FileRecord:
    """遍历阶段得到的图片文件信息，仅在一次批处理内有效。"""

    name: str
    path: Path
    relative_path: Path


@dataclass(frozen=True, slots=True)
class ParsedFilename:
    """文件名拆解结果。

    ``first_segment``、``remainder`` 与 ``last_segment`` 在文件名（不含扩展名）
    中没有下划线时为 ``None``，依赖下划线的规则对这类文件直接判定为不匹配。
    """

    name: str
    stem: str
    extension: str
    first_segment: Optional[str]
    remainder: Optional[str]
    last_segment: Optional[str]

    @property
    def has_underscore(self) -> bool:
        return self.first_segment is not None


@dataclass(frozen=True, slots=True)
class Preset:
    """命名的目标尺寸。"""

    name: str
    width: int
    height: int

    def as_dict(self) -> dict[str, object]:
        return {"name": self.name, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class ItemError:
    """单个条目的失败记录。"""

    item_name: str
    message: str

    def __str__(self) -> str:
        return f"{self.item_name}: {self.message}"


@dataclass(frozen=True, slots=True)
class FileOutcome:
    """记录单个文件的处理结果（用于报告/日志）。"""

    source_path: Path
    status: str
    output_path: Optional[Path] = None
    message: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BatchResult:
    """一次批处理的汇总结果，生成后不再修改。"""

    matched_count: int
    succeeded_count: int
    failed_count: int
    errors: tuple[ItemError, ...] = ()
    skipped_count: int = 0
    outcomes: tuple[FileOutcome, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "BatchResult":
        return cls(matched_count=0, succeeded_count=0, failed_count=0)

    def merge(self, other: "BatchResult") -> "BatchResult":
        """合并两次批处理的结果，顺序保持不变。"""

        return BatchResult(
            matched_count=self.matched_count + other.matched_count,
            succeeded_count=self.succeeded_count + other.succeeded_count,
            failed_count=self.failed_count + other.failed_count,
            errors=self.errors + other.errors,
            skipped_count=self.skipped_count + other.skipped_count,
            outcomes=self.outcomes + other.outcomes,
        )
