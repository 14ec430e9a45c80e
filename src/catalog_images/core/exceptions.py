"""项目内使用的自定义异常定义。"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from catalog_images.core.models import BatchResult


class CatalogImageError(Exception):
    """基础异常类型。"""


class NotFoundError(CatalogImageError):
    """输入文件或路径不存在。"""


class InvalidImageError(CatalogImageError):
    """源图片无法解码或尺寸非法。"""


class FileSystemError(CatalogImageError):
    """目录读取或文件写入失败。"""


class ValidationError(CatalogImageError):
    """操作参数缺失或不合法，在触碰任何文件之前抛出。"""


class ProcessingAborted(CatalogImageError):
    """任务被用户中断时抛出，携带中断前已累计的结果。"""

    def __init__(self, message: str, result: Optional["BatchResult"] = None) -> None:
        super().__init__(message)
        self.result = result


class InvalidFilenameError(CatalogImageError):
    """文件名不符合命名约定（仅影响该条目）。"""
