"""目录遍历与图片文件筛选逻辑。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AbstractSet, Iterator, Optional

from catalog_images.core.config import IMAGE_EXTENSIONS, ExclusionPolicy
from catalog_images.core.exceptions import FileSystemError, NotFoundError
from catalog_images.core.models import FileRecord

LOGGER = logging.getLogger(__name__)


def is_image_file(name: str, extensions: AbstractSet[str] = IMAGE_EXTENSIONS) -> bool:
    return Path(name).suffix.lower() in extensions


def walk_images(
    root: Path,
    policy: Optional[ExclusionPolicy] = None,
    extensions: AbstractSet[str] = IMAGE_EXTENSIONS,
) -> Iterator[FileRecord]:
    """深度优先、惰性地遍历 ``root`` 下所有符合条件的图片文件。

    每次调用都会重新读取磁盘。名称命中排除列表的目录不会进入；无法读取的
    子目录记录告警后跳过，遍历继续。使用显式的目录迭代器栈而非递归，
    同一目录内的条目按名称排序，保证对未变化的目录树结果稳定。
    """

    policy = policy or ExclusionPolicy()
    root = Path(root)
    if not root.is_dir():
        raise NotFoundError(f"扫描目录不存在: {root}")

    root_entries = _list_directory(root)
    if root_entries is None:
        raise FileSystemError(f"无法读取扫描目录: {root}")

    stack: list[Iterator[Path]] = [iter(root_entries)]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue

        try:
            is_link = entry.is_symlink()
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        except OSError as exc:
            LOGGER.warning("无法读取条目，已跳过 %s: %s", entry, exc)
            continue

        if is_link and is_dir:
            LOGGER.debug("跳过符号链接目录: %s", entry)
            continue

        if is_dir:
            if policy.excludes_folder(entry.name):
                LOGGER.debug("跳过排除目录: %s", entry)
                continue
            children = _list_directory(entry)
            if children is not None:
                stack.append(iter(children))
            continue

        if not is_file:
            continue
        if not is_image_file(entry.name, extensions):
            continue
        if policy.excludes_file(entry.name):
            continue

        yield FileRecord(name=entry.name, path=entry, relative_path=entry.relative_to(root))


def _list_directory(path: Path) -> Optional[list[Path]]:
    """读取目录条目；失败时记录告警并返回 ``None``。"""

    try:
        return sorted(path.iterdir(), key=lambda item: item.name)
    except OSError as exc:
        LOGGER.warning("无法读取目录，已跳过 %s: %s", path, exc)
        return None
