"""日志配置。"""

from __future__ import annotations

import logging

from rich.logging import RichHandler


def setup_logging(level: int = logging.INFO, *, verbose: bool = False) -> None:
    """初始化项目日志配置，``verbose`` 时输出 DEBUG 级别（含裁剪几何信息）。"""

    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
