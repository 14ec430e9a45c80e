"""文件名拆解与命名约定工具。"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from catalog_images.core.exceptions import InvalidFilenameError
from catalog_images.core.models import ParsedFilename

CODE_SUFFIX_LENGTH = 3


def split_extension(name: str) -> tuple[str, str]:
    """按最后一个 ``.`` 拆分为 (主名, 扩展名)，扩展名不含点。"""

    stem, dot, extension = name.rpartition(".")
    if not dot:
        return name, ""
    return stem, extension


def parse_filename(name: str) -> ParsedFilename:
    """将不含目录的文件名拆解为语义字段，不做任何大小写或空白归一化。"""

    stem, extension = split_extension(name)
    first, underscore, remainder = stem.partition("_")
    if not underscore:
        return ParsedFilename(
            name=name,
            stem=stem,
            extension=extension,
            first_segment=None,
            remainder=None,
            last_segment=None,
        )

    return ParsedFilename(
        name=name,
        stem=stem,
        extension=extension,
        first_segment=first,
        remainder=remainder,
        last_segment=stem.rpartition("_")[2],
    )


def has_preset_suffix(name: str, preset_name: str) -> bool:
    """文件名是否包含 ``_<preset>.`` 字面子串。"""

    return f"_{preset_name}." in name


def carries_known_preset(name: str, preset_names: Iterable[str]) -> bool:
    """文件是否已是某个已知预设的派生产物。"""

    return any(has_preset_suffix(name, preset) for preset in preset_names)


def derived_filename(name: str, preset_name: str) -> str:
    """生成派生文件名 ``{base}_{preset}.{ext}``。"""

    stem, extension = split_extension(name)
    if not extension:
        return f"{stem}_{preset_name}"
    return f"{stem}_{preset_name}.{extension}"


def transform_code(code: str, separator: str) -> str:
    """在商品代码的最后三个字符前插入分隔符。

    ``SF177E-55NXFJ`` 使用 ``_`` 得到 ``SF177E-55N_XFJ``，使用 ``-`` 得到
    ``SF177E-55N-XFJ``。长度不超过 3 的代码原样返回。
    """

    code = code.strip()
    if len(code) <= CODE_SUFFIX_LENGTH:
        return code
    return f"{code[:-CODE_SUFFIX_LENGTH]}{separator}{code[-CODE_SUFFIX_LENGTH:]}"


def nas_destination(base_path: Path, season: str, filename: str) -> Path:
    """按文件名前两段下划线分段计算 NAS 目标路径。"""

    parts = filename.split("_")
    if len(parts) < 2:
        raise InvalidFilenameError("invalid filename format")
    return Path(base_path) / season / parts[0] / parts[1] / filename
