"""
排除规则（`.whytho/config.yaml` 的 exclude_paths）。

匹配语义：
- shell glob：`*` / `?` / `[...]`，其中 `*` 和 `?` 不跨越 `/`
- 额外支持 `dir/**`：路径等于 `dir` 或以 `dir/` 开头即命中
- 非法 pattern（例如未闭合的 `[`）记 warning 后跳过，不影响其它规则
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from functools import lru_cache

from whytho.review.models import FileChange

logger = logging.getLogger(__name__)


class InvalidPatternError(ValueError):
    """glob pattern 语法错误。"""

    pass


def should_exclude(path: str, patterns: Sequence[str]) -> bool:
    for pattern in patterns:
        try:
            matched = _compile_glob(pattern).fullmatch(path) is not None
        except InvalidPatternError as exc:
            logger.warning(f"Invalid exclude pattern {pattern!r}, skipping: {exc}")
            continue
        if matched:
            return True

        if pattern.endswith("/**"):
            prefix = pattern.removesuffix("/**")
            if path == prefix or path.startswith(prefix + "/"):
                return True
    return False


def filter_changes(changes: Sequence[FileChange], patterns: Sequence[str]) -> tuple[list[FileChange], list[str]]:
    """
    按排除规则过滤变更文件。

    - 输出：(保留的 changes（保持输入顺序）, 被排除的路径列表)
    - 规则为空时原样返回
    """
    if not patterns:
        return list(changes), []

    kept: list[FileChange] = []
    excluded: list[str] = []
    for change in changes:
        if should_exclude(path=change.path, patterns=patterns):
            logger.debug(f"Excluding {change.path} from review")
            excluded.append(change.path)
        else:
            kept.append(change)
    return kept, excluded


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    """把 glob 翻译成正则；语法错误抛 `InvalidPatternError`。"""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        i += 1
        if ch == "*":
            parts.append("[^/]*")
        elif ch == "?":
            parts.append("[^/]")
        elif ch == "\\":
            if i >= n:
                raise InvalidPatternError("trailing backslash")
            parts.append(re.escape(pattern[i]))
            i += 1
        elif ch == "[":
            cls, i = _translate_class(pattern, i)
            parts.append(cls)
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def _translate_class(pattern: str, i: int) -> tuple[str, int]:
    """翻译 `[...]`（i 指向 `[` 之后），返回 (正则片段, 新下标)。"""
    n = len(pattern)
    negate = False
    if i < n and pattern[i] in "!^":
        negate = True
        i += 1

    items: list[str] = []
    while True:
        if i >= n:
            raise InvalidPatternError("unterminated character class")
        if pattern[i] == "]" and items:
            i += 1
            break
        # 空的 `[]`、开头的 `]` 都会落到 _class_char 里报错
        lo, i = _class_char(pattern, i)
        if i < n and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
            if hi < lo:
                raise InvalidPatternError(f"bad range {lo}-{hi}")
            items.append(f"{re.escape(lo)}-{re.escape(hi)}")
        else:
            items.append(re.escape(lo))

    body = "".join(items)
    if negate:
        return f"[^/{body}]", i
    return f"[{body}]", i


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    """取 class 里的一个字符；未转义的 `-` / `]` 不能出现在这里。"""
    if i >= len(pattern):
        raise InvalidPatternError("unterminated character class")
    ch = pattern[i]
    if ch in "-]":
        raise InvalidPatternError(f"unexpected {ch!r} in character class")
    if ch == "\\":
        if i + 1 >= len(pattern):
            raise InvalidPatternError("trailing backslash")
        return pattern[i + 1], i + 2
    return ch, i + 1
