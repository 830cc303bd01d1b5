"""
Unified diff 行号索引。

给 diff 里的每一行 `+` / `-` / ` ` 分配一个从 1 开始、连续递增的 DIFF_LINE 编号，
并记录它在旧文件/新文件中的真实行号：
- `annotate_diff`：把编号写进 diff 文本，交给模型引用
- `find_diff_line` / `resolve_line_number`：把模型引用的编号映射回真实行号

两者都基于同一个 `iter_diff_lines` 状态机，保证编号完全一致。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Literal

from whytho.review.models import FileChange

logger = logging.getLogger(__name__)

LineKind = Literal["old", "new", "context"]

# 带可选符号的十进制整数（hunk header 起始行号、DIFF_LINE 编号共用）
INTEGER_RE = re.compile(r"[+-]?[0-9]+")


class LineNotFoundError(LookupError):
    """找不到指定文件/编号/类型对应的 diff 行。"""

    pass


@dataclass(frozen=True)
class AnnotatedLine:
    """
    一行 diff 及其编号。

    kind 为 None 表示 hunk header / 文件头等元信息行，此时不占用编号。
    """

    text: str
    kind: LineKind | None = None
    position: int | None = None
    old_line: int | None = None
    new_line: int | None = None

    @property
    def line_number(self) -> int | None:
        """按类型取真实行号：old 用旧文件行号，new/context 用新文件行号。"""
        if self.kind == "old":
            return self.old_line
        return self.new_line


def iter_diff_lines(diff: str) -> Iterator[AnnotatedLine]:
    """逐行扫描单个文件的 diff，产出带编号的行（输入顺序）。"""
    old_line = 0
    new_line = 0
    position = 0
    in_hunk = False

    for line in diff.split("\n"):
        if line.startswith("@@"):
            old_line, new_line = _parse_hunk_header(header=line, old_line=old_line, new_line=new_line)
            in_hunk = True
            yield AnnotatedLine(text=line)
            continue
        if line.startswith("diff --git"):
            in_hunk = False
            yield AnnotatedLine(text=line)
            continue
        # 第一个 hunk 之前的 `--- a/x` / `+++ b/x` 是文件头，不是内容行
        if not in_hunk and (line.startswith("+++") or line.startswith("---")):
            yield AnnotatedLine(text=line)
            continue

        if line.startswith("+"):
            new_line += 1
            position += 1
            yield AnnotatedLine(text=line, kind="new", position=position, new_line=new_line)
        elif line.startswith("-"):
            old_line += 1
            position += 1
            yield AnnotatedLine(text=line, kind="old", position=position, old_line=old_line)
        elif line.startswith(" "):
            old_line += 1
            new_line += 1
            position += 1
            yield AnnotatedLine(text=line, kind="context", position=position, old_line=old_line, new_line=new_line)
        else:
            yield AnnotatedLine(text=line)


def annotate_diff(diff: str) -> str:
    """把 `[DIFF_LINE:n,...]` 标注追加到每个内容行末尾。"""
    return "\n".join(_render(line) for line in iter_diff_lines(diff))


def find_diff_line(diff: str, position: int, line_kind: str) -> AnnotatedLine:
    """
    重放编号过程，返回第一个编号与类型都匹配的行。

    - 失败：编号不存在，或该编号的行类型与 line_kind 不一致，抛 `LineNotFoundError`
    """
    for line in iter_diff_lines(diff):
        if line.position == position and line.kind == line_kind:
            return line
    raise LineNotFoundError(f"could not find diff line {position} with type {line_kind!r}")


def find_line_number(diff: str, position: int, line_kind: str) -> int:
    line = find_diff_line(diff=diff, position=position, line_kind=line_kind)
    number = line.line_number
    if number is None:
        raise LineNotFoundError(f"diff line {position} has no {line_kind!r} line number")
    return number


def find_change(changes: Sequence[FileChange], file_path: str) -> FileChange | None:
    """按 old_path / new_path 查找变更文件（取第一个命中）。"""
    for change in changes:
        if change.new_path == file_path or change.old_path == file_path:
            return change
    return None


def resolve_line_number(changes: Sequence[FileChange], file_path: str, position: int, line_kind: str) -> int:
    """把模型给出的 (文件, DIFF_LINE, 类型) 映射为真实文件行号。"""
    change = find_change(changes=changes, file_path=file_path)
    if change is None:
        raise LineNotFoundError(f"file {file_path} not found in merge request changes")
    return find_line_number(diff=change.diff, position=position, line_kind=line_kind)


def _render(line: AnnotatedLine) -> str:
    if line.kind == "new":
        return f"{line.text} [DIFF_LINE:{line.position},NEW_LINE:{line.new_line}]"
    if line.kind == "old":
        return f"{line.text} [DIFF_LINE:{line.position},OLD_LINE:{line.old_line}]"
    if line.kind == "context":
        return f"{line.text} [DIFF_LINE:{line.position},CONTEXT:{line.new_line}]"
    return line.text


def _parse_hunk_header(header: str, old_line: int, new_line: int) -> tuple[int, int]:
    """
    解析 `@@ -a,b +c,d @@`，返回 (a - 1, c - 1)。

    起始行号无法解析时保留原计数（不抛错，扫描继续）。
    """
    parts = header.split(" ")
    if len(parts) < 3:
        logger.warning(f"Malformed diff hunk header: {header!r}")
        return old_line, new_line

    old_start = _parse_start(parts[1].removeprefix("-"))
    new_start = _parse_start(parts[2].removeprefix("+"))
    if old_start is None or new_start is None:
        logger.warning(f"Malformed diff hunk header: {header!r}")
    if old_start is not None:
        old_line = old_start - 1
    if new_start is not None:
        new_line = new_start - 1
    return old_line, new_line


def _parse_start(token: str) -> int | None:
    comma = token.find(",")
    if comma > 0:
        token = token[:comma]
    if not INTEGER_RE.fullmatch(token):
        return None
    return int(token)
