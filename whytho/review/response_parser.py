"""
模型回复解析（`COMMENT:` 行协议）。

模型被要求输出：
- 开头一段摘要
- 若干行 `COMMENT:path:diff_line:line_type:severity:text`

模型不一定守规矩，所以这里是“尽力而为”的逐行解析：
- 格式正确 -> `PositionedComment`
- 字段数不对 / diff_line 不是整数 -> 退化为全局评论（原文保留，不丢弃）
- 永不抛错
"""

from __future__ import annotations

import logging

from whytho.review.diff_parser import INTEGER_RE
from whytho.review.models import PositionedComment
from whytho.review.models import ReviewResult

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "COMMENT:"


ParsedComment = PositionedComment | str | None


def parse_review(text: str) -> ReviewResult:
    summary_parts: list[str] = []
    comments: list[str] = []
    positioned: list[PositionedComment] = []
    in_summary = True

    for raw in text.split("\n"):
        line = raw.strip()

        if line.startswith(COMMENT_PREFIX):
            # 一旦出现 COMMENT 行，后面的普通文本不再算摘要
            in_summary = False
            parsed = parse_comment_line(line.removeprefix(COMMENT_PREFIX))
            if isinstance(parsed, PositionedComment):
                positioned.append(parsed)
            elif parsed is not None:
                comments.append(parsed)
        elif in_summary and line:
            summary_parts.append(line)

    logger.debug(
        f"Parsed review: summary={len(' '.join(summary_parts))} chars, "
        f"general={len(comments)}, positioned={len(positioned)}"
    )
    return ReviewResult(summary=" ".join(summary_parts), comments=comments, positioned_comments=positioned)


def parse_comment_line(comment: str) -> ParsedComment:
    """
    解析去掉 `COMMENT:` 前缀后的文本。

    返回：`PositionedComment`（带位置）/ `str`（全局评论）/ `None`（空评论，忽略）
    """
    comment = comment.strip()
    if not comment:
        return None

    parts = comment.split(":", 4)
    if len(parts) != 5:
        logger.debug(f"Comment not in positioned format, using general comment: {comment!r}")
        return comment

    file_path, diff_line, line_type, severity, body = parts
    if not INTEGER_RE.fullmatch(diff_line):
        logger.debug(f"Failed to parse diff line {diff_line!r}, using general comment")
        return comment

    return PositionedComment(
        file_path=file_path,
        diff_line=int(diff_line),
        line_type=line_type,
        severity=severity,
        body=body,
    )
