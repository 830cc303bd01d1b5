"""
评论分发（把解析结果写回代码托管平台）。

发布顺序固定：
1. 带位置评论（按模型输出顺序）
2. 全局评论
3. 摘要（非空时）

兜底规则：
- 带位置评论解析不到真实行号，或行内评论发布失败 -> 降级为全局评论（正文带文件名 + DIFF_LINE）
- 单条发布失败只记日志，不影响后续评论（没有“全部成功或全部失败”）
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from whytho.review.diff_parser import AnnotatedLine
from whytho.review.diff_parser import LineNotFoundError
from whytho.review.diff_parser import find_change
from whytho.review.diff_parser import find_diff_line
from whytho.review.models import CommentPostError
from whytho.review.models import FileChange
from whytho.review.models import PositionedComment
from whytho.review.models import ReviewResult
from whytho.review.synthesis import format_fallback_body
from whytho.review.synthesis import format_summary_body


class CommentPoster(Protocol):
    """发布评论的外部协作者；失败必须抛 `CommentPostError`。"""

    async def post_general_comment(self, body: str) -> None: ...

    async def post_positioned_comment(
        self, comment: PositionedComment, change: FileChange, line: AnnotatedLine
    ) -> None: ...


@dataclass
class DispatchReport:
    """一次分发的统计（用于日志/测试）。"""

    positioned: int = 0
    fallback: int = 0
    general: int = 0
    summary: bool = False
    failed: int = 0


class CommentDispatcher:
    def __init__(self, poster: CommentPoster, logger: logging.Logger | None = None) -> None:
        self._poster = poster
        self._logger = logger or logging.getLogger(__name__)

    async def dispatch(self, review: ReviewResult, changes: Sequence[FileChange]) -> DispatchReport:
        report = DispatchReport()

        for index, comment in enumerate(review.positioned_comments, start=1):
            self._logger.debug(
                f"Posting positioned comment {index}/{len(review.positioned_comments)}: "
                f"{comment.file_path}:{comment.diff_line} ({comment.line_type})"
            )
            await self._post_positioned(comment=comment, changes=changes, report=report)

        for index, body in enumerate(review.comments, start=1):
            self._logger.debug(f"Posting general comment {index}/{len(review.comments)}")
            if await self._post_general(body=body, report=report):
                report.general += 1

        if review.summary:
            self._logger.info("Posting review summary")
            report.summary = await self._post_general(body=format_summary_body(review.summary), report=report)

        self._logger.info(
            f"Dispatch finished: positioned={report.positioned}, fallback={report.fallback}, "
            f"general={report.general}, summary={report.summary}, failed={report.failed}"
        )
        return report

    async def _post_positioned(
        self,
        comment: PositionedComment,
        changes: Sequence[FileChange],
        report: DispatchReport,
    ) -> None:
        change = find_change(changes=changes, file_path=comment.file_path)
        try:
            if change is None:
                raise LineNotFoundError(f"file {comment.file_path} not found in merge request changes")
            line = find_diff_line(diff=change.diff, position=comment.diff_line, line_kind=comment.line_type)
        except LineNotFoundError as exc:
            self._logger.warning(f"Failed to resolve diff line, falling back to general comment: {exc}")
            await self._post_fallback(comment=comment, report=report)
            return

        try:
            await self._poster.post_positioned_comment(comment=comment, change=change, line=line)
        except CommentPostError as exc:
            self._logger.error(
                f"Failed to post positioned comment on {comment.file_path} line {line.line_number}: {exc}"
            )
            await self._post_fallback(comment=comment, report=report)
            return
        report.positioned += 1

    async def _post_fallback(self, comment: PositionedComment, report: DispatchReport) -> None:
        if await self._post_general(body=format_fallback_body(comment), report=report):
            report.fallback += 1

    async def _post_general(self, body: str, report: DispatchReport) -> bool:
        try:
            await self._poster.post_general_comment(body)
        except CommentPostError as exc:
            self._logger.error(f"Failed to post general comment: {exc}")
            report.failed += 1
            return False
        return True
