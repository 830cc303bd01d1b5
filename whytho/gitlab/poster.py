"""
GitLab 评论发布器（实现 dispatcher 的 `CommentPoster` 协议）。

一个实例绑定一次 review：project_id + mr_iid + diff_refs。
HTTP 错误、以及 2xx 但响应体不是合法 JSON / schema 的情况，统一包装成 `CommentPostError`，
由 dispatcher 决定是否降级为全局评论。
"""

from __future__ import annotations

import httpx

from whytho.gitlab.client import GitLabAPIError
from whytho.gitlab.client import GitLabClient
from whytho.review.diff_parser import AnnotatedLine
from whytho.review.models import CommentPostError
from whytho.review.models import DiffRefs
from whytho.review.models import FileChange
from whytho.review.models import PositionedComment
from whytho.review.synthesis import format_positioned_body


def build_text_position(diff_refs: DiffRefs, change: FileChange, line: AnnotatedLine) -> dict[str, object]:
    """
    构造 GitLab discussion 的 position。

    - new：只带 new_line
    - old：只带 old_line
    - context：两个都带（GitLab 要求未改动行同时给出新旧行号）
    """
    position: dict[str, object] = {
        "position_type": "text",
        "base_sha": diff_refs.base_sha,
        "head_sha": diff_refs.head_sha,
        "start_sha": diff_refs.start_sha,
        "old_path": change.old_path,
        "new_path": change.new_path,
    }
    if line.kind in ("new", "context"):
        position["new_line"] = line.new_line
    if line.kind in ("old", "context"):
        position["old_line"] = line.old_line
    return position


class GitLabCommentPoster:
    def __init__(self, client: GitLabClient, project_id: int, mr_iid: int, diff_refs: DiffRefs | None) -> None:
        self._client = client
        self._project_id = project_id
        self._mr_iid = mr_iid
        self._diff_refs = diff_refs

    async def post_general_comment(self, body: str) -> None:
        try:
            await self._client.post_merge_request_note(project_id=self._project_id, mr_iid=self._mr_iid, body=body)
        except (GitLabAPIError, httpx.HTTPError, ValueError) as exc:
            raise CommentPostError(f"Failed to post MR note: {exc}") from exc

    async def post_positioned_comment(self, comment: PositionedComment, change: FileChange, line: AnnotatedLine) -> None:
        if self._diff_refs is None:
            raise CommentPostError("Merge request has no diff_refs, cannot post positioned comment")
        position = build_text_position(diff_refs=self._diff_refs, change=change, line=line)
        try:
            await self._client.create_merge_request_discussion(
                project_id=self._project_id,
                mr_iid=self._mr_iid,
                body=format_positioned_body(comment),
                position=position,
            )
        except (GitLabAPIError, httpx.HTTPError, ValueError) as exc:
            raise CommentPostError(f"Failed to post positioned comment on {comment.file_path}: {exc}") from exc
