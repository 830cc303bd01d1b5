"""
GitLab -> Review domain adapter。

职责：
- 将 GitLab API 的 changes/diff schema 转换为平台无关的 `FileChange`
- 只做数据归一化，不做业务决策
"""

from __future__ import annotations

from whytho.gitlab.schemas import GitLabDiffRef
from whytho.gitlab.schemas import GitLabMergeRequestChanges
from whytho.review.context import infer_language_from_path
from whytho.review.models import DiffRefs
from whytho.review.models import FileChange


def build_file_changes_from_gitlab_changes(changes: GitLabMergeRequestChanges) -> list[FileChange]:
    file_changes: list[FileChange] = []
    for c in changes.changes:
        file_changes.append(
            FileChange(
                old_path=c.old_path,
                new_path=c.new_path,
                diff=c.diff,
                language=infer_language_from_path(path=c.new_path or c.old_path),
                is_new_file=c.new_file,
                is_deleted_file=c.deleted_file,
                is_renamed_file=c.renamed_file,
            )
        )
    return file_changes


def build_diff_refs(diff_refs: GitLabDiffRef | None) -> DiffRefs | None:
    if diff_refs is None:
        return None
    return DiffRefs(base_sha=diff_refs.base_sha, head_sha=diff_refs.head_sha, start_sha=diff_refs.start_sha)
