"""
GitLab Webhook / API response schemas（Pydantic）。

为什么要单独放 schema：
- GitLab 的 payload 结构复杂，直接用 dict 容易写错 key
- schema 校验失败会立刻暴露问题（比“默默 None”安全）

说明：
- 这里的字段只覆盖 review 闭环所需子集，其余字段忽略
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GitLabUser(BaseModel):
    """Webhook 里的 user 子结构（只取 username）。"""

    username: str


class GitLabProject(BaseModel):
    """Webhook 里的 project 子结构（id/web_url）。"""

    id: int
    web_url: str = ""


class GitLabMergeRequestObjectAttributes(BaseModel):
    """
    Merge request webhook 的 object_attributes 子结构。

    - oldrev：只有 push 了新 commit 的 update 事件才会带上
    """

    iid: int
    action: str | None = None
    title: str = ""
    description: str | None = None
    target_branch: str
    source_branch: str
    last_commit: dict[str, object] = Field(default_factory=dict)
    oldrev: str | None = None


class GitLabMergeRequestWebhookEvent(BaseModel):
    """Merge request webhook 的最小结构。"""

    object_kind: str
    user: GitLabUser | None = None
    project: GitLabProject
    object_attributes: GitLabMergeRequestObjectAttributes


class GitLabDiffRef(BaseModel):
    """GitLab 返回的 diff refs（行内评论 position 需要）。"""

    base_sha: str
    head_sha: str
    start_sha: str


class GitLabMRChange(BaseModel):
    """单个文件变更（包含 diff 字符串）。"""

    old_path: str
    new_path: str
    a_mode: str | None = None
    b_mode: str | None = None
    new_file: bool = False
    renamed_file: bool = False
    deleted_file: bool = False
    diff: str = ""


class GitLabMergeRequestChanges(BaseModel):
    """MR changes API 返回结构（changes + diff_refs）。"""

    changes: list[GitLabMRChange]
    diff_refs: GitLabDiffRef | None = None


class GitLabNote(BaseModel):
    """MR note 返回结构。"""

    id: int
    body: str


class GitLabDiscussion(BaseModel):
    """MR discussion 返回结构（只取 id）。"""

    id: str


class GitLabRepositoryFile(BaseModel):
    """Repository files API 返回结构（content 通常为 base64）。"""

    file_path: str
    encoding: str = "text"
    content: str
