"""
Review 领域模型（Pydantic）。

用途：
- 明确各阶段输入/输出的数据结构（changes -> 解析结果 -> 待发布评论）
- 与具体平台（GitLab）解耦：adapter 负责把 API schema 转换成这里的模型
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FileChange(BaseModel):
    """单个文件的变更（从 GitLab changes/diff 归一化而来）。"""

    model_config = ConfigDict(frozen=True)

    old_path: str
    new_path: str
    diff: str
    language: str = "unknown"
    is_new_file: bool = False
    is_deleted_file: bool = False
    is_renamed_file: bool = False

    @property
    def path(self) -> str:
        """用于排除规则匹配的路径：删除文件用 old_path，其余用 new_path。"""
        if self.is_deleted_file or not self.new_path:
            return self.old_path
        return self.new_path


class PositionedComment(BaseModel):
    """
    模型给出的“带位置”评论（来自一行 `COMMENT:` 协议文本）。

    - diff_line：模型看到的 `[DIFF_LINE:n,...]` 编号，不是文件行号
    - line_type / severity 原样透传，不做取值校验（由发布端兜底）
    """

    model_config = ConfigDict(frozen=True)

    file_path: str
    diff_line: int
    line_type: str
    severity: str
    body: str


class ReviewResult(BaseModel):
    """一次 review 的聚合结果：摘要 + 全局评论 + 带位置评论（均保持出现顺序）。"""

    model_config = ConfigDict(frozen=True)

    summary: str = ""
    comments: list[str] = Field(default_factory=list)
    positioned_comments: list[PositionedComment] = Field(default_factory=list)


class DiffRefs(BaseModel):
    """行内评论 position 需要的三个 revision。"""

    model_config = ConfigDict(frozen=True)

    base_sha: str
    head_sha: str
    start_sha: str


class CommentPostError(RuntimeError):
    """发布单条评论失败（由 poster 抛出，dispatcher 负责兜底）。"""

    pass
