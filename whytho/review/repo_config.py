"""
仓库级 review 配置（`.whytho/` 目录）。

- `.whytho/config.yaml`：`exclude_paths: [glob, ...]`
- `.whytho/guidance.md`：自定义 review 指引（整段拼进 prompt）

优先级：本次 MR 里改动过的 config.yaml > 目标分支上的 config.yaml。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import yaml
from pydantic import BaseModel, Field, ValidationError

from whytho.review.models import FileChange
from whytho.review.synthesis import CONFIG_PATH

logger = logging.getLogger(__name__)

GUIDANCE_PATH = ".whytho/guidance.md"


class RepositoryFileSource(Protocol):
    """读取仓库文件：不存在返回 None，其它失败抛错。"""

    async def get_repository_file(self, project_id: int, file_path: str, ref: str) -> str | None: ...


class RepoReviewConfig(BaseModel):
    exclude_paths: list[str] = Field(default_factory=list)


class RepoConfigError(ValueError):
    """config.yaml 内容无法解析。"""

    pass


def parse_repo_config(text: str) -> RepoReviewConfig:
    """解析 config.yaml；空文档视为空配置。"""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RepoConfigError(f"Invalid YAML in {CONFIG_PATH}: {exc}") from exc
    if data is None:
        return RepoReviewConfig()
    if not isinstance(data, dict):
        raise RepoConfigError(f"{CONFIG_PATH} must be a mapping, got {type(data).__name__}")
    try:
        return RepoReviewConfig.model_validate(data)
    except ValidationError as exc:
        raise RepoConfigError(f"Invalid {CONFIG_PATH}: {exc}") from exc


def extract_added_content(diff: str) -> str:
    """取 diff 里新增的行（去掉 `+` 前缀），用于读取 MR 中修改后的配置。"""
    lines: list[str] = []
    for line in diff.split("\n"):
        if line.startswith("+") and not line.startswith("+++"):
            lines.append(line[1:])
    return "\n".join(lines) + "\n"


async def fetch_exclusion_patterns(
    source: RepositoryFileSource,
    project_id: int,
    target_branch: str,
    changes: Sequence[FileChange],
) -> list[str]:
    """
    获取排除规则。

    - MR 改了 config.yaml（且不是删除）：用 diff 里的新版本；解析失败则回退到目标分支
    - 目标分支没有 config.yaml：返回空列表
    - 目标分支上的文件读取/解析失败：抛错（由调用方降级）
    """
    for change in changes:
        if change.new_path == CONFIG_PATH and not change.is_deleted_file:
            logger.info(f"{CONFIG_PATH} found in merge request diff, using modified version")
            try:
                return parse_repo_config(extract_added_content(change.diff)).exclude_paths
            except RepoConfigError as exc:
                logger.warning(f"Failed to parse {CONFIG_PATH} from diff, falling back to {target_branch}: {exc}")
            break

    content = await source.get_repository_file(project_id=project_id, file_path=CONFIG_PATH, ref=target_branch)
    if content is None:
        logger.debug(f"No {CONFIG_PATH} in project={project_id} branch={target_branch}")
        return []
    config = parse_repo_config(content)
    logger.info(f"Loaded {len(config.exclude_paths)} exclude pattern(s) from {CONFIG_PATH}")
    return config.exclude_paths


async def fetch_review_guidance(source: RepositoryFileSource, project_id: int, branch: str) -> str:
    """读取 guidance.md；不存在返回空字符串。"""
    content = await source.get_repository_file(project_id=project_id, file_path=GUIDANCE_PATH, ref=branch)
    if content is None:
        logger.debug(f"No {GUIDANCE_PATH} in project={project_id} branch={branch}")
        return ""
    logger.info(f"Using custom review guidance from {GUIDANCE_PATH} ({len(content)} chars)")
    return content
