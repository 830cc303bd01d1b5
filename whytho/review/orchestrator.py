"""
Review Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：过滤 / 标注 / 解析 / 定位全部是确定性代码
- **LLM 只负责一次“生成”**：输入 prompt，输出按 `COMMENT:` 协议组织的文本

一次完整的 review：
Webhook -> get MR changes -> exclude paths -> annotate diff -> LLM -> parse -> resolve lines -> post comments
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import anyio
import httpx

from whytho.config import ReviewSettings
from whytho.gitlab.adapter import build_diff_refs
from whytho.gitlab.adapter import build_file_changes_from_gitlab_changes
from whytho.gitlab.client import GitLabClient
from whytho.gitlab.poster import GitLabCommentPoster
from whytho.gitlab.schemas import GitLabMergeRequestWebhookEvent
from whytho.llm.client import ChatMessage
from whytho.llm.client import TextCompletionClient
from whytho.review.dispatcher import CommentDispatcher
from whytho.review.dispatcher import DispatchReport
from whytho.review.models import FileChange
from whytho.review.models import ReviewResult
from whytho.review.path_filter import filter_changes
from whytho.review.prompt import build_review_prompt
from whytho.review.repo_config import RepositoryFileSource
from whytho.review.repo_config import fetch_exclusion_patterns
from whytho.review.repo_config import fetch_review_guidance
from whytho.review.response_parser import parse_review
from whytho.review.synthesis import format_all_excluded_summary

logger = logging.getLogger(__name__)

# 仓库配置/指引读取失败时降级处理的错误类型（API 错误、网络错误、内容无法解析）
_RECOVERABLE_FETCH_ERRORS = (RuntimeError, ValueError, httpx.HTTPError)


@dataclass(frozen=True)
class ReviewOrchestrator:
    """Orchestrator 运行时依赖集合（LLM client + review 限制）。"""

    llm_client: TextCompletionClient
    settings: ReviewSettings = field(default_factory=ReviewSettings)


def build_review_orchestrator(llm_client: TextCompletionClient, settings: ReviewSettings) -> ReviewOrchestrator:
    return ReviewOrchestrator(llm_client=llm_client, settings=settings)


async def run_review(
    orchestrator: ReviewOrchestrator,
    repository: RepositoryFileSource,
    changes: Sequence[FileChange],
    title: str,
    description: str,
    project_id: int,
    mr_iid: int,
    target_branch: str,
) -> ReviewResult:
    """
    对一组 changes 跑一次 review，返回解析后的结果（不发布）。

    - 配置/指引读取失败：记 warning 后降级（空规则 / 默认指引）
    - LLM 调用失败：直接抛错，本次 review 作废
    """
    try:
        patterns = await fetch_exclusion_patterns(
            source=repository,
            project_id=project_id,
            target_branch=target_branch,
            changes=changes,
        )
    except _RECOVERABLE_FETCH_ERRORS as exc:
        logger.warning(
            f"Failed to load exclusion config for project={project_id} mr={mr_iid}, "
            f"proceeding without path filtering: {exc}"
        )
        patterns = []

    kept, excluded = filter_changes(changes=changes, patterns=patterns)
    if excluded:
        logger.info(
            f"Excluded {len(excluded)}/{len(changes)} file(s) from review for project={project_id} mr={mr_iid}: "
            f"{', '.join(excluded)}"
        )
    if not kept:
        logger.info(f"All files excluded from review for project={project_id} mr={mr_iid}")
        return ReviewResult(summary=format_all_excluded_summary(excluded))

    try:
        guidance = await fetch_review_guidance(source=repository, project_id=project_id, branch=target_branch)
    except _RECOVERABLE_FETCH_ERRORS as exc:
        logger.warning(f"Failed to fetch review guidance for project={project_id}, using default: {exc}")
        guidance = ""

    prompt = build_review_prompt(
        changes=kept,
        title=title,
        description=description,
        excluded_paths=excluded,
        guidance=guidance,
        max_diff_chars=orchestrator.settings.max_diff_chars,
    )
    response_text = await orchestrator.llm_client.complete_text(
        messages=[ChatMessage(role="user", content=prompt)],
    )
    review = parse_review(response_text)
    logger.info(
        f"Code review completed for project={project_id} mr={mr_iid}: "
        f"general={len(review.comments)}, positioned={len(review.positioned_comments)}"
    )
    return review


async def process_merge_request(
    orchestrator: ReviewOrchestrator,
    gitlab_client: GitLabClient,
    project_id: int,
    mr_iid: int,
    title: str,
    description: str,
    target_branch: str,
) -> DispatchReport | None:
    """
    跑一次完整 review 并把结果写回 GitLab。

    MR 没有任何变更时直接返回 None（不调用 LLM，不发评论）。
    """
    mr_changes = await gitlab_client.get_merge_request_changes(project_id=project_id, mr_iid=mr_iid)
    changes = build_file_changes_from_gitlab_changes(mr_changes)
    if not changes:
        logger.warning(f"No changes found in merge request project={project_id} mr={mr_iid}")
        return None

    review = await run_review(
        orchestrator=orchestrator,
        repository=gitlab_client,
        changes=changes,
        title=title,
        description=description,
        project_id=project_id,
        mr_iid=mr_iid,
        target_branch=target_branch,
    )

    poster = GitLabCommentPoster(
        client=gitlab_client,
        project_id=project_id,
        mr_iid=mr_iid,
        diff_refs=build_diff_refs(mr_changes.diff_refs),
    )
    return await CommentDispatcher(poster=poster).dispatch(review=review, changes=changes)


def build_webhook_handler(
    gitlab_client: GitLabClient,
    orchestrator: ReviewOrchestrator,
) -> Callable[[GitLabMergeRequestWebhookEvent], Awaitable[None]]:
    """
    装配 webhook handler：
    - 把外部依赖（GitLabClient）和业务编排（orchestrator）绑定起来
    - 返回一个 `async def handle(event)`，由 webhook 路由放到后台执行
    """

    async def handle(event: GitLabMergeRequestWebhookEvent) -> None:
        """处理单次 MR webhook；在后台执行，失败只能体现在日志里。"""
        project_id = event.project.id
        attrs = event.object_attributes
        logger.info(f"Processing merge request project={project_id} mr={attrs.iid}")
        try:
            with anyio.fail_after(orchestrator.settings.timeout_seconds):
                await process_merge_request(
                    orchestrator=orchestrator,
                    gitlab_client=gitlab_client,
                    project_id=project_id,
                    mr_iid=attrs.iid,
                    title=attrs.title,
                    description=attrs.description or "",
                    target_branch=attrs.target_branch,
                )
        except Exception:
            # 后台任务没有调用方可以接住异常，这里是最后一层
            logger.exception(f"Merge request review failed for project={project_id} mr={attrs.iid}")
            return
        logger.info(f"Merge request processing completed for project={project_id} mr={attrs.iid}")

    return handle
