"""
GitLab Webhook 接入层。

职责：
- 校验 `X-Gitlab-Token`（配置了 secret 时）
- 只处理 `Merge Request Hook` 的 open / reopen / update（update 必须带新 commit）
- 解析 webhook payload -> Pydantic schema（类型安全）
- 把 review 放到后台执行，立即返回（review 耗时远超 GitLab webhook 超时）
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter
from fastapi import BackgroundTasks
from fastapi import Header
from fastapi import HTTPException
from fastapi import Request
from pydantic import ValidationError

from whytho.config import GitLabConfig
from whytho.gitlab.schemas import GitLabMergeRequestWebhookEvent

logger = logging.getLogger(__name__)

WebhookHandler = Callable[[GitLabMergeRequestWebhookEvent], Awaitable[None]]

MERGE_REQUEST_EVENT = "Merge Request Hook"
REVIEWED_ACTIONS = ("open", "reopen", "update")


def verify_gitlab_token(body: bytes, token: str | None, secret: str) -> bool:
    """
    token 等于 secret（GitLab 原生 Secret token），
    或等于 body 的 HMAC-SHA256 hex（由网关签名转发的场景），均视为合法。
    """
    if not token:
        return False
    if hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
        return True
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def build_gitlab_webhook_router(config: GitLabConfig, handler: WebhookHandler) -> APIRouter:
    """创建 GitLab webhook 路由（`/webhook`，兼容 `/gitlab/webhook`）。"""
    router = APIRouter()

    async def gitlab_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_gitlab_token: str | None = Header(default=None, alias="X-Gitlab-Token"),
        x_gitlab_event: str | None = Header(default=None, alias="X-Gitlab-Event"),
    ) -> dict[str, str]:
        body = await request.body()

        # 1) Webhook secret 校验（GitLab UI 里配置；未配置则跳过）
        if config.webhook_secret:
            if not verify_gitlab_token(body=body, token=x_gitlab_token, secret=config.webhook_secret):
                logger.warning("Invalid webhook token received")
                raise HTTPException(status_code=401, detail="Invalid webhook token")

        if x_gitlab_event != MERGE_REQUEST_EVENT:
            logger.info(f"Ignoring non-merge request event: {x_gitlab_event}")
            return {"status": "ignored"}

        # 2) 解析 payload：格式错误直接 400，便于发现问题
        try:
            event = GitLabMergeRequestWebhookEvent.model_validate(json.loads(body.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.error(f"Failed to parse webhook payload: {exc}")
            raise HTTPException(status_code=400, detail="Invalid webhook payload") from exc

        attrs = event.object_attributes
        logger.info(f"Parsed webhook payload: project={event.project.id} mr={attrs.iid} action={attrs.action}")

        # 3) 只处理我们关心的 MR 动作
        if event.object_kind != "merge_request" or attrs.action not in REVIEWED_ACTIONS:
            logger.info(f"Ignoring merge request action: {attrs.action}")
            return {"status": "ignored"}

        # update 但没有 oldrev：只是改了标签/指派人等，没有新 commit
        if attrs.action == "update" and not attrs.oldrev:
            logger.info(f"MR update without new commits, skipping review: project={event.project.id} mr={attrs.iid}")
            return {"status": "skipped"}

        # 4) 后台执行 review（由 orchestrator 装配），不等待完成
        background_tasks.add_task(handler, event)
        return {"status": "accepted"}

    router.add_api_route("/webhook", gitlab_webhook, methods=["POST"])
    router.add_api_route("/gitlab/webhook", gitlab_webhook, methods=["POST"])
    return router
