"""
whytho 服务入口（FastAPI app factory + uvicorn）。

这里做三件事：
- 加载配置（严格校验环境变量）并初始化日志
- 组装外部依赖（HTTP Client / LLM Client / GitLab Client）
- 装配路由（health + gitlab webhook）

注意：
- 业务流程不写在这里（由 `review/orchestrator.py` 负责）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接），在应用关闭时释放
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI

from whytho.config import AppConfig
from whytho.config import load_config_from_env
from whytho.gitlab.client import GitLabClient
from whytho.gitlab.webhook import build_gitlab_webhook_router
from whytho.llm.client import OpenAICompatLLMClient
from whytho.review.orchestrator import build_review_orchestrator
from whytho.review.orchestrator import build_webhook_handler

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_app(config: AppConfig | None = None) -> FastAPI:
    """config 为 None 时从环境变量加载；也可用 `uvicorn --factory whytho.main:build_app` 启动。"""

    # 1) 配置：必填环境变量缺失时在这里抛错
    if config is None:
        config = load_config_from_env(os.environ)
    configure_logging(config.log_level)

    # 2) 可复用的 HTTP client：供 GitLab API 与 LLM 调用使用
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(120.0))

    # 3) LLM client：OpenAI-compatible
    llm_client = OpenAICompatLLMClient(
        api_key=config.llm.api_key,
        base_url=str(config.llm.base_url).rstrip("/"),
        http_client=http_client,
        model=config.llm.model,
        temperature=config.llm.temperature,
    )
    gitlab_client = GitLabClient(
        base_url=str(config.gitlab.base_url).rstrip("/"),
        private_token=config.gitlab.token,
        http_client=http_client,
    )

    orchestrator = build_review_orchestrator(llm_client=llm_client, settings=config.review)
    handler = build_webhook_handler(gitlab_client=gitlab_client, orchestrator=orchestrator)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await http_client.aclose()

    app = FastAPI(title="whytho", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "healthy"}

    app.include_router(build_gitlab_webhook_router(config=config.gitlab, handler=handler))
    logger.info(f"whytho initialized: gitlab={config.gitlab.base_url} model={config.llm.model}")
    return app


def main() -> None:
    config = load_config_from_env(os.environ)
    uvicorn.run(build_app(config), host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
