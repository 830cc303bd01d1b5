"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/数字等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
- **显式传递**：配置对象在 `main.py` 里组装后注入各组件，不做全局单例
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl

logger = logging.getLogger(__name__)

DEFAULT_GITLAB_BASE_URL = "https://gitlab.com"


class GitLabConfig(BaseModel):
    """GitLab 连接配置；webhook_secret 为空时不校验 webhook token。"""

    base_url: HttpUrl = Field(default=DEFAULT_GITLAB_BASE_URL, validate_default=True)
    token: str
    webhook_secret: str | None = None


class LLMConfig(BaseModel):
    base_url: HttpUrl
    api_key: str
    model: str
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)


class ReviewSettings(BaseModel):
    """单次 review 的限制。"""

    max_diff_chars: int = Field(default=20000, gt=0)
    timeout_seconds: float = Field(default=600.0, gt=0)


class AppConfig(BaseModel):
    gitlab: GitLabConfig
    llm: LLMConfig
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    port: int = Field(default=8080, gt=0, lt=65536)


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：必填项缺失/为空抛 `ValueError`；格式错误抛 `ValidationError`（也是 ValueError）
    """

    required_keys: tuple[str, ...] = (
        "GITLAB_TOKEN",
        "LLM_BASE_URL",
        "LLM_API_KEY",
        "LLM_MODEL",
    )

    missing: list[str] = [key for key in required_keys if not environ.get(key)]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    gitlab_base_url = environ.get("GITLAB_BASE_URL") or DEFAULT_GITLAB_BASE_URL
    webhook_secret = environ.get("GITLAB_WEBHOOK_SECRET") or None
    if webhook_secret is None:
        logger.warning("GITLAB_WEBHOOK_SECRET not set - webhook token verification disabled")

    review_values: dict[str, str] = {}
    if environ.get("REVIEW_MAX_DIFF_CHARS"):
        review_values["max_diff_chars"] = environ["REVIEW_MAX_DIFF_CHARS"]
    if environ.get("REVIEW_TIMEOUT_SECONDS"):
        review_values["timeout_seconds"] = environ["REVIEW_TIMEOUT_SECONDS"]

    llm_values: dict[str, str] = {
        "base_url": environ["LLM_BASE_URL"],
        "api_key": environ["LLM_API_KEY"],
        "model": environ["LLM_MODEL"],
    }
    if environ.get("LLM_TEMPERATURE"):
        llm_values["temperature"] = environ["LLM_TEMPERATURE"]

    # 交给 Pydantic 做类型校验（例如 URL 合法性、数字范围）
    return AppConfig.model_validate(
        {
            "gitlab": {
                "base_url": gitlab_base_url,
                "token": environ["GITLAB_TOKEN"],
                "webhook_secret": webhook_secret,
            },
            "llm": llm_values,
            "review": review_values,
            "log_level": environ.get("LOG_LEVEL", "INFO").upper(),
            "port": environ.get("PORT") or 8080,
        }
    )
