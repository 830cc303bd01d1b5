"""
LLM client：任意 OpenAI-compatible 网关上的一次 chat completion。

review 流程只需要“prompt 进，纯文本出”：
- 不做 JSON mode / tool calling，回复的结构由 `COMMENT:` 协议约定
- 不重试；失败抛给 orchestrator，本次 review 作废
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: str
    content: str


class TextCompletionClient(Protocol):
    """review 流程依赖的最小 LLM 接口（测试里可以换成假实现）。"""

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str: ...


def _normalize_base_url(base_url: str) -> str:
    """网关地址统一补成以 `/v1` 结尾（SDK 在其后拼 `/chat/completions`）。"""
    trimmed = base_url.rstrip("/")
    return trimmed if trimmed.endswith("/v1") else f"{trimmed}/v1"


class OpenAICompatLLMClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient,
        model: str,
        temperature: float = 0.1,
    ) -> None:
        """http_client 与 GitLab client 共用同一个连接池。"""
        self._model = model
        self._temperature = temperature
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=_normalize_base_url(base_url=base_url),
            http_client=http_client,
        )

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str:
        """
        返回第一个候选的 content。

        没有候选、或 content 为 None 时抛 `RuntimeError`；SDK / 网络错误原样上抛。
        """
        payload = [message.model_dump() for message in messages]
        prompt_chars = sum(len(message.content) for message in messages)
        logger.info(f"Requesting completion: model={self._model}, prompt={prompt_chars} chars")
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=payload,
                temperature=self._temperature,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            logger.error(f"Completion request failed for model={self._model}: {exc}")
            raise

        if not response.choices:
            raise RuntimeError("LLM returned no choices")
        choice = response.choices[0]
        if choice.message.content is None:
            raise RuntimeError(f"LLM returned None content (finish_reason={choice.finish_reason})")

        logger.info(f"Completion received: {len(choice.message.content)} chars, finish_reason={choice.finish_reason}")
        return choice.message.content
