"""
本地 Mock OpenAI-compatible LLM server。

用途：
- 在没有真实 LLM 网关的情况下，本地跑通闭环
- 回复遵守 `COMMENT:` 协议：一段摘要 + 针对 prompt 里第一个新增行的一条评论

启动：
  python -m whytho.dev.mock_openai_server
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from whytho.llm.client import ChatMessage

_FILE_HEADER_PREFIX = "## File: "
_NEW_LINE_MARKER = re.compile(r"\[DIFF_LINE:(\d+),NEW_LINE:\d+\]$")


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)
    temperature: float | None = None


def _find_first_added_line(prompt: str) -> tuple[str, int] | None:
    """
    从 review prompt 里找第一个新增行，返回 (path, DIFF_LINE)。

    形如：
      ## File: src/settings.py
      +    with open(path, encoding="utf-8") as fh: [DIFF_LINE:3,NEW_LINE:4]
    """
    path: str | None = None
    for line in prompt.splitlines():
        if line.startswith(_FILE_HEADER_PREFIX):
            path = line.removeprefix(_FILE_HEADER_PREFIX).strip()
            continue
        if path is None:
            continue
        match = _NEW_LINE_MARKER.search(line)
        if match:
            return path, int(match.group(1))
    return None


def _decide_mock_response(messages: Sequence[ChatMessage]) -> str:
    user_texts = [m.content for m in messages if m.role == "user"]
    if not user_texts:
        raise ValueError("Mock server expects at least one user message")
    prompt = "\n".join(user_texts)

    lines = ["[MOCK] The change looks reasonable overall; see inline comments for details."]
    target = _find_first_added_line(prompt=prompt)
    if target is not None:
        path, diff_line = target
        lines.append("")
        lines.append(
            f"COMMENT:{path}:{diff_line}:new:MEDIUM:"
            "[MOCK] Consider adding input validation and a unit test for this change."
        )
    return "\n".join(lines)


app = FastAPI(title="Mock OpenAI-compatible LLM", version="0.1.0")


@app.post("/v1/chat/completions")
async def chat_completions(req: ChatCompletionRequest) -> dict[str, object]:
    content = _decide_mock_response(messages=req.messages)
    return {
        "id": "chatcmpl-mock",
        "object": "chat.completion",
        "created": 0,
        "model": req.model,
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
        ],
    }


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9001)


if __name__ == "__main__":
    main()
