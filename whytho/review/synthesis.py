from __future__ import annotations

"""
Synthesis（评论正文拼装）。

注意：
- 这里是**确定性输出**（不依赖 LLM），便于稳定回写 GitLab
- severity 不做校验：未知取值原样加粗显示
"""

from collections.abc import Sequence

from whytho.review.models import PositionedComment

_SEVERITY_BADGES: dict[str, str] = {
    "CRITICAL": "![Critical](https://www.gstatic.com/codereviewagent/critical.svg)",
    "HIGH": "![High](https://www.gstatic.com/codereviewagent/high-priority.svg)",
    "MEDIUM": "![Medium](https://www.gstatic.com/codereviewagent/medium-priority.svg)",
    "LOW": "![Low](https://www.gstatic.com/codereviewagent/low-priority.svg)",
}

SUMMARY_HEADER = "## 🤖 AI Code Review Summary"

CONFIG_PATH = ".whytho/config.yaml"


def format_severity(severity: str) -> str:
    badge = _SEVERITY_BADGES.get(severity)
    if badge is not None:
        return badge
    return f"**{severity}**"


def format_positioned_body(comment: PositionedComment) -> str:
    """行内评论正文：severity 徽标 + 评论内容。"""
    return f"{format_severity(comment.severity)}\n\n{comment.body}"


def format_fallback_body(comment: PositionedComment) -> str:
    """
    行内评论发不出去时的全局评论正文。

    行号用模型给的 DIFF_LINE（未解析成功时没有真实行号可用）。
    """
    return (
        f"**File: {comment.file_path} (Line {comment.diff_line})** - "
        f"{format_severity(comment.severity)}\n\n{comment.body}"
    )


def format_summary_body(summary: str) -> str:
    return f"{SUMMARY_HEADER}\n\n{summary}"


def format_all_excluded_summary(excluded_paths: Sequence[str]) -> str:
    summary = (
        "All files in this merge request are excluded from review "
        f"based on the {CONFIG_PATH} configuration."
    )
    if excluded_paths:
        summary += f" Excluded files: {', '.join(excluded_paths)}"
    return summary
