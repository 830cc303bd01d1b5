"""
Review prompt 拼装（纯字符串，不调用 LLM）。

结构：
- 指令（默认审查目标，或仓库 `.whytho/guidance.md` 提供的自定义指引）
- `COMMENT:` 输出协议说明
- MR 信息 + 每个文件带 `[DIFF_LINE:n,...]` 标注的 diff
"""

from __future__ import annotations

from collections.abc import Sequence

from whytho.review.diff_parser import annotate_diff
from whytho.review.models import FileChange
from whytho.review.synthesis import CONFIG_PATH

DEFAULT_MAX_DIFF_CHARS = 20000

_DEFAULT_OBJECTIVES = """REVIEW OBJECTIVES:
1. Identify code quality improvements and refactoring opportunities
2. Suggest performance optimizations and architectural enhancements
3. Highlight security vulnerabilities and recommend secure coding practices
4. Propose maintainability improvements and best practices
5. Detect potential bugs and logic errors"""

_FEEDBACK_STYLE = """IMPORTANT: Only comment on lines that are actually visible in the diff below. Do not reference line numbers outside of the changes shown.

When providing feedback, be solution-oriented and include specific improvement suggestions:
- For code quality issues: Suggest better patterns, refactoring opportunities, or architectural improvements
- For performance concerns: Provide specific optimization techniques or alternative approaches
- For security issues: Recommend secure coding practices and specific fixes
- For maintainability: Suggest ways to make code more readable, testable, or modular"""

_OUTPUT_FORMAT = """Please format your response as follows:
- Start with a summary paragraph highlighting the most important findings and overall assessment
- Then provide specific comments in this EXACT format, one per line:
  COMMENT:filename:diff_line_number:line_type:severity:comment_text

  Where:
  - filename is the file path (exactly as shown in the diff)
  - diff_line_number is the DIFF_LINE number shown in brackets (e.g., if you see [DIFF_LINE:5,NEW_LINE:42], use 5)
  - line_type is either "new" (for lines starting with +), "old" (for lines starting with -), or "context" (for lines starting with space)
  - severity is one of: LOW, MEDIUM, HIGH, or CRITICAL
  - comment_text is your detailed feedback with specific suggestions

  Severity Guidelines:
  - CRITICAL: Security vulnerabilities, potential data loss, system crashes, major logic errors
  - HIGH: Performance bottlenecks, significant bugs, architectural issues, race conditions
  - MEDIUM: Code quality issues, maintainability concerns, minor bugs, suboptimal patterns
  - LOW: Style improvements, documentation suggestions, minor optimizations, naming conventions

  Example: COMMENT:src/main.go:3:new:MEDIUM:Consider declaring this value as a named constant. Suggestion: replace "myVar = 5" with "const maxRetryCount = 5" so the intent is clear and the value cannot be modified by accident.

CRITICAL:
- Only use DIFF_LINE numbers from the brackets in the diff
- Only comment on lines that are actually changed or shown in the diff context
- Keep each COMMENT on a single line
- Always provide actionable suggestions with clear reasoning"""


def build_review_prompt(
    changes: Sequence[FileChange],
    title: str,
    description: str,
    excluded_paths: Sequence[str] = (),
    guidance: str = "",
    max_diff_chars: int = DEFAULT_MAX_DIFF_CHARS,
) -> str:
    """guidance 非空时使用仓库自定义指引，否则使用默认审查目标。"""
    code_content = build_changes_section(
        changes=changes,
        title=title,
        description=description,
        excluded_paths=excluded_paths,
        max_diff_chars=max_diff_chars,
    )
    if guidance.strip():
        intro = (
            "You are an expert code reviewer with deep knowledge of software engineering best practices. "
            "Review the following merge request changes according to the custom guidance provided below.\n\n"
            f"CUSTOM REVIEW GUIDANCE:\n{guidance.strip()}"
        )
    else:
        intro = (
            "You are an expert code reviewer with deep knowledge of software engineering best practices. "
            "Analyze the following merge request changes and provide comprehensive, actionable feedback.\n\n"
            f"{_DEFAULT_OBJECTIVES}"
        )
    return (
        f"{intro}\n\n"
        f"{_FEEDBACK_STYLE}\n\n"
        f"{_OUTPUT_FORMAT}\n\n"
        "Here are the changes to review:\n\n"
        f"{code_content}\n"
        "Focus on providing constructive, actionable feedback that helps developers write better, "
        "more secure, and maintainable code."
    )


def build_changes_section(
    changes: Sequence[FileChange],
    title: str,
    description: str,
    excluded_paths: Sequence[str] = (),
    max_diff_chars: int = DEFAULT_MAX_DIFF_CHARS,
) -> str:
    lines: list[str] = [
        "## Merge Request Details",
        f"**Title:** {title}",
        f"**Description:** {description}",
        "",
    ]
    if excluded_paths:
        lines.append("## Excluded Files")
        lines.append(
            f"The following files were excluded from review based on {CONFIG_PATH}: {', '.join(excluded_paths)}"
        )
        lines.append("")

    for change in changes:
        # 删除的文件没有可评论的新内容
        if change.is_deleted_file:
            continue
        lines.append(f"## File: {change.new_path}")
        if change.is_new_file:
            lines.append("(New file)")
        if change.is_renamed_file:
            lines.append(f"(Renamed from: {change.old_path})")
        if change.language != "unknown":
            lines.append(f"(Language: {change.language})")
        lines.append("```diff")
        lines.append(_truncate_text(text=annotate_diff(change.diff), max_chars=max_diff_chars))
        lines.append("```")
        lines.append("")
    return "\n".join(lines)


def _truncate_text(text: str, max_chars: int) -> str:
    """控制 diff 输入长度，避免超出模型上下文/预算。"""
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    if len(text) <= max_chars:
        return text
    # 按整行截断，避免把某行的 DIFF_LINE 标注截掉一半
    cut = text.rfind("\n", 0, max_chars)
    if cut <= 0:
        cut = max_chars
    return text[:cut] + "\n...TRUNCATED..."
