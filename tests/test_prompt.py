from __future__ import annotations

import pytest

from whytho.review.models import FileChange
from whytho.review.prompt import _truncate_text
from whytho.review.prompt import build_review_prompt

_DIFF = "@@ -1,2 +1,2 @@\n-old\n+new\n ctx\n"


def _changes() -> list[FileChange]:
    return [
        FileChange(old_path="app/main.py", new_path="app/main.py", diff=_DIFF, language="python"),
        FileChange(old_path="", new_path="app/new.py", diff="@@ -0,0 +1 @@\n+x = 1\n", is_new_file=True),
        FileChange(old_path="lib/old.go", new_path="lib/renamed.go", diff=_DIFF, is_renamed_file=True),
        FileChange(old_path="gone.py", new_path="gone.py", diff="@@ -1 +0,0 @@\n-bye\n", is_deleted_file=True),
    ]


def test_prompt_contains_annotated_diffs_and_metadata() -> None:
    prompt = build_review_prompt(changes=_changes(), title="Add feature", description="Adds a thing")

    assert "**Title:** Add feature" in prompt
    assert "**Description:** Adds a thing" in prompt
    assert "## File: app/main.py" in prompt
    assert "(Language: python)" in prompt
    assert "-old [DIFF_LINE:1,OLD_LINE:1]" in prompt
    assert "+new [DIFF_LINE:2,NEW_LINE:1]" in prompt
    assert " ctx [DIFF_LINE:3,CONTEXT:2]" in prompt
    assert "## File: app/new.py\n(New file)" in prompt
    assert "(Renamed from: lib/old.go)" in prompt
    assert "COMMENT:filename:diff_line_number:line_type:severity:comment_text" in prompt


def test_deleted_files_are_not_sent() -> None:
    prompt = build_review_prompt(changes=_changes(), title="t", description="")
    assert "gone.py" not in prompt


def test_default_objectives_without_guidance() -> None:
    prompt = build_review_prompt(changes=_changes(), title="t", description="")
    assert "REVIEW OBJECTIVES:" in prompt
    assert "CUSTOM REVIEW GUIDANCE" not in prompt


def test_custom_guidance_replaces_objectives() -> None:
    prompt = build_review_prompt(changes=_changes(), title="t", description="", guidance="  Focus on SQL.\n")
    assert "CUSTOM REVIEW GUIDANCE:\nFocus on SQL." in prompt
    assert "REVIEW OBJECTIVES:" not in prompt


def test_excluded_files_are_listed() -> None:
    prompt = build_review_prompt(
        changes=_changes(), title="t", description="", excluded_paths=["vendor/a.go", "vendor/b.go"]
    )
    assert "## Excluded Files" in prompt
    assert "vendor/a.go, vendor/b.go" in prompt


def test_long_diff_is_truncated() -> None:
    prompt = build_review_prompt(changes=_changes()[:1], title="t", description="", max_diff_chars=30)
    assert "...TRUNCATED..." in prompt
    assert "ctx [DIFF_LINE:3" not in prompt


def test_truncate_cuts_on_line_boundary() -> None:
    assert _truncate_text(text="aaaa\nbbbb\ncccc", max_chars=12) == "aaaa\nbbbb\n...TRUNCATED..."
    assert _truncate_text(text="short", max_chars=100) == "short"
    with pytest.raises(ValueError):
        _truncate_text(text="x", max_chars=0)
