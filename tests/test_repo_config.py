from __future__ import annotations

import pytest

from whytho.review.models import FileChange
from whytho.review.repo_config import GUIDANCE_PATH
from whytho.review.repo_config import RepoConfigError
from whytho.review.repo_config import extract_added_content
from whytho.review.repo_config import fetch_exclusion_patterns
from whytho.review.repo_config import fetch_review_guidance
from whytho.review.repo_config import parse_repo_config
from whytho.review.synthesis import CONFIG_PATH


class FakeRepository:
    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = files or {}
        self.calls: list[tuple[int, str, str]] = []

    async def get_repository_file(self, project_id: int, file_path: str, ref: str) -> str | None:
        self.calls.append((project_id, file_path, ref))
        return self.files.get(file_path)


def _config_change(diff: str, deleted: bool = False) -> FileChange:
    return FileChange(old_path=CONFIG_PATH, new_path=CONFIG_PATH, diff=diff, is_deleted_file=deleted)


def test_parse_repo_config() -> None:
    config = parse_repo_config("exclude_paths:\n  - vendor/**\n  - '*.pb.go'\n")
    assert config.exclude_paths == ["vendor/**", "*.pb.go"]


def test_parse_empty_document() -> None:
    assert parse_repo_config("").exclude_paths == []


@pytest.mark.parametrize("text", ["- a\n- b\n", "exclude_paths: [\n", "exclude_paths: 3\n"])
def test_parse_invalid_config(text: str) -> None:
    with pytest.raises(RepoConfigError):
        parse_repo_config(text)


def test_extract_added_content_keeps_only_added_lines() -> None:
    diff = "--- a/x\n+++ b/x\n@@ -1,2 +1,2 @@\n exclude_paths:\n-  - old/**\n+  - new/**\n"
    assert extract_added_content(diff) == "  - new/**\n"


@pytest.mark.anyio
async def test_config_in_merge_request_takes_precedence() -> None:
    repository = FakeRepository({CONFIG_PATH: "exclude_paths:\n  - branch/**\n"})
    changes = [_config_change("@@ -0,0 +1,2 @@\n+exclude_paths:\n+  - docs/**\n")]

    patterns = await fetch_exclusion_patterns(
        source=repository, project_id=1, target_branch="main", changes=changes
    )

    assert patterns == ["docs/**"]
    assert repository.calls == []


@pytest.mark.anyio
async def test_invalid_config_in_merge_request_falls_back_to_branch() -> None:
    repository = FakeRepository({CONFIG_PATH: "exclude_paths:\n  - branch/**\n"})
    changes = [_config_change("@@ -0,0 +1 @@\n+- not a mapping\n")]

    patterns = await fetch_exclusion_patterns(
        source=repository, project_id=1, target_branch="main", changes=changes
    )

    assert patterns == ["branch/**"]
    assert repository.calls == [(1, CONFIG_PATH, "main")]


@pytest.mark.anyio
async def test_deleted_config_in_merge_request_uses_branch() -> None:
    repository = FakeRepository({CONFIG_PATH: "exclude_paths: ['branch/**']\n"})
    changes = [_config_change("@@ -1 +0,0 @@\n-exclude_paths: []\n", deleted=True)]

    patterns = await fetch_exclusion_patterns(
        source=repository, project_id=1, target_branch="main", changes=changes
    )

    assert patterns == ["branch/**"]


@pytest.mark.anyio
async def test_missing_config_means_no_patterns() -> None:
    patterns = await fetch_exclusion_patterns(source=FakeRepository(), project_id=1, target_branch="main", changes=[])
    assert patterns == []


@pytest.mark.anyio
async def test_invalid_config_on_branch_raises() -> None:
    repository = FakeRepository({CONFIG_PATH: "exclude_paths: [\n"})
    with pytest.raises(RepoConfigError):
        await fetch_exclusion_patterns(source=repository, project_id=1, target_branch="main", changes=[])


@pytest.mark.anyio
async def test_fetch_review_guidance() -> None:
    repository = FakeRepository({GUIDANCE_PATH: "Focus on SQL injection.\n"})
    assert await fetch_review_guidance(source=repository, project_id=1, branch="main") == "Focus on SQL injection.\n"
    assert await fetch_review_guidance(source=FakeRepository(), project_id=1, branch="main") == ""
