from __future__ import annotations

import re

import pytest

from whytho.review.diff_parser import LineNotFoundError
from whytho.review.diff_parser import annotate_diff
from whytho.review.diff_parser import find_diff_line
from whytho.review.diff_parser import find_line_number
from whytho.review.diff_parser import iter_diff_lines
from whytho.review.diff_parser import resolve_line_number
from whytho.review.models import FileChange

SINGLE_HUNK = "\n".join(
    [
        "@@ -10,2 +10,3 @@",
        "-old line",
        "+new line one",
        "+new line two",
        " context line",
    ]
)

MULTI_HUNK = "\n".join(
    [
        "@@ -1,3 +1,4 @@",
        " a",
        "-b",
        "+b2",
        "+b3",
        " c",
        "@@ -20,2 +21,2 @@",
        " x",
        "-y",
        "+y2",
    ]
)

_MARKER = re.compile(r"\[DIFF_LINE:(\d+),(NEW_LINE|OLD_LINE|CONTEXT):(\d+)\]$")
_KIND_BY_LABEL = {"NEW_LINE": "new", "OLD_LINE": "old", "CONTEXT": "context"}


def test_annotate_single_hunk() -> None:
    assert annotate_diff(SINGLE_HUNK).split("\n") == [
        "@@ -10,2 +10,3 @@",
        "-old line [DIFF_LINE:1,OLD_LINE:10]",
        "+new line one [DIFF_LINE:2,NEW_LINE:10]",
        "+new line two [DIFF_LINE:3,NEW_LINE:11]",
        " context line [DIFF_LINE:4,CONTEXT:12]",
    ]


def test_context_line_tracks_both_counters() -> None:
    context = [line for line in iter_diff_lines(SINGLE_HUNK) if line.kind == "context"]
    assert len(context) == 1
    assert context[0].old_line == 11
    assert context[0].new_line == 12


def test_resolve_added_line_from_scenario() -> None:
    changes = [FileChange(old_path="file.go", new_path="file.go", diff=SINGLE_HUNK)]
    assert resolve_line_number(changes=changes, file_path="file.go", position=2, line_kind="new") == 10


def test_multiple_hunks_reset_line_counters_but_not_position() -> None:
    lines = [line for line in iter_diff_lines(MULTI_HUNK) if line.position is not None]
    assert [(line.position, line.kind, line.old_line, line.new_line) for line in lines] == [
        (1, "context", 1, 1),
        (2, "old", 2, None),
        (3, "new", None, 2),
        (4, "new", None, 3),
        (5, "context", 3, 4),
        (6, "context", 20, 21),
        (7, "old", 21, None),
        (8, "new", None, 22),
    ]


def test_positions_are_contiguous_and_skip_headers() -> None:
    positions = [line.position for line in iter_diff_lines(MULTI_HUNK) if line.position is not None]
    content_lines = [line for line in MULTI_HUNK.split("\n") if line[:1] in ("+", "-", " ")]
    assert positions == list(range(1, len(content_lines) + 1))


@pytest.mark.parametrize("diff", [SINGLE_HUNK, MULTI_HUNK])
def test_resolver_agrees_with_annotation(diff: str) -> None:
    seen = 0
    for annotated in annotate_diff(diff).split("\n"):
        match = _MARKER.search(annotated)
        if match is None:
            continue
        position = int(match.group(1))
        kind = _KIND_BY_LABEL[match.group(2)]
        assert find_line_number(diff=diff, position=position, line_kind=kind) == int(match.group(3))
        seen += 1
    assert seen > 0


def test_annotation_is_deterministic() -> None:
    assert annotate_diff(MULTI_HUNK) == annotate_diff(MULTI_HUNK)


def test_file_markers_do_not_consume_positions() -> None:
    diff = "\n".join(
        [
            "diff --git a/f.sql b/f.sql",
            "index 123..456 100644",
            "--- a/f.sql",
            "+++ b/f.sql",
            "@@ -1,2 +1,2 @@",
            "--- old sql comment",
            "+-- new sql comment",
            " select 1;",
        ]
    )
    lines = [line for line in iter_diff_lines(diff) if line.position is not None]
    # 文件头不占编号；hunk 内以 `---` 开头的删除行照常计数
    assert [(line.position, line.kind, line.line_number) for line in lines] == [
        (1, "old", 1),
        (2, "new", 1),
        (3, "context", 2),
    ]


def test_malformed_hunk_header_keeps_previous_counter() -> None:
    diff = "\n".join(["@@ -3 +3 @@", " a", "@@ -x,2 +10,2 @@", " b"])
    line = find_diff_line(diff=diff, position=2, line_kind="context")
    assert line.old_line == 4
    assert line.new_line == 10


def test_hunk_header_without_ranges_is_ignored() -> None:
    diff = "\n".join(["@@ -5 +7 @@", "+a", "@@", "+b"])
    assert find_line_number(diff=diff, position=2, line_kind="new") == 8


def test_no_newline_marker_passes_through() -> None:
    diff = "@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n"
    assert annotate_diff(diff) == (
        "@@ -1 +1 @@\n"
        "-a [DIFF_LINE:1,OLD_LINE:1]\n"
        "\\ No newline at end of file\n"
        "+b [DIFF_LINE:2,NEW_LINE:1]\n"
    )


def test_empty_diff() -> None:
    assert annotate_diff("") == ""
    with pytest.raises(LineNotFoundError):
        find_line_number(diff="", position=1, line_kind="new")


def test_resolve_kind_mismatch_raises() -> None:
    with pytest.raises(LineNotFoundError):
        find_line_number(diff=SINGLE_HUNK, position=2, line_kind="old")


def test_resolve_position_out_of_range_raises() -> None:
    with pytest.raises(LineNotFoundError):
        find_line_number(diff=SINGLE_HUNK, position=5, line_kind="new")


def test_resolve_unknown_file_raises() -> None:
    changes = [FileChange(old_path="a.go", new_path="a.go", diff=SINGLE_HUNK)]
    with pytest.raises(LineNotFoundError, match="not found"):
        resolve_line_number(changes=changes, file_path="b.go", position=1, line_kind="old")


def test_resolve_matches_renamed_file_by_old_path() -> None:
    changes = [FileChange(old_path="old/name.go", new_path="new/name.go", diff=MULTI_HUNK, is_renamed_file=True)]
    assert resolve_line_number(changes=changes, file_path="old/name.go", position=7, line_kind="old") == 21
    assert resolve_line_number(changes=changes, file_path="new/name.go", position=6, line_kind="context") == 21
