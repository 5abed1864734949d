"""Tests for the merge policy and conflict markers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from vault_sync.sync.merger import (
    END_MARKER,
    MID_MARKER,
    START_MARKER,
    generate_diff,
    has_conflict_markers,
    merge,
    resolve,
    similarity,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
BEFORE = T0 - timedelta(hours=1)
AFTER = T0 + timedelta(hours=1)


class TestMerge:
    def test_identical(self):
        result = merge("a\nb", "a\nb")
        assert result.merged
        assert result.winner == "identical"
        assert result.conflict_count == 0

    def test_single_changed_line_is_one_block(self):
        result = merge("A\nB\nC\nD", "A\nX\nC\nD")
        assert not result.merged
        assert result.conflict_count == 1
        assert result.content == "\n".join(
            ["A", START_MARKER, "B", MID_MARKER, "X", END_MARKER, "C", "D"]
        )

    def test_two_separate_regions(self):
        local = "1\n2\n3\n4\n5\n6\n7\n8\n9\n10"
        remote = "1\nB\n3\n4\n5\n6\n7\n8\nI\n10"
        result = merge(local, remote)
        assert result.conflict_count == 2
        assert result.content.count(START_MARKER) == 2

    def test_trailing_insertion(self):
        local = "\n".join(str(n) for n in range(1, 10))
        remote = local + "\nextra"
        result = merge(local, remote)
        assert result.conflict_count == 1
        assert result.content == local + "\n" + "\n".join(
            [START_MARKER, MID_MARKER, "extra", END_MARKER]
        )

    def test_shifted_lines_fall_back_to_one_block(self):
        # an insertion near the top breaks positional alignment
        result = merge("a\nb\nc\nd\ne", "a\nb\nnew\nc\nd\ne")
        assert result.conflict_count == 1
        assert result.content.startswith(START_MARKER + "\na\nb\nc")

    def test_exactly_threshold_becomes_one_block(self):
        local = "\n".join(str(n) for n in range(1, 11))
        remote = "1\n2\n3\nx\n5\n6\ny\n8\n9\nz"
        assert similarity(local, remote) == 0.7

        result = merge(local, remote)

        assert result.conflict_count == 1
        assert result.content == "\n".join(
            [START_MARKER, local, MID_MARKER, remote, END_MARKER]
        )

    def test_just_above_threshold_is_aligned(self):
        local = "\n".join(str(n) for n in range(1, 11))
        remote = "1\n2\n3\nx\n5\n6\n7\n8\n9\nz"
        result = merge(local, remote)
        assert result.conflict_count == 2
        assert result.content.startswith("1\n2\n3\n" + START_MARKER)

    def test_dissimilar_versions_become_one_block(self):
        result = merge("alpha\nbeta", "gamma\ndelta")
        assert result.conflict_count == 1
        assert result.content == "\n".join(
            [START_MARKER, "alpha\nbeta", MID_MARKER, "gamma\ndelta", END_MARKER]
        )

    def test_conflict_symmetry(self):
        """Swapping sides swaps the block contents, nothing else."""
        ab = merge("A\nB\nC\nD", "A\nX\nC\nD")
        ba = merge("A\nX\nC\nD", "A\nB\nC\nD")
        assert ab.conflict_count == ba.conflict_count
        assert ab.content.replace("B", "?").replace("X", "B").replace(
            "?", "X"
        ) == ba.content

    def test_no_data_loss(self):
        local = "keep\nmine one\nmine two\nshared"
        remote = "keep\ntheirs\nshared"
        content = merge(local, remote).content
        for line in ["keep", "mine one", "mine two", "theirs", "shared"]:
            assert line in content.split("\n")


class TestResolve:
    def test_only_remote_changed(self):
        result = resolve("l", "r", BEFORE, AFTER, T0)
        assert (result.winner, result.content) == ("remote", "r")

    def test_only_local_changed(self):
        result = resolve("l", "r", AFTER, BEFORE, T0)
        assert (result.winner, result.content) == ("local", "l")

    def test_both_changed_merges(self):
        result = resolve("A\nB\nC\nD", "A\nX\nC\nD", AFTER, AFTER, T0)
        assert result.winner is None
        assert result.conflict_count == 1

    def test_no_last_sync_means_both_changed(self):
        result = resolve("same", "same", BEFORE, BEFORE, None)
        assert result.winner == "identical"

    def test_neither_changed_later_wins(self):
        assert resolve("l", "r", BEFORE, BEFORE - timedelta(1), T0).winner == "local"
        assert resolve("l", "r", BEFORE - timedelta(1), BEFORE, T0).winner == "remote"

    def test_unknown_remote_time_is_now(self):
        result = resolve("l", "r", BEFORE, None, T0)
        assert result.winner == "remote"


class TestHelpers:
    def test_similarity(self):
        assert similarity("a\nb\nc\nd", "a\nx\nc\nd") == 0.75
        assert similarity("a", "b") == 0.0

    def test_has_conflict_markers(self):
        assert has_conflict_markers(merge("A\nB\nC\nD", "A\nX\nC\nD").content)
        assert not has_conflict_markers("<<<<<<< LOCAL only")

    def test_generate_diff(self):
        diff = generate_diff("a\nb\n", "a\nc\n", "local", "remote")
        assert diff.startswith("--- local\n+++ remote\n")
        assert "-b" in diff and "+c" in diff

    def test_generate_diff_identical(self):
        assert generate_diff("a\n", "a\n") == ""
