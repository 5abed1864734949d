"""Tests for conflict deciders and deletion confirmers."""

from __future__ import annotations

import pytest

from vault_sync.sync.models import (
    ConflictDecision,
    ConflictRecord,
    DecisionKind,
    DecisionRequest,
)
from vault_sync.sync.resolver import (
    AutoConfirm,
    FixedDecision,
    InteractiveConfirm,
    InteractiveDecision,
    create_decider,
)


def _answers(*replies):
    """Prompt function returning *replies* in order, then EOF."""
    queue = list(replies)
    asked: list[str] = []

    def prompt(question: str) -> str:
        asked.append(question)
        if not queue:
            raise EOFError
        return queue.pop(0)

    prompt.asked = asked
    return prompt


def _conflicts() -> DecisionRequest:
    record = ConflictRecord(
        path="notes/a.md",
        doc_id="d1",
        local_content="mine",
        remote_content="theirs",
        remote_sha="abc",
        merged_content="<<<<<<< LOCAL\nmine\n=======\ntheirs\n>>>>>>> REMOTE",
        conflict_count=1,
    )
    return DecisionRequest(
        kind=DecisionKind.CONFLICTS, paths=["notes/a.md"], conflicts=[record]
    )


class TestCreateDecider:
    @pytest.mark.parametrize(
        "strategy,decision",
        [
            ("markers", ConflictDecision.APPLY_MARKERS),
            ("local-wins", ConflictDecision.FORCE_LOCAL),
            ("remote-wins", ConflictDecision.FORCE_REMOTE),
            ("abort", ConflictDecision.ABORT),
        ],
    )
    def test_fixed(self, strategy, decision):
        decider = create_decider(strategy)
        assert isinstance(decider, FixedDecision)
        assert decider(_conflicts()) == decision

    def test_interactive(self):
        assert isinstance(create_decider("interactive"), InteractiveDecision)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            create_decider("coin-flip")


class TestInteractiveDecision:
    def test_shows_diff_then_asks(self):
        shown: list[str] = []
        decider = InteractiveDecision(_answers("l"), shown.append)
        assert decider(_conflicts()) == ConflictDecision.FORCE_LOCAL
        assert shown[0].startswith("Conflict: notes/a.md")
        assert "1 document changed on both sides" in shown[-1]

    def test_reprompts_on_bad_answer(self):
        shown: list[str] = []
        prompt = _answers("x", "remote")
        decider = InteractiveDecision(prompt, shown.append)
        assert decider(_conflicts()) == ConflictDecision.FORCE_REMOTE
        assert len(prompt.asked) == 2
        assert "Please answer m, l, r or a." in shown

    def test_eof_aborts(self):
        decider = InteractiveDecision(_answers(), lambda _: None)
        assert decider(_conflicts()) == ConflictDecision.ABORT


class TestConfirmers:
    def _request(self):
        return DecisionRequest(
            kind=DecisionKind.TRASH_LOCAL, paths=["a.md", "b.md"]
        )

    def test_auto(self):
        assert AutoConfirm(True)(self._request()) is True
        assert AutoConfirm(False)(self._request()) is False

    @pytest.mark.parametrize(
        "answer,expected", [("y", True), ("YES", True), ("n", False), ("", False)]
    )
    def test_interactive(self, answer, expected):
        shown: list[str] = []
        confirm = InteractiveConfirm(_answers(answer), shown.append)
        assert confirm(self._request()) is expected
        assert shown == ["Deleted remotely:", "  a.md", "  b.md"]

    def test_interactive_eof_declines(self):
        confirm = InteractiveConfirm(_answers(), lambda _: None)
        assert confirm(self._request()) is False

    def test_delete_remote_heading(self):
        shown: list[str] = []
        request = DecisionRequest(kind=DecisionKind.DELETE_REMOTE, paths=["a.md"])
        InteractiveConfirm(_answers("y"), shown.append)(request)
        assert shown[0] == "Trashed locally:"
