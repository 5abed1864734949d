"""Batch decision strategies for the sync engine.

The engine never talks to a user.  It hands every question to one of two
callbacks, each receiving a structured ``DecisionRequest``:

- ``decide(request) -> ConflictDecision`` for the single batch of conflicts
  of a run;
- ``confirm(request) -> bool`` for destructive actions (trashing local
  documents, deleting remote files).

This module provides the implementations used by the outer surfaces:

- ``FixedDecision``: Always returns the same decision (unattended runs).
- ``InteractiveDecision``: Shows each conflict as a diff and asks once.
- ``AutoConfirm`` / ``InteractiveConfirm``: Confirmation callbacks.

The ``create_decider()`` factory maps config strategy strings to deciders.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from vault_sync.sync.models import (
    ConflictDecision,
    DecisionKind,
    DecisionRequest,
)
from vault_sync.sync.reporter import format_conflict_diff

logger = logging.getLogger(__name__)

PromptFunc = Callable[[str], str]
OutputFunc = Callable[[str], None]


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class ConflictDecider(Protocol):
    """Callable deciding the conflict batch of one run."""

    def __call__(self, request: DecisionRequest) -> ConflictDecision:
        ...  # pragma: no cover


class Confirmer(Protocol):
    """Callable approving or declining a destructive action batch."""

    def __call__(self, request: DecisionRequest) -> bool:
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Conflict deciders
# ---------------------------------------------------------------------------


class FixedDecision:
    """Resolve every conflict batch with the same decision."""

    def __init__(self, decision: ConflictDecision) -> None:
        self.decision = decision

    def __call__(self, request: DecisionRequest) -> ConflictDecision:
        logger.info("%s -> %s", request.describe(), self.decision.value)
        return self.decision


_CHOICES = {
    "m": ConflictDecision.APPLY_MARKERS,
    "l": ConflictDecision.FORCE_LOCAL,
    "r": ConflictDecision.FORCE_REMOTE,
    "a": ConflictDecision.ABORT,
}


class InteractiveDecision:
    """Present the conflict batch and ask for one decision.

    Args:
        prompt: Reads one answer (``input`` by default).
        output: Writes text for the user (``print`` by default).
    """

    def __init__(
        self,
        prompt: PromptFunc = input,
        output: OutputFunc = print,
    ) -> None:
        self.prompt = prompt
        self.output = output

    def __call__(self, request: DecisionRequest) -> ConflictDecision:
        for conflict in request.conflicts:
            self.output(format_conflict_diff(conflict))
            self.output("")
        self.output(request.describe())
        question = (
            "[m]erge with markers, keep [l]ocal, keep [r]emote, [a]bort? "
        )
        while True:
            try:
                answer = self.prompt(question).strip().lower()
            except EOFError:
                logger.warning("No answer available; aborting conflicts")
                return ConflictDecision.ABORT
            decision = _CHOICES.get(answer[:1])
            if decision is not None:
                return decision
            self.output("Please answer m, l, r or a.")


_STRATEGY_MAP: dict[str, ConflictDecision] = {
    "markers": ConflictDecision.APPLY_MARKERS,
    "local-wins": ConflictDecision.FORCE_LOCAL,
    "remote-wins": ConflictDecision.FORCE_REMOTE,
    "abort": ConflictDecision.ABORT,
}


def create_decider(
    strategy: str,
    prompt: PromptFunc = input,
    output: OutputFunc = print,
) -> ConflictDecider:
    """Create a conflict decider for the given strategy string.

    Args:
        strategy: One of ``"interactive"``, ``"markers"``,
            ``"local-wins"``, ``"remote-wins"``, ``"abort"``.

    Returns:
        A ``ConflictDecider`` instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    if strategy == "interactive":
        return InteractiveDecision(prompt, output)
    decision = _STRATEGY_MAP.get(strategy)
    if decision is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: "
            f"{sorted([*_STRATEGY_MAP.keys(), 'interactive'])}"
        )
    return FixedDecision(decision)


# ---------------------------------------------------------------------------
# Confirmers
# ---------------------------------------------------------------------------


class AutoConfirm:
    """Answer every destructive-action request the same way.

    ``AutoConfirm(False)`` is the safe default: nothing is trashed or
    deleted, and the candidates are reported as skipped.
    """

    def __init__(self, approve: bool) -> None:
        self.approve = approve

    def __call__(self, request: DecisionRequest) -> bool:
        if not self.approve:
            logger.info("Declined: %s", request.describe())
        return self.approve


class InteractiveConfirm:
    """List the affected paths and ask for a yes/no answer."""

    def __init__(
        self,
        prompt: PromptFunc = input,
        output: OutputFunc = print,
    ) -> None:
        self.prompt = prompt
        self.output = output

    def __call__(self, request: DecisionRequest) -> bool:
        heading = (
            "Deleted remotely:"
            if request.kind == DecisionKind.TRASH_LOCAL
            else "Trashed locally:"
        )
        self.output(heading)
        for path in request.paths:
            self.output(f"  {path}")
        try:
            answer = self.prompt(f"{request.describe()} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")
