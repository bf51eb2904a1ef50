"""Ingest lifecycle: allowed upload-state transitions.

    queued → parsing → parsed → ai_classifying → (ai_retrying) → (web_enriching)
           → enriched → indexing → (indexed) → completed

A queued upload that duplicates a completed one goes straight to completed.
Every non-terminal state may also exit to error, failed or quarantined.
Re-entering the current state is a no-op; terminal states are final.
"""

from __future__ import annotations

from fontsense.models.taxonomy import TERMINAL_STATES, UploadState

S = UploadState

_FORWARD: dict[UploadState, frozenset[UploadState]] = {
    S.NOT_STARTED: frozenset({S.QUEUED}),
    S.QUEUED: frozenset({S.PARSING, S.COMPLETED}),  # completed: duplicate skipped
    S.PARSING: frozenset({S.PARSED}),
    S.PARSED: frozenset({S.AI_CLASSIFYING}),
    S.AI_CLASSIFYING: frozenset({S.AI_RETRYING, S.WEB_ENRICHING, S.ENRICHED}),
    S.AI_RETRYING: frozenset({S.WEB_ENRICHING, S.ENRICHED}),
    S.WEB_ENRICHING: frozenset({S.ENRICHED}),
    S.ENRICHED: frozenset({S.INDEXING}),
    S.INDEXING: frozenset({S.INDEXED, S.COMPLETED}),
    S.INDEXED: frozenset({S.COMPLETED}),
}

_SIDE_EXITS = frozenset({S.ERROR, S.FAILED, S.QUARANTINED})


class InvalidTransition(Exception):
    def __init__(self, current: UploadState, target: UploadState) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid upload-state transition {current.value} -> {target.value}")


def is_terminal(state: UploadState) -> bool:
    return state in TERMINAL_STATES


def allowed_targets(state: UploadState) -> frozenset[UploadState]:
    if is_terminal(state):
        return frozenset()
    return _FORWARD.get(state, frozenset()) | _SIDE_EXITS


def can_transition(current: UploadState, target: UploadState) -> bool:
    return current == target or target in allowed_targets(current)


def check_transition(current: UploadState, target: UploadState) -> bool:
    """Validate a transition. Returns False for an idempotent no-op, True for a real move.

    Raises ``InvalidTransition`` for anything else.
    """
    if current == target:
        return False
    if target not in allowed_targets(current):
        raise InvalidTransition(current, target)
    return True
