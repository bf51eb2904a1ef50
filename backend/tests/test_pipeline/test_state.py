"""Tests for upload-state transitions."""

from __future__ import annotations

import pytest

from fontsense.models.taxonomy import UploadState as S
from fontsense.pipeline.state import InvalidTransition, allowed_targets, can_transition, check_transition


HAPPY_PATH = [
    S.QUEUED, S.PARSING, S.PARSED, S.AI_CLASSIFYING, S.AI_RETRYING,
    S.WEB_ENRICHING, S.ENRICHED, S.INDEXING, S.INDEXED, S.COMPLETED,
]


def test_happy_path_is_allowed():
    for current, target in zip(HAPPY_PATH, HAPPY_PATH[1:]):
        assert check_transition(current, target) is True


def test_optional_steps_can_be_skipped():
    assert can_transition(S.AI_CLASSIFYING, S.ENRICHED)
    assert can_transition(S.INDEXING, S.COMPLETED)


def test_reentering_current_state_is_a_noop():
    assert check_transition(S.PARSING, S.PARSING) is False
    assert check_transition(S.COMPLETED, S.COMPLETED) is False


@pytest.mark.parametrize("state", [s for s in HAPPY_PATH if s != S.COMPLETED])
def test_side_exits_from_non_terminal_states(state):
    for exit_state in (S.ERROR, S.FAILED, S.QUARANTINED):
        assert exit_state in allowed_targets(state)


@pytest.mark.parametrize("terminal", [S.COMPLETED, S.ERROR, S.FAILED, S.QUARANTINED])
def test_terminal_states_are_final(terminal):
    assert allowed_targets(terminal) == frozenset()
    with pytest.raises(InvalidTransition):
        check_transition(terminal, S.PARSING)


def test_backwards_and_skipping_moves_are_rejected():
    with pytest.raises(InvalidTransition):
        check_transition(S.PARSED, S.PARSING)
    with pytest.raises(InvalidTransition):
        check_transition(S.PARSING, S.ENRICHED)
