"""State blob transitions, no database."""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import InvalidStageError
from app.services.progression import (
    EVENT_COMPLETED,
    EVENT_STAGE_SUBMITTED,
    apply_completion,
    apply_submission,
    initial_state,
    missing_stages,
    normalize_state,
)

STAGES = ["d1", "d2", "d3"]
NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def test_initial_state_points_at_first_stage():
    assert initial_state(STAGES) == {"stageStates": {}, "currentStageId": "d1", "eventLog": []}


def test_initial_state_without_stages():
    assert initial_state([])["currentStageId"] is None


def test_submit_current_stage_advances_cursor():
    state = apply_submission(initial_state(STAGES), STAGES, "d1", {"text": "margins"}, NOW)

    assert state["currentStageId"] == "d2"
    assert state["stageStates"]["d1"] == {
        "stageId": "d1",
        "answer": {"text": "margins"},
        "completed": True,
        "completedAt": NOW.isoformat(),
    }
    assert state["eventLog"] == [
        {
            "timestamp": NOW.isoformat(),
            "type": EVENT_STAGE_SUBMITTED,
            "payload": {"stageId": "d1", "resubmission": False},
        }
    ]


def test_last_stage_clears_cursor():
    state = initial_state(STAGES)
    for sid in STAGES:
        state = apply_submission(state, STAGES, sid, sid.upper(), NOW)
    assert state["currentStageId"] is None


def test_out_of_order_submission_is_accepted_without_moving_cursor():
    state = apply_submission(initial_state(STAGES), STAGES, "d3", "skip ahead", NOW)

    assert state["currentStageId"] == "d1"
    assert state["stageStates"]["d3"]["answer"] == "skip ahead"


def test_resubmission_overwrites_and_is_logged():
    first = apply_submission(initial_state(STAGES), STAGES, "d1", "first", NOW)
    later = NOW + timedelta(minutes=5)
    second = apply_submission(first, STAGES, "d1", "second", later)

    assert second["stageStates"]["d1"]["answer"] == "second"
    assert second["stageStates"]["d1"]["completedAt"] == later.isoformat()
    assert len(second["eventLog"]) == 2
    assert second["eventLog"][-1]["payload"] == {"stageId": "d1", "resubmission": True}
    # cursor already moved past d1 and stays there
    assert second["currentStageId"] == "d2"


def test_unknown_stage_rejected():
    with pytest.raises(InvalidStageError):
        apply_submission(initial_state(STAGES), STAGES, "d9", "x", NOW)


def test_submission_does_not_mutate_input():
    before = initial_state(STAGES)
    apply_submission(before, STAGES, "d1", "x", NOW)
    assert before == initial_state(STAGES)


def test_event_log_only_grows():
    state = initial_state(STAGES)
    lengths = []
    for sid in ["d1", "d1", "d3", "d2"]:
        state = apply_submission(state, STAGES, sid, "a", NOW)
        lengths.append(len(state["eventLog"]))
    state = apply_completion(state, STAGES, NOW)
    lengths.append(len(state["eventLog"]))
    assert lengths == [1, 2, 3, 4, 5]


def test_missing_stages_in_declared_order():
    state = apply_submission(initial_state(STAGES), STAGES, "d2", "a", NOW)
    assert missing_stages(state, STAGES) == ["d1", "d3"]


def test_missing_stages_reads_legacy_entries():
    legacy = {"stageStates": {"d1": "plain answer", "d2": {"answer": None}, "d3": None}}
    assert missing_stages(legacy, STAGES) == ["d3"]


def test_normalize_fills_defaults_and_keeps_unknown_keys():
    state = normalize_state({"stageStates": [], "eventLog": "bad", "draft": {"d1": "wip"}}, STAGES)

    assert state["stageStates"] == {}
    assert state["eventLog"] == []
    assert state["currentStageId"] == "d1"
    assert state["draft"] == {"d1": "wip"}


def test_normalize_non_dict_blob():
    assert normalize_state(None, []) == {"stageStates": {}, "currentStageId": None, "eventLog": []}


def test_unknown_keys_survive_submission():
    state = apply_submission({"draft": "keep me"}, STAGES, "d1", "a", NOW)
    assert state["draft"] == "keep me"


def test_completion_appends_event_and_clears_cursor():
    state = initial_state(STAGES)
    for sid in STAGES:
        state = apply_submission(state, STAGES, sid, "a", NOW)
    done = apply_completion(state, STAGES, NOW)

    assert done["currentStageId"] is None
    assert done["eventLog"][-1] == {"timestamp": NOW.isoformat(), "type": EVENT_COMPLETED, "payload": {}}
    assert len(done["stageStates"]) == 3


def test_foreign_event_entries_and_cursor_are_carried_through():
    state = apply_submission({"eventLog": ["opened"], "currentStageId": 1}, STAGES, "d1", "a", NOW)

    assert state["eventLog"][0] == "opened"
    assert state["eventLog"][1]["type"] == EVENT_STAGE_SUBMITTED
    assert state["currentStageId"] == 1
