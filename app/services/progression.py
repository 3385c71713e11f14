"""State blob transitions for a simulation; no I/O here.

The blob is a loosely typed dict:

    {
        "stageStates": {stage_id: {"stageId", "answer", "completed", "completedAt"}},
        "currentStageId": str | None,
        "eventLog": [{"timestamp", "type", "payload"}],
    }

Keys this module does not know about are carried through unchanged, so
records written by older or newer versions survive a round trip.
"""
from datetime import datetime
from typing import Any

from app.core.errors import InvalidStageError

EVENT_STAGE_SUBMITTED = "stage_submitted"
EVENT_COMPLETED = "simulation_completed"


def initial_state(stage_ids: list[str]) -> dict:
    return {
        "stageStates": {},
        "currentStageId": stage_ids[0] if stage_ids else None,
        "eventLog": [],
    }


def normalize_state(raw: Any, stage_ids: list[str]) -> dict:
    """Copy of ``raw`` with the three known keys present and well-formed."""
    state = dict(raw) if isinstance(raw, dict) else {}
    stage_states = state.get("stageStates")
    state["stageStates"] = dict(stage_states) if isinstance(stage_states, dict) else {}
    if "currentStageId" not in state:
        state["currentStageId"] = stage_ids[0] if stage_ids else None
    event_log = state.get("eventLog")
    state["eventLog"] = list(event_log) if isinstance(event_log, list) else []
    return state


def _event(event_type: str, now: datetime, payload: dict) -> dict:
    return {"timestamp": now.isoformat(), "type": event_type, "payload": payload}


def next_stage_id(stage_ids: list[str], stage_id: str) -> str | None:
    idx = stage_ids.index(stage_id)
    return stage_ids[idx + 1] if idx + 1 < len(stage_ids) else None


def apply_submission(state: Any, stage_ids: list[str], stage_id: str, answer: Any, now: datetime) -> dict:
    """Record ``answer`` for ``stage_id`` and return the new blob.

    Stages may be answered in any order and resubmitting overwrites the
    previous answer. The cursor only moves when the current stage is answered.
    """
    if stage_id not in stage_ids:
        raise InvalidStageError(f"Unknown decision point: {stage_id}")

    new_state = normalize_state(state, stage_ids)
    resubmission = stage_id in new_state["stageStates"]
    new_state["stageStates"][stage_id] = {
        "stageId": stage_id,
        "answer": answer,
        "completed": True,
        "completedAt": now.isoformat(),
    }
    new_state["eventLog"].append(
        _event(EVENT_STAGE_SUBMITTED, now, {"stageId": stage_id, "resubmission": resubmission})
    )
    if new_state["currentStageId"] == stage_id:
        new_state["currentStageId"] = next_stage_id(stage_ids, stage_id)
    return new_state


def _is_answered(stage_state: Any) -> bool:
    if isinstance(stage_state, dict):
        return bool(stage_state.get("completed")) or "answer" in stage_state
    return stage_state is not None


def missing_stages(state: Any, stage_ids: list[str]) -> list[str]:
    stage_states = normalize_state(state, stage_ids)["stageStates"]
    return [sid for sid in stage_ids if not _is_answered(stage_states.get(sid))]


def apply_completion(state: Any, stage_ids: list[str], now: datetime) -> dict:
    new_state = normalize_state(state, stage_ids)
    new_state["currentStageId"] = None
    new_state["eventLog"].append(_event(EVENT_COMPLETED, now, {}))
    return new_state
