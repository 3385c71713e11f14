"""Stage progression engine over a real (SQLite) state store."""
import asyncio

import pytest

from app.core.errors import (
    AlreadyCompletedError,
    ForbiddenError,
    IncompleteSimulationError,
    InvalidStageError,
    NotFoundError,
)
from app.models.simulation import STATUS_COMPLETED, STATUS_IN_PROGRESS
from app.services.engine import SimulationEngine
from app.services.state_store import load_state

from conftest import DEMO_CASE_ID, DEMO_STAGES


async def _answer_all(sim_engine, simulation, user):
    for sid in DEMO_STAGES:
        simulation = await sim_engine.submit_stage(simulation.id, user.id, sid, {"text": f"answer {sid}"})
    return simulation


@pytest.mark.asyncio
async def test_create_initializes_state(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)

    assert simulation.status == STATUS_IN_PROGRESS
    assert simulation.completed_at is None
    assert load_state(simulation) == {"stageStates": {}, "currentStageId": "d1", "eventLog": []}


@pytest.mark.asyncio
async def test_create_is_idempotent(sim_engine, demo_content, user):
    first = await sim_engine.create(user.id, DEMO_CASE_ID)
    second = await sim_engine.create(user.id, DEMO_CASE_ID)
    assert first.id == second.id


@pytest.mark.asyncio
async def test_create_returns_completed_attempt(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    await _answer_all(sim_engine, simulation, user)
    await sim_engine.complete(simulation.id, user.id)

    again = await sim_engine.create(user.id, DEMO_CASE_ID)

    assert again.id == simulation.id
    assert again.status == STATUS_COMPLETED


@pytest.mark.asyncio
async def test_create_unknown_case(sim_engine, user):
    with pytest.raises(NotFoundError):
        await sim_engine.create(user.id, "no-such-case")


@pytest.mark.asyncio
async def test_submit_records_answer_and_advances(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)

    updated = await sim_engine.submit_stage(simulation.id, user.id, "d1", {"text": "contribution margin is negative"})
    state = load_state(updated)

    assert state["currentStageId"] == "d2"
    assert state["stageStates"]["d1"]["answer"] == {"text": "contribution margin is negative"}
    assert state["stageStates"]["d1"]["completed"] is True
    assert [e["type"] for e in state["eventLog"]] == ["stage_submitted"]
    assert updated.updated_at is not None


@pytest.mark.asyncio
async def test_submit_unknown_stage(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    with pytest.raises(InvalidStageError):
        await sim_engine.submit_stage(simulation.id, user.id, "d4", "x")


@pytest.mark.asyncio
async def test_submit_by_other_user_forbidden(sim_engine, demo_content, user, other_user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    with pytest.raises(ForbiddenError):
        await sim_engine.submit_stage(simulation.id, other_user.id, "d1", "x")


@pytest.mark.asyncio
async def test_submit_missing_simulation(sim_engine, user):
    with pytest.raises(NotFoundError):
        await sim_engine.submit_stage("00000000-0000-0000-0000-000000000000", user.id, "d1", "x")


@pytest.mark.asyncio
async def test_event_log_never_shrinks(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    lengths = [len(load_state(simulation)["eventLog"])]
    for sid in ["d2", "d1", "d1", "d3"]:
        simulation = await sim_engine.submit_stage(simulation.id, user.id, sid, "a")
        lengths.append(len(load_state(simulation)["eventLog"]))
    simulation = await sim_engine.complete(simulation.id, user.id)
    lengths.append(len(load_state(simulation)["eventLog"]))

    assert lengths == sorted(lengths)
    assert lengths == [0, 1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_complete_requires_every_stage(sim_engine, demo_content, user, recorders):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    await sim_engine.submit_stage(simulation.id, user.id, "d1", "a")
    await sim_engine.submit_stage(simulation.id, user.id, "d3", "c")

    with pytest.raises(IncompleteSimulationError) as exc_info:
        await sim_engine.complete(simulation.id, user.id)

    assert exc_info.value.missing == ["d2"]
    reloaded = await sim_engine.get_owned(simulation.id, user.id)
    assert reloaded.status == STATUS_IN_PROGRESS
    assert recorders["jobs"].calls == []
    assert recorders["notifications"].calls == []
    assert recorders["forum"].calls == []


@pytest.mark.asyncio
async def test_unit_economics_crisis_walkthrough(sim_engine, demo_content, user, recorders):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    simulation = await _answer_all(sim_engine, simulation, user)

    completed = await sim_engine.complete(simulation.id, user.id)
    state = load_state(completed)

    assert completed.status == STATUS_COMPLETED
    assert completed.completed_at is not None
    assert set(state["stageStates"]) == {"d1", "d2", "d3"}
    assert state["currentStageId"] is None
    assert state["eventLog"][-1]["type"] == "simulation_completed"

    assert recorders["jobs"].calls == [{"simulation_id": simulation.id, "user_id": user.id}]
    assert len(recorders["notifications"].calls) == 1
    notification = recorders["notifications"].calls[0]
    assert notification["type"] == "simulation_complete"
    assert notification["link"] == f"/debrief/{simulation.id}"
    assert "Unit Economics Crisis" in notification["message"]
    assert len(recorders["forum"].calls) == 1
    assert recorders["forum"].calls[0]["title"] == "Discussion: Unit Economics Crisis"
    assert recorders["forum"].calls[0]["metadata"] == {
        "simulationId": simulation.id,
        "caseId": DEMO_CASE_ID,
        "autoCreated": True,
    }

    with pytest.raises(AlreadyCompletedError):
        await sim_engine.complete(simulation.id, user.id)
    assert len(recorders["jobs"].calls) == 1
    assert len(recorders["notifications"].calls) == 1
    assert len(recorders["forum"].calls) == 1


@pytest.mark.asyncio
async def test_completed_simulation_rejects_submissions(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    await _answer_all(sim_engine, simulation, user)
    completed = await sim_engine.complete(simulation.id, user.id)
    blob_before = completed.state_json

    with pytest.raises(AlreadyCompletedError):
        await sim_engine.submit_stage(simulation.id, user.id, "d1", "rewrite history")

    reloaded = await sim_engine.get_owned(simulation.id, user.id)
    assert reloaded.state_json == blob_before


@pytest.mark.asyncio
async def test_state_write_after_completion_is_refused(sim_engine, demo_content, user):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    await _answer_all(sim_engine, simulation, user)
    await sim_engine.complete(simulation.id, user.id)

    # a request that read the record before completion and writes afterwards
    assert await sim_engine.store.put_state(simulation.id, {"stageStates": {}}) is False


@pytest.mark.asyncio
async def test_list_for_user_filters_by_status(sim_engine, demo_content, user, other_user):
    mine = await sim_engine.create(user.id, DEMO_CASE_ID)
    await sim_engine.create(other_user.id, DEMO_CASE_ID)

    assert [s.id for s in await sim_engine.list_for_user(user.id)] == [mine.id]
    assert await sim_engine.list_for_user(user.id, STATUS_COMPLETED) == []


@pytest.mark.asyncio
async def test_concurrent_complete_fires_trigger_once(
    sim_engine, session_factory, trigger, recorders, demo_content, user
):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    await _answer_all(sim_engine, simulation, user)

    async with session_factory() as first_db, session_factory() as second_db:
        first = SimulationEngine(first_db, trigger)
        second = SimulationEngine(second_db, trigger)
        results = await asyncio.gather(
            first.complete(simulation.id, user.id),
            second.complete(simulation.id, user.id),
            return_exceptions=True,
        )

    completed = [r for r in results if not isinstance(r, BaseException)]
    conflicts = [r for r in results if isinstance(r, AlreadyCompletedError)]
    assert len(completed) == 1
    assert len(conflicts) == 1
    assert completed[0].status == STATUS_COMPLETED
    assert len(recorders["jobs"].calls) == 1
    assert len(recorders["notifications"].calls) == 1
    assert len(recorders["forum"].calls) == 1


@pytest.mark.asyncio
async def test_submission_racing_completion_leaves_completed_blob_intact(
    sim_engine, session_factory, trigger, recorders, demo_content, user
):
    simulation = await sim_engine.create(user.id, DEMO_CASE_ID)
    await _answer_all(sim_engine, simulation, user)

    async with session_factory() as submit_db, session_factory() as complete_db:
        submitter = SimulationEngine(submit_db, trigger)
        completer = SimulationEngine(complete_db, trigger)
        submit_result, complete_result = await asyncio.gather(
            submitter.submit_stage(simulation.id, user.id, "d1", "late answer"),
            completer.complete(simulation.id, user.id),
            return_exceptions=True,
        )

    # the submission either lands before completion or is refused after it
    assert not isinstance(complete_result, BaseException)
    assert not isinstance(submit_result, BaseException) or isinstance(submit_result, AlreadyCompletedError)

    final = await sim_engine.get_owned(simulation.id, user.id)
    assert final.status == STATUS_COMPLETED
    assert final.state_json == complete_result.state_json
    state = load_state(final)
    assert state["eventLog"][-1]["type"] == "simulation_completed"
    assert set(state["stageStates"]) == set(DEMO_STAGES)
    assert len(recorders["jobs"].calls) == 1

    # nothing written after completion changes the blob
    with pytest.raises(AlreadyCompletedError):
        await sim_engine.submit_stage(simulation.id, user.id, "d2", "later still")
    assert (await sim_engine.get_owned(simulation.id, user.id)).state_json == complete_result.state_json
