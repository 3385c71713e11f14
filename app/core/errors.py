"""Domain errors raised by the simulation services and their HTTP rendering."""
from fastapi import Request
from fastapi.responses import JSONResponse


class SimulationError(Exception):
    """Base class; carries the HTTP status the API boundary should use."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"detail": self.message}


class NotFoundError(SimulationError):
    status_code = 404


class ForbiddenError(SimulationError):
    status_code = 403


class InvalidStageError(SimulationError):
    status_code = 422


class IncompleteSimulationError(SimulationError):
    """complete() called while some decision points have no answer."""

    status_code = 422

    def __init__(self, missing: list[str]):
        super().__init__(f"Unanswered decision points: {', '.join(missing)}")
        self.missing = missing

    def to_body(self) -> dict:
        return {"detail": self.message, "missing": self.missing}


class AlreadyCompletedError(SimulationError):
    status_code = 409

    def __init__(self, simulation_id: str):
        super().__init__("Simulation already completed")
        self.simulation_id = simulation_id


class PrerequisitesNotMetError(SimulationError):
    status_code = 403

    def __init__(self, unmet: list[dict]):
        super().__init__("Prerequisite lessons not completed")
        self.unmet = unmet

    def to_body(self) -> dict:
        return {"detail": self.message, "unmet": self.unmet}


async def simulation_error_handler(request: Request, exc: SimulationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())
