from app.schemas.auth import CredentialsSchema, TokenOutSchema, UserOutSchema
from app.schemas.case import (
    CaseOutSchema,
    CaseSummarySchema,
    DecisionPointSchema,
    GateResultSchema,
    PrerequisiteSchema,
)
from app.schemas.simulation import (
    NotificationOutSchema,
    SimulationOutSchema,
    SimulationStateSchema,
    StageSubmitSchema,
)

__all__ = [
    "CaseOutSchema",
    "CaseSummarySchema",
    "CredentialsSchema",
    "DecisionPointSchema",
    "GateResultSchema",
    "NotificationOutSchema",
    "PrerequisiteSchema",
    "SimulationOutSchema",
    "SimulationStateSchema",
    "StageSubmitSchema",
    "TokenOutSchema",
    "UserOutSchema",
]
