"""Pydantic schemas for register/login."""
from pydantic import BaseModel, ConfigDict, Field


class CredentialsSchema(BaseModel):
    email: str
    password: str = Field(min_length=8)


class TokenOutSchema(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int


class UserOutSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
