"""
api/dto.py — Pydantic request/response models for the auth endpoints.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Requests ──────────────────────────────────────────────────────────────────

class SignupRequest(_CamelModel):
    email: str
    username: str
    password: str


class LoginRequest(_CamelModel):
    username_or_email: str = Field(alias="usernameOrEmail")
    password: str


class PasswordChangeRequest(_CamelModel):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")


# ── Responses ─────────────────────────────────────────────────────────────────

class SignupResponse(_CamelModel):
    user_id: str = Field(alias="userId")


class LoginResponse(_CamelModel):
    user_id: str = Field(alias="userId")
    username: str
    expires_at: datetime = Field(alias="expiresAt")


class MeResponse(_CamelModel):
    id: str
    email: str
    username: str
    created_at: datetime = Field(alias="createdAt")


class PasswordChangeResponse(_CamelModel):
    revoked_sessions: int = Field(alias="revokedSessions")
    expires_at: datetime = Field(alias="expiresAt")


class LinkedAccountResponse(_CamelModel):
    provider: str
    provider_user_id: str = Field(alias="providerUserId")
    email: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    linked_at: datetime = Field(alias="linkedAt")


class StatusResponse(BaseModel):
    status: str
