"""Request, credential and outcome models shared by both backends."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    organization_slug: str
    cluster_id: str
    queue_id: str
    image_reference: str

    @field_validator("image_reference")
    @classmethod
    def _image_reference_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("image reference must not be empty")
        return value


class SessionCredential(BaseModel):
    """Token and cookies scraped from one settings page load; used for a single PATCH."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    authenticity_token: str = Field(..., min_length=1)
    cookie_header: str = ""


class BearerCredential(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    token: str = Field(..., min_length=1)

    def __repr__(self) -> str:
        return "BearerCredential(token='[REDACTED]')"

    __str__ = __repr__


class UpdateOutcome(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    succeeded: bool
    message: str
    raw_status: Optional[int] = None
    backend: Optional[str] = None
    image_reference: Optional[str] = None
