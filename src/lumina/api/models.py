"""Pydantic request and response models for the Lumina Studio API.

These models define the JSON schema for the API endpoints.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Models
------
LoginRequest
    Payload for ``POST /api/auth/login`` — the sign-in / sign-up form.
SessionInputs
    Payload for ``POST /api/sessions`` and ``PATCH /api/sessions/{sid}`` —
    the studio form fields.
OutcomeResponse
    Body returned by every operation endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lumina.core.session import OperationOutcome


class LoginRequest(BaseModel):
    """Request body for the ``POST /api/auth/login`` endpoint.

    Attributes:
        username: Display name.  Only collected by the sign-up form.
        email: Email address.
        password: Collected by the form and never checked.
    """

    username: str = Field(
        default="",
        description="Display name (sign-up form only).",
    )
    email: str = Field(
        ...,
        description="Email address.",
    )
    password: str = Field(
        default="",
        description="Accepted for form compatibility; not verified.",
    )


class SessionInputs(BaseModel):
    """Studio form fields.  Omitted fields are left unchanged.

    Attributes:
        prompt: Prompt text.
        style: Style name, ``"None"`` for no suffix.
        aspect_ratio: One of ``1:1``, ``16:9``, ``9:16``, ``4:3``, ``3:4``.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = Field(
        default=None,
        description="Prompt text.",
    )
    style: str | None = Field(
        default=None,
        description="Style name from /api/config, or 'None'.",
    )
    aspect_ratio: str | None = Field(
        default=None,
        alias="aspectRatio",
        description="Aspect ratio preset (e.g. '1:1', '16:9').",
    )

    def changes(self) -> dict[str, str]:
        """Fields that were supplied, keyed by session attribute name."""
        return self.model_dump(exclude_none=True, by_alias=False)


class OutcomeResponse(BaseModel):
    """Result of an operation plus the session it left behind."""

    axis: str
    status: str
    ok: bool
    value: Any = None
    message: str | None = None
    notify: bool = False
    warning: str | None = None
    session: dict

    @classmethod
    def from_outcome(cls, outcome: OperationOutcome, session: dict) -> OutcomeResponse:
        value = outcome.value
        if hasattr(value, "to_record"):
            value = value.to_record()
        return cls(
            axis=outcome.axis.value,
            status=outcome.status.value,
            ok=outcome.ok,
            value=value,
            message=outcome.message,
            notify=outcome.notify,
            warning=outcome.warning,
            session=session,
        )
