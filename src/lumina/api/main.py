"""Lumina Studio — FastAPI Application.

This module defines the FastAPI application, all REST API routes, and the
``main()`` CLI function that launches the uvicorn server.  The browser
studio (creation view and archive view) is a client of these routes.

Architecture
------------
- **Configuration** comes from :data:`~lumina.core.config.config`
  (``LUMINA_*`` environment variables).
- **Working sessions** live in a :class:`~lumina.core.session.SessionRegistry`;
  each browser tab creates its own session, so tabs never share state.
- **Generation** is delegated to :class:`~lumina.core.gateway.GenerationGateway`.
- **History and account** persist as JSON documents under ``data_dir``.
- **Videos** are materialised under ``media_dir`` and served at ``/media``.

Endpoints
---------
========  ======================================  ================================
Method    Path                                    Purpose
========  ======================================  ================================
GET       ``/api/config``                         Styles, ratios, export formats
POST      ``/api/auth/login``                     Sign in / sign up
POST      ``/api/auth/logout``                    Sign out
GET       ``/api/auth/me``                        Current account
POST      ``/api/sessions``                       Open a studio session
GET       ``/api/sessions/{sid}``                 Session snapshot
PATCH     ``/api/sessions/{sid}``                 Update form inputs
DELETE    ``/api/sessions/{sid}``                 Close a session
POST      ``/api/sessions/{sid}/enhance``         Enhance the prompt
POST      ``/api/sessions/{sid}/generate``        Generate an image
POST      ``/api/sessions/{sid}/upscale``         Upscale the image
POST      ``/api/sessions/{sid}/animate``         Animate the image
POST      ``/api/sessions/{sid}/cancel/{axis}``   Abandon an in-flight operation
POST      ``/api/sessions/{sid}/save``            Save the image to history
GET       ``/api/sessions/{sid}/export``          Download in a chosen format
POST      ``/api/sessions/{sid}/open/{aid}``      Load a saved image
GET       ``/api/history``                        Saved images, newest first
DELETE    ``/api/history/{aid}``                  Delete a saved image
GET       ``/api/stats``                          History statistics
========  ======================================  ================================

Usage
-----
CLI (installed entry point)::

    lumina

Direct invocation::

    python -m lumina.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from lumina import __version__
from lumina.api.models import LoginRequest, OutcomeResponse, SessionInputs
from lumina.core.accounts import AccountStore
from lumina.core.artifact_store import ArtifactStore
from lumina.core.config import LuminaConfig, config
from lumina.core.credentials import ConfigCredentialCheck, CredentialCheck
from lumina.core.errors import (
    AuthenticationRequiredError,
    OperationRejectedError,
    ValidationError,
)
from lumina.core.exporter import ExportEncoder
from lumina.core.gateway import GenerationGateway
from lumina.core.models import ASPECT_RATIOS, STYLES, ImageFormat
from lumina.core.session import OperationAxis, SessionRegistry, StudioSession
from lumina.core.storage import LocalStorage
from lumina.core.validation import validate_email

logger = logging.getLogger(__name__)


def create_app(
    settings: LuminaConfig | None = None,
    *,
    gateway: GenerationGateway | None = None,
    credentials: CredentialCheck | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Services are created in the lifespan handler so that nothing touches
    disk or the provider until the server starts.

    Args:
        settings: Configuration; defaults to the global ``config``.
        gateway: Provider facade; defaults to a Gemini-backed gateway.
        credentials: Capability check consulted before animating.

    Returns:
        The configured application.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the stores, gateway and session registry on startup.

        History and account are loaded exactly once here; every later
        mutation writes straight through to disk.
        """
        # --- Startup -------------------------------------------------------
        storage = LocalStorage(settings.data_dir)
        app.state.accounts = AccountStore(storage)
        app.state.artifacts = ArtifactStore(storage)
        app.state.encoder = ExportEncoder(media_root=settings.media_dir)

        active_gateway = gateway or GenerationGateway(settings)
        if not active_gateway.has_credentials:
            logger.warning("No Gemini API key configured; generation requests will fail")

        app.state.sessions = SessionRegistry(
            active_gateway,
            credentials if credentials is not None else ConfigCredentialCheck(settings),
            ttl=settings.session_ttl,
            max_sessions=settings.max_sessions,
        )
        logger.info(f"Lumina Studio {__version__} ready (data: {settings.data_dir})")

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        logger.info(f"Shutting down with {len(app.state.sessions)} open session(s)")

    app = FastAPI(
        title="Lumina Studio",
        description="Prompt-to-image studio: enhance, generate, upscale, animate and archive.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Materialised videos are served directly at ``/media/...``.
    app.mount("/media", StaticFiles(directory=str(settings.media_dir)), name="media")

    _register_error_handlers(app)
    _register_routes(app)
    return app


# ---------------------------------------------------------------------------
# Error mapping.
# ---------------------------------------------------------------------------


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(OperationRejectedError)
    async def _rejected(request: Request, exc: OperationRejectedError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(AuthenticationRequiredError)
    async def _auth_required(request: Request, exc: AuthenticationRequiredError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": str(exc), "login_required": True},
        )


# ---------------------------------------------------------------------------
# Lookup helpers.
# ---------------------------------------------------------------------------


def _session(request: Request, session_id: str) -> StudioSession:
    """Resolve a session id or raise 404."""
    try:
        return request.app.state.sessions.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found") from None


def _axis(name: str) -> OperationAxis:
    try:
        return OperationAxis(name)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown operation: {name}") from None


def _export_format(name: str) -> ImageFormat:
    """Accept either the menu label (``PNG``) or the mime type (``image/png``)."""
    if name.upper() in ImageFormat.__members__:
        return ImageFormat[name.upper()]
    try:
        return ImageFormat(name.lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported format: {name}. Choose one of: {', '.join(ImageFormat.__members__)}",
        ) from None


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/config")
    async def get_config() -> dict:
        """Return the option lists the studio form is built from."""
        return {
            "version": __version__,
            "styles": list(STYLES),
            "aspect_ratios": list(ASPECT_RATIOS),
            "export_formats": [
                {"id": name, "mime_type": fmt.value} for name, fmt in ImageFormat.__members__.items()
            ],
        }

    # --- Account -----------------------------------------------------------

    @app.post("/api/auth/login")
    async def login(req: LoginRequest, request: Request) -> dict:
        """Sign in or sign up.  No credential is verified."""
        validate_email(req.email)
        account = request.app.state.accounts.login(req.username, req.email, req.password)
        return {"account": account.to_record()}

    @app.post("/api/auth/logout")
    async def logout(request: Request) -> dict:
        request.app.state.accounts.logout()
        return {"success": True}

    @app.get("/api/auth/me")
    async def me(request: Request) -> dict:
        account = request.app.state.accounts.current()
        return {"account": account.to_record() if account else None}

    # --- Sessions ----------------------------------------------------------

    @app.post("/api/sessions")
    async def create_session(request: Request, req: SessionInputs | None = None) -> dict:
        """Open a new studio session, optionally with initial form values."""
        inputs = req.changes() if req else {}
        session = request.app.state.sessions.create(**inputs)
        return session.snapshot()

    @app.get("/api/sessions/{session_id}")
    async def get_session(session_id: str, request: Request) -> dict:
        return _session(request, session_id).snapshot()

    @app.patch("/api/sessions/{session_id}")
    async def update_session(session_id: str, req: SessionInputs, request: Request) -> dict:
        session = _session(request, session_id)
        session.update(**req.changes())
        return session.snapshot()

    @app.delete("/api/sessions/{session_id}")
    async def close_session(session_id: str, request: Request) -> dict:
        request.app.state.sessions.discard(session_id)
        return {"success": True, "closed": session_id}

    @app.post("/api/sessions/{session_id}/enhance")
    async def enhance(session_id: str, request: Request) -> OutcomeResponse:
        session = _session(request, session_id)
        outcome = await session.enhance()
        return OutcomeResponse.from_outcome(outcome, session.snapshot())

    @app.post("/api/sessions/{session_id}/generate")
    async def generate(session_id: str, request: Request) -> OutcomeResponse:
        session = _session(request, session_id)
        outcome = await session.generate()
        return OutcomeResponse.from_outcome(outcome, session.snapshot())

    @app.post("/api/sessions/{session_id}/upscale")
    async def upscale(session_id: str, request: Request) -> OutcomeResponse:
        session = _session(request, session_id)
        outcome = await session.upscale()
        return OutcomeResponse.from_outcome(outcome, session.snapshot())

    @app.post("/api/sessions/{session_id}/animate")
    async def animate(session_id: str, request: Request) -> OutcomeResponse:
        """Animate the working image.  Blocks until the video job settles."""
        session = _session(request, session_id)
        outcome = await session.animate()
        return OutcomeResponse.from_outcome(outcome, session.snapshot())

    @app.post("/api/sessions/{session_id}/cancel/{axis}")
    async def cancel(session_id: str, axis: str, request: Request) -> dict:
        session = _session(request, session_id)
        cancelled = session.cancel(_axis(axis))
        return {"cancelled": cancelled, "session": session.snapshot()}

    @app.post("/api/sessions/{session_id}/save")
    async def save(session_id: str, request: Request) -> dict:
        """Save the working image to history.  Returns 401 when signed out."""
        session = _session(request, session_id)
        artifact = session.save(request.app.state.accounts, request.app.state.artifacts)
        return {"success": True, "artifact": artifact.to_record()}

    @app.get("/api/sessions/{session_id}/export")
    async def export(session_id: str, request: Request, format: str = "PNG") -> Response:
        """Download the working image re-encoded as ``format``.

        Export is best effort: when the image cannot be read the response is
        ``204 No Content`` and no file is offered.
        """
        session = _session(request, session_id)
        exported = session.export(_export_format(format), request.app.state.encoder)
        if exported is None:
            return Response(status_code=204)
        return Response(
            content=exported.data,
            media_type=exported.mime_type,
            headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
        )

    @app.post("/api/sessions/{session_id}/open/{artifact_id}")
    async def open_artifact(session_id: str, artifact_id: str, request: Request) -> dict:
        """Load a saved image into the studio, dropping any animation."""
        session = _session(request, session_id)
        artifact = request.app.state.artifacts.get(artifact_id)
        if artifact is None:
            raise HTTPException(status_code=404, detail="Image not found")
        session.open_artifact(artifact)
        return session.snapshot()

    # --- History -----------------------------------------------------------

    @app.get("/api/history")
    async def get_history(request: Request) -> dict:
        """Return saved images, newest first.  An empty list is the zero-state."""
        images = request.app.state.artifacts.list()
        return {"total": len(images), "images": [a.to_record() for a in images]}

    @app.delete("/api/history/{artifact_id}")
    async def delete_artifact(artifact_id: str, request: Request) -> dict:
        """Remove a saved image.  Deleting an unknown id succeeds."""
        request.app.state.artifacts.remove(artifact_id)
        return {"success": True, "deleted": artifact_id}

    @app.get("/api/stats")
    async def get_stats(request: Request) -> dict:
        """Return history statistics.

        Returns:
            Dictionary with ``total_images``, ``aspect_ratio_counts``,
            ``newest`` and ``oldest`` timestamps.
        """
        images = request.app.state.artifacts.list()

        aspect_ratio_counts: dict[str, int] = {}
        for image in images:
            aspect_ratio_counts[image.aspect_ratio] = (
                aspect_ratio_counts.get(image.aspect_ratio, 0) + 1
            )

        timestamps = [image.timestamp for image in images]
        return {
            "total_images": len(images),
            "aspect_ratio_counts": aspect_ratio_counts,
            "newest": max(timestamps) if timestamps else None,
            "oldest": min(timestamps) if timestamps else None,
        }


# ---------------------------------------------------------------------------
# Module-level application used by uvicorn.
# ---------------------------------------------------------------------------
app = create_app()


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~lumina.core.config.config`
    (``LUMINA_SERVER_HOST``, ``LUMINA_SERVER_PORT``, ``LUMINA_LOG_LEVEL``).

    This function is registered as the ``lumina`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "lumina.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
