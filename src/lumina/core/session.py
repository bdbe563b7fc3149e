"""Generation-session state machine.

A :class:`StudioSession` owns one working artifact and drives it through the
four studio operations.  Each operation kind is an *axis* with its own
state::

    IDLE -> IN_FLIGHT -> SUCCEEDED | FAILED | CANCELLED | TIMED_OUT

A settled axis can be started again.  Only one operation per axis may be in
flight; different axes may overlap.

Stale results
-------------
Operations are plain coroutines that return an :class:`OperationOutcome`.
Two counters decide whether a result may still be applied when it arrives:

- every axis has a sequence number, bumped on start and on
  :meth:`StudioSession.cancel`.  A result whose ticket no longer matches is
  dropped.
- the working artifact has a version, bumped whenever it is replaced
  wholesale (generate, open).  Upscale and animate capture the version at
  call time and drop their result if the artifact changed underneath them.

Failures never escape an operation.  Precondition violations (empty prompt,
axis busy, no artifact) raise :class:`~lumina.core.errors.OperationRejectedError`
before anything changes.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import (
    AuthenticationRequiredError,
    GenerationError,
    MotionError,
    MotionTimeoutError,
    OperationRejectedError,
)
from .gateway import effective_prompt
from .models import NO_STYLE, GeneratedArtifact, ImageFormat
from .validation import validate_aspect_ratio, validate_prompt_content, validate_style

if TYPE_CHECKING:
    from .accounts import AccountStore
    from .artifact_store import ArtifactStore
    from .credentials import CredentialCheck
    from .exporter import ExportedFile, ExportEncoder
    from .gateway import GenerationGateway

logger = logging.getLogger(__name__)


class OperationAxis(str, Enum):
    ENHANCE = "enhance"
    GENERATE = "generate"
    UPSCALE = "upscale"
    ANIMATE = "animate"


class OperationStatus(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass
class AxisState:
    """Progress of one operation axis."""

    status: OperationStatus = OperationStatus.IDLE
    sequence: int = 0
    message: str | None = None

    @property
    def in_flight(self) -> bool:
        return self.status is OperationStatus.IN_FLIGHT


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one operation, success or tagged failure.

    Attributes:
        axis: Operation kind.
        status: Terminal status of this call.
        value: Operation result (prompt text, artifact, or video URL).
        message: User-facing explanation for non-success outcomes.
        notify: Whether the message should be shown to the user.
        warning: Advisory note that did not stop the operation.
    """

    axis: OperationAxis
    status: OperationStatus
    value: Any = None
    message: str | None = None
    notify: bool = False
    warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.SUCCEEDED


@dataclass
class StudioSession:
    """Transient working state of one studio tab.

    Attributes
    ----------
    gateway : GenerationGateway
        Provider facade used by every operation
    credentials : CredentialCheck | None
        Consulted before animating; None skips the check
    id : str
        Session identifier
    prompt : str
        Prompt text as currently typed
    style : str
        Selected style, ``"None"`` for no suffix
    aspect_ratio : str
        Selected aspect ratio
    current_artifact : GeneratedArtifact | None
        The working artifact
    animation_url : str | None
        Video derived from the working artifact
    artifact_version : int
        Bumped whenever the working artifact is replaced wholesale
    save_pending : bool
        True while a save is being written
    """

    gateway: GenerationGateway
    credentials: CredentialCheck | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    prompt: str = ""
    style: str = NO_STYLE
    aspect_ratio: str = "1:1"
    current_artifact: GeneratedArtifact | None = None
    animation_url: str | None = None
    artifact_version: int = 0
    save_pending: bool = False
    axes: dict[OperationAxis, AxisState] = field(
        default_factory=lambda: {axis: AxisState() for axis in OperationAxis}
    )

    # ------------------------------------------------------------------
    # Axis bookkeeping
    # ------------------------------------------------------------------

    def state(self, axis: OperationAxis) -> AxisState:
        return self.axes[OperationAxis(axis)]

    def is_busy(self, axis: OperationAxis) -> bool:
        return self.state(axis).in_flight

    def has_work_in_flight(self) -> bool:
        """True while any operation or a save is still running."""
        return self.save_pending or any(state.in_flight for state in self.axes.values())

    def _begin(self, axis: OperationAxis) -> int:
        state = self.axes[axis]
        if state.in_flight:
            raise OperationRejectedError(f"{axis.value.capitalize()} is already in progress")
        state.sequence += 1
        state.status = OperationStatus.IN_FLIGHT
        state.message = None
        logger.debug(f"[{self.id}] {axis.value} started (#{state.sequence})")
        return state.sequence

    def _is_current(self, axis: OperationAxis, ticket: int) -> bool:
        return self.axes[axis].sequence == ticket

    def _settle(
        self,
        axis: OperationAxis,
        ticket: int,
        status: OperationStatus,
        *,
        value: Any = None,
        message: str | None = None,
        notify: bool = False,
        warning: str | None = None,
    ) -> OperationOutcome:
        state = self.axes[axis]
        if state.sequence == ticket:
            state.status = status
            state.message = message
        logger.debug(f"[{self.id}] {axis.value} settled: {status.value}")
        return OperationOutcome(
            axis=axis,
            status=status,
            value=value,
            message=message,
            notify=notify,
            warning=warning,
        )

    def _superseded(self, axis: OperationAxis, ticket: int, reason: str) -> OperationOutcome:
        logger.info(f"[{self.id}] Discarding {axis.value} result: {reason}")
        return self._settle(axis, ticket, OperationStatus.CANCELLED, message=reason)

    def cancel(self, axis: OperationAxis) -> bool:
        """Abandon the in-flight operation on *axis*.

        The network call keeps running; its result is discarded on arrival
        and the axis is immediately free for a new request.

        Returns:
            True if an operation was in flight.
        """
        axis = OperationAxis(axis)
        state = self.axes[axis]
        if not state.in_flight:
            return False
        state.sequence += 1
        state.status = OperationStatus.CANCELLED
        state.message = "Cancelled"
        logger.info(f"[{self.id}] {axis.value} cancelled")
        return True

    # ------------------------------------------------------------------
    # Form inputs
    # ------------------------------------------------------------------

    def update(
        self,
        *,
        prompt: str | None = None,
        style: str | None = None,
        aspect_ratio: str | None = None,
    ) -> None:
        """Apply form changes after validating them all.

        Raises:
            ValidationError: If any value is invalid; nothing is changed.
        """
        if prompt is not None:
            validate_prompt_content(prompt)
        if style is not None:
            validate_style(style)
        if aspect_ratio is not None:
            validate_aspect_ratio(aspect_ratio)

        if prompt is not None:
            self.prompt = prompt
        if style is not None:
            self.style = style
        if aspect_ratio is not None:
            self.aspect_ratio = aspect_ratio

    def _require_prompt(self) -> str:
        prompt = self.prompt
        if not prompt or not prompt.strip():
            raise OperationRejectedError("Please enter a prompt first")
        return prompt

    def _require_artifact(self) -> GeneratedArtifact:
        if self.current_artifact is None:
            raise OperationRejectedError("Generate an image first")
        return self.current_artifact

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def enhance(self) -> OperationOutcome:
        """Replace the prompt with an enhanced version.

        Raises:
            OperationRejectedError: If the prompt is empty or enhance is busy.
        """
        axis = OperationAxis.ENHANCE
        prompt = self._require_prompt()
        ticket = self._begin(axis)

        try:
            enhanced = await self.gateway.enhance(prompt)
        except asyncio.CancelledError:
            self._settle(axis, ticket, OperationStatus.CANCELLED, message="Cancelled")
            raise
        except Exception as e:
            logger.error(f"[{self.id}] Enhance failed: {e}", exc_info=True)
            return self._settle(
                axis,
                ticket,
                OperationStatus.FAILED,
                message="Could not enhance the prompt",
                notify=True,
            )

        if not self._is_current(axis, ticket):
            return self._superseded(axis, ticket, "superseded by a newer request")
        if self.prompt != prompt:
            return self._superseded(axis, ticket, "prompt changed while enhancing")

        self.prompt = enhanced
        return self._settle(axis, ticket, OperationStatus.SUCCEEDED, value=enhanced)

    async def generate(self) -> OperationOutcome:
        """Generate a new working artifact from the current form inputs.

        The animation reference is cleared as soon as generation starts.
        On failure the previous artifact, if any, is kept.

        Raises:
            OperationRejectedError: If the prompt is empty or generate is busy.
        """
        axis = OperationAxis.GENERATE
        prompt = self._require_prompt()
        style = self.style
        aspect_ratio = self.aspect_ratio
        ticket = self._begin(axis)

        self.animation_url = None

        try:
            url = await self.gateway.generate(prompt, style, aspect_ratio)
        except asyncio.CancelledError:
            self._settle(axis, ticket, OperationStatus.CANCELLED, message="Cancelled")
            raise
        except GenerationError as e:
            logger.warning(f"[{self.id}] Generation failed: {e}")
            return self._settle(
                axis, ticket, OperationStatus.FAILED, message=str(e), notify=True
            )
        except Exception as e:
            logger.error(f"[{self.id}] Unexpected generation error: {e}", exc_info=True)
            return self._settle(
                axis,
                ticket,
                OperationStatus.FAILED,
                message="Generation failed. Please try again.",
                notify=True,
            )

        if not self._is_current(axis, ticket):
            return self._superseded(axis, ticket, "superseded by a newer request")

        artifact = GeneratedArtifact(
            url=url,
            prompt=effective_prompt(prompt, style),
            original_prompt=prompt,
            aspect_ratio=aspect_ratio,
        )
        self.current_artifact = artifact
        self.artifact_version += 1
        logger.info(f"[{self.id}] Generated artifact {artifact.id}")
        return self._settle(axis, ticket, OperationStatus.SUCCEEDED, value=artifact)

    async def upscale(self) -> OperationOutcome:
        """Replace the working artifact's image with an upscaled one.

        Only ``url`` changes.  Failures leave the artifact untouched and are
        not announced to the user.

        Raises:
            OperationRejectedError: If there is no artifact or upscale is busy.
        """
        axis = OperationAxis.UPSCALE
        artifact = self._require_artifact()
        version = self.artifact_version
        ticket = self._begin(axis)

        try:
            url = await self.gateway.upscale(artifact.url)
        except asyncio.CancelledError:
            self._settle(axis, ticket, OperationStatus.CANCELLED, message="Cancelled")
            raise
        except Exception as e:
            logger.warning(f"[{self.id}] Upscale failed, keeping original: {e}")
            return self._settle(axis, ticket, OperationStatus.FAILED, message="Upscale failed")

        if not self._is_current(axis, ticket):
            return self._superseded(axis, ticket, "superseded by a newer request")
        if self.artifact_version != version or self.current_artifact is None:
            return self._superseded(axis, ticket, "image changed while upscaling")

        self.current_artifact = self.current_artifact.with_url(url)
        return self._settle(axis, ticket, OperationStatus.SUCCEEDED, value=self.current_artifact)

    async def animate(self) -> OperationOutcome:
        """Animate the working artifact into a short video.

        The credential check is advisory: when no key is selected the user
        is prompted and the job is submitted anyway.

        Raises:
            OperationRejectedError: If there is no artifact or animate is busy.
        """
        axis = OperationAxis.ANIMATE
        artifact = self._require_artifact()
        version = self.artifact_version
        ticket = self._begin(axis)

        try:
            warning = await self._check_credentials()
            video_url = await self.gateway.animate(
                artifact.url, artifact.prompt, artifact.aspect_ratio
            )
        except asyncio.CancelledError:
            self._settle(axis, ticket, OperationStatus.CANCELLED, message="Cancelled")
            raise
        except MotionTimeoutError as e:
            failure, status, message = e, OperationStatus.TIMED_OUT, str(e)
        except MotionError as e:
            failure, status, message = e, OperationStatus.FAILED, str(e)
        except Exception as e:
            logger.error(f"[{self.id}] Unexpected animation error: {e}", exc_info=True)
            failure, status = e, OperationStatus.FAILED
            message = "Animation failed. Please try a different image."
        else:
            if not self._is_current(axis, ticket):
                return self._superseded(axis, ticket, "superseded by a newer request")
            if self.artifact_version != version:
                return self._superseded(axis, ticket, "image changed while animating")

            self.animation_url = video_url
            return self._settle(
                axis, ticket, OperationStatus.SUCCEEDED, value=video_url, warning=warning
            )

        logger.warning(f"[{self.id}] Animation failed: {failure}")
        if not self._is_current(axis, ticket):
            return self._superseded(axis, ticket, "superseded by a newer request")
        self.animation_url = None
        return self._settle(axis, ticket, status, message=message, notify=True)

    async def _check_credentials(self) -> str | None:
        """Advisory key check; never stops the operation."""
        if self.credentials is None:
            return None
        warning = "This feature requires a selected API key for high-quality video generation."
        try:
            if await self.credentials.has_selected_key():
                return None
            logger.warning(f"[{self.id}] {warning}")
            await self.credentials.open_select_key()
        except Exception as e:
            logger.error(f"[{self.id}] Credential check failed: {e}", exc_info=True)
            return "Could not verify the selected API key; continuing anyway."
        return warning

    # ------------------------------------------------------------------
    # Archive hand-off, save and export
    # ------------------------------------------------------------------

    def open_artifact(self, artifact: GeneratedArtifact) -> None:
        """Make a saved artifact the working artifact."""
        self.current_artifact = artifact
        self.artifact_version += 1
        self.animation_url = None
        logger.info(f"[{self.id}] Opened artifact {artifact.id}")

    def save(self, accounts: AccountStore, store: ArtifactStore) -> GeneratedArtifact:
        """Commit the working artifact to history.

        An artifact that is already saved is updated in place, keeping its
        position in the history.

        Raises:
            AuthenticationRequiredError: If no account is signed in.
            OperationRejectedError: If there is no artifact or a save is pending.
        """
        if accounts.current() is None:
            raise AuthenticationRequiredError("Sign in to save your creations")
        artifact = self._require_artifact()
        if self.save_pending:
            raise OperationRejectedError("Save already in progress")

        self.save_pending = True
        try:
            if not store.replace(artifact):
                store.append(artifact)
        finally:
            self.save_pending = False

        return artifact

    def export(self, fmt: ImageFormat, encoder: ExportEncoder) -> ExportedFile | None:
        """Encode the working artifact as *fmt*; None if it cannot be read.

        Raises:
            OperationRejectedError: If there is no artifact.
        """
        artifact = self._require_artifact()
        return encoder.encode(artifact.url, ImageFormat(fmt), artifact.id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-ready view of the session for the presentation layer."""
        return {
            "id": self.id,
            "prompt": self.prompt,
            "style": self.style,
            "aspectRatio": self.aspect_ratio,
            "currentArtifact": (
                self.current_artifact.to_record() if self.current_artifact else None
            ),
            "animationUrl": self.animation_url,
            "artifactVersion": self.artifact_version,
            "savePending": self.save_pending,
            "operations": {
                axis.value: {"status": state.status.value, "message": state.message}
                for axis, state in self.axes.items()
            },
        }

    def __repr__(self) -> str:
        busy = [axis.value for axis, state in self.axes.items() if state.in_flight]
        return (
            f"StudioSession(id={self.id}, "
            f"artifact={self.current_artifact.id if self.current_artifact else None}, "
            f"busy={busy})"
        )


class SessionRegistry:
    """Independent studio sessions keyed by id.

    A session is dropped once it has been idle for *ttl* seconds, or when
    the registry is full and it is the least recently used.  Sessions with
    an operation or save in flight are never evicted.

    Args:
        gateway: Provider facade shared by every session.
        credentials: Capability check shared by every session.
        ttl: Idle seconds before a session is evicted; None keeps sessions.
        max_sessions: Upper bound on open sessions; None for no bound.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        gateway: GenerationGateway,
        credentials: CredentialCheck | None = None,
        *,
        ttl: float | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._ttl = ttl
        self._max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, StudioSession] = {}
        self._last_used: dict[str, float] = {}

    def create(self, **inputs: str) -> StudioSession:
        """Open a new session, applying any initial form inputs.

        Raises:
            ValidationError: If an initial input is invalid.
        """
        session = StudioSession(gateway=self._gateway, credentials=self._credentials)
        session.update(**inputs)
        self.evict(reserve=1)
        self._sessions[session.id] = session
        self._last_used[session.id] = self._clock()
        logger.info(f"Created session {session.id} ({len(self._sessions)} open)")
        return session

    def get(self, session_id: str) -> StudioSession:
        """Raises KeyError for unknown or evicted ids."""
        self.evict()
        session = self._sessions[session_id]
        self._last_used[session_id] = self._clock()
        return session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_used.pop(session_id, None)

    def evict(self, reserve: int = 0) -> list[str]:
        """Drop expired sessions, then least recently used ones over the cap.

        Args:
            reserve: Slots to free below ``max_sessions`` for new sessions.

        Returns:
            Ids of the evicted sessions.
        """
        now = self._clock()
        idle = sorted(
            (sid for sid, session in self._sessions.items() if not session.has_work_in_flight()),
            key=lambda sid: self._last_used[sid],
        )

        evicted = []
        if self._ttl is not None:
            evicted = [sid for sid in idle if now - self._last_used[sid] > self._ttl]
        if self._max_sessions is not None:
            excess = len(self._sessions) - len(evicted) + reserve - self._max_sessions
            remaining = [sid for sid in idle if sid not in evicted]
            evicted.extend(remaining[: max(excess, 0)])

        for sid in evicted:
            self.discard(sid)
        if evicted:
            logger.info(f"Evicted {len(evicted)} idle session(s), {len(self._sessions)} open")
        return evicted

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
