"""Exception hierarchy for Lumina Studio.

Every error carries a message intended to be displayed directly to the
user.  Operation-local failures are caught by the session state machine and
reported on an :class:`~lumina.core.session.OperationOutcome`; only
precondition violations and authentication problems propagate to callers.

=============================  ==========================================
Error                          Handling
=============================  ==========================================
``EnhancementError``           swallowed, original prompt kept
``GenerationError``            surfaced, working artifact unchanged
``UpscaleError``               swallowed, prior image kept
``MotionError``                surfaced, animation reference cleared
``MotionTimeoutError``         as ``MotionError``
``ExportError``                encoder produces no file
``PersistenceError``           local storage could not be written
``ValidationError``            user input refused, nothing changed
``OperationRejectedError``     precondition failed, nothing started
``AuthenticationRequiredError``  save attempted without an account
=============================  ==========================================
"""


class LuminaError(Exception):
    """Base class for all Lumina errors.

    The message is intended to be displayed directly to the user.
    """

    pass


class EnhancementError(LuminaError):
    """Prompt enhancement failed."""


class GenerationError(LuminaError):
    """The provider returned no image payload."""


class UpscaleError(LuminaError):
    """The upscale request failed."""


class MotionError(LuminaError):
    """The motion job produced no video."""


class MotionTimeoutError(MotionError):
    """The motion job did not complete before its deadline."""


class ExportError(LuminaError):
    """The image could not be decoded or re-encoded."""


class PersistenceError(LuminaError):
    """Local storage could not be read or written."""


class ValidationError(LuminaError):
    """User input failed validation."""


class OperationRejectedError(LuminaError):
    """An operation's precondition does not hold."""


class AuthenticationRequiredError(LuminaError):
    """An action needs an active account."""
