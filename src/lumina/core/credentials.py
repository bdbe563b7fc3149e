"""Capability check consulted before motion generation.

Video generation is billed against a user-selected key.  Before animating,
the session asks a :class:`CredentialCheck` whether a key is selected and,
if not, asks it to prompt the user.  The answer is advisory: animation
proceeds either way.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from .config import LuminaConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialCheck(Protocol):
    async def has_selected_key(self) -> bool: ...

    async def open_select_key(self) -> None: ...


class ConfigCredentialCheck:
    """Credential check backed by the process configuration.

    There is no interactive picker on the server side, so
    :meth:`open_select_key` only records the request in the log.
    """

    def __init__(self, config: LuminaConfig) -> None:
        self._config = config

    async def has_selected_key(self) -> bool:
        return bool(self._config.resolved_api_key())

    async def open_select_key(self) -> None:
        logger.warning(
            "No Gemini API key selected; set LUMINA_GEMINI_API_KEY to enable video generation"
        )
