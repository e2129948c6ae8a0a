"""Per-project authorization against the access lists."""
from __future__ import annotations

import structlog

from artifact_service.domain.enums import Capability
from artifact_service.repositories.access_lists import TokenListCache

logger = structlog.get_logger(__name__)


class AuthorizationGate:
    """Pure allow/deny decision over the current access-list state."""

    def __init__(self, token_lists: TokenListCache):
        self._token_lists = token_lists

    def check(self, project: str, token: str | None, capability: Capability) -> bool:
        """Return whether ``token`` holds ``capability`` on ``project``.

        An empty token is denied without reading the list. Lookup errors
        (``ProjectNotFoundError``, ``ListUnreadableError``) propagate.
        """
        if not token:
            return False
        allowed = token in self._token_lists.tokens(project, capability)
        if not allowed:
            logger.debug("access denied", project=project, capability=capability.value)
        return allowed
