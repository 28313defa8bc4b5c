from __future__ import annotations

import logging

from .errors import PlatformAuthError, PlatformError
from .interfaces import VideoPlatform

logger = logging.getLogger(__name__)


class CheckPlatformAuthUseCase:
    def __init__(self, *, platform: VideoPlatform) -> None:
        self._platform = platform

    def execute(self) -> bool:
        if not self._platform.credentials_configured:
            return False
        try:
            self._platform.refresh_access_token()
        except (PlatformAuthError, PlatformError) as exc:
            logger.warning("YouTube credential check failed: %s", exc)
            return False
        return True
