"""Result notification capability (disabled by default)."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class ResultNotifier(Protocol):
    """Told about every finalized submission. Must not raise into submit."""

    async def notify(self, identity: str, applicant_name: str, summary) -> None: ...


class NullResultNotifier:
    """Sends nothing. Results are shared manually from the admin view."""

    async def notify(self, identity: str, applicant_name: str, summary) -> None:
        logger.debug(f"Result notification disabled; skipping {identity}")
