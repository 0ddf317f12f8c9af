from __future__ import annotations

import logging

import aiohttp

from staking_indexer.app.domain.models import StakingNotification
from staking_indexer.app.domain.ports.out import StakingNotifier


logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 10.0


class WebhookNotifier(StakingNotifier):
    """
    POSTs each notification as JSON to a webhook (e.g. the WebSocket gateway).

    Fire-and-forget from the indexer's point of view: any delivery error is
    raised to the caller, which logs it and moves on.
    """

    def __init__(self, *, url: str, timeout: float = _DEFAULT_TIMEOUT_SECONDS) -> None:
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def notify(self, notification: StakingNotification) -> None:
        session = self._get_session()
        async with session.post(self._url, json=notification.to_dict()) as resp:
            if resp.status >= 400:
                body = await resp.text()
                raise RuntimeError(f"Webhook responded {resp.status}: {body[:200]}")
        logger.debug("Delivered %s notification for tx=%s", notification.type, notification.tx_hash)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session
