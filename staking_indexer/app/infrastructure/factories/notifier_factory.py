from __future__ import annotations

from staking_indexer.app.config import settings
from staking_indexer.app.domain.ports.out import StakingNotifier
from staking_indexer.app.infrastructure.notifiers.logging_notifier import LoggingNotifier
from staking_indexer.app.infrastructure.notifiers.webhook_notifier import WebhookNotifier


def staking_notifier_factory(*, webhook_url: str | None = None) -> StakingNotifier:
    """Webhook notifier when a URL is configured, log-only otherwise."""
    url = webhook_url or (str(settings.notifier_webhook_url) if settings.notifier_webhook_url else None)
    if url:
        return WebhookNotifier(url=url)
    return LoggingNotifier(token_decimals=settings.token_decimals)
