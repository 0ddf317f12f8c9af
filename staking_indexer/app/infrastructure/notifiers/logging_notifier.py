from __future__ import annotations

import logging

from staking_indexer.app.application.services.amounts import format_units_str
from staking_indexer.app.domain.models import StakingNotification
from staking_indexer.app.domain.ports.out import StakingNotifier


logger = logging.getLogger(__name__)


class LoggingNotifier(StakingNotifier):
    """Default notifier: writes the notification to the log, amounts in token units."""

    def __init__(self, *, token_decimals: int = 18) -> None:
        self._token_decimals = token_decimals

    async def notify(self, notification: StakingNotification) -> None:
        amount = format_units_str(notification.amount, self._token_decimals)
        if notification.reward is None:
            logger.info(
                "Notification %s: user=%s pool=%s amount=%s tx=%s block=%s",
                notification.type,
                notification.user_address,
                notification.pool_id,
                amount,
                notification.tx_hash,
                notification.block_number,
            )
            return

        logger.info(
            "Notification %s: user=%s pool=%s amount=%s reward=%s early=%s tx=%s block=%s",
            notification.type,
            notification.user_address,
            notification.pool_id,
            amount,
            format_units_str(notification.reward, self._token_decimals),
            notification.early_unstake,
            notification.tx_hash,
            notification.block_number,
        )
