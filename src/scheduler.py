#!/usr/bin/env python3
"""
Periodic evaluation of price alerts.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from config import ALERT_CHECK_INTERVAL, ALERT_CHECK_TIMEOUT, EQ_TOLERANCE
from formatting import format_triggered_alert
from gateway import MarketDataGateway
from models import Alert, Condition
from storage import AlertStore

logger = logging.getLogger(__name__)

# notify(owner, text)
Notifier = Callable[[str, str], Awaitable[None]]


def is_triggered(condition: Condition, price: float, threshold: float) -> bool:
    """
    > and < are strict comparisons.
    = fires when the price is within EQ_TOLERANCE of the threshold.
    """
    if condition is Condition.GT:
        return price > threshold
    if condition is Condition.LT:
        return price < threshold
    if condition is Condition.EQ:
        return abs(price - threshold) <= threshold * EQ_TOLERANCE
    return False


class AlertScheduler:
    """Checks every stored alert on a fixed interval and retires the ones that fire."""

    def __init__(self, store: AlertStore, gateway: MarketDataGateway, notify: Notifier,
                 interval: float = ALERT_CHECK_INTERVAL,
                 call_timeout: float = ALERT_CHECK_TIMEOUT):
        self.store = store
        self.gateway = gateway
        self.notify = notify
        self.interval = interval
        self.call_timeout = call_timeout
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            logger.info("Alert scheduler is already running")
            return
        self._task = asyncio.create_task(self._loop(), name="alert-scheduler")
        logger.info(f"Alert scheduler started, interval {self.interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Alert scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.check_alerts()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error checking alerts: {e}")

    async def check_alerts(self) -> int:
        """Evaluates all alerts once. Returns how many fired."""
        logger.info("Checking alerts...")
        alerts = await self.store.list_alerts()

        fired = 0
        for alert in alerts:
            try:
                if await self._check_alert(alert):
                    fired += 1
            except asyncio.TimeoutError:
                logger.warning(f"Timed out checking alert {alert.id} for {alert.coin}")
            except Exception as e:
                logger.warning(f"Error checking alert {alert.id} for {alert.coin}: {e}")

        logger.info(f"Checked {len(alerts)} alert(s), {fired} triggered")
        return fired

    async def _check_alert(self, alert: Alert) -> bool:
        coin = await asyncio.wait_for(self.gateway.get_coin(alert.coin), timeout=self.call_timeout)
        if coin.price is None:
            logger.warning(f"No current price for {alert.coin}, skipping alert {alert.id}")
            return False

        if not is_triggered(alert.condition, coin.price, alert.price):
            return False

        logger.info(f"🔔 Alert {alert.id} triggered: {alert.describe()} at {coin.price}")
        try:
            await self.notify(alert.owner, format_triggered_alert(alert, coin))
        except Exception as e:
            # Kept for the next pass
            logger.error(f"❌ Error sending alert {alert.id} to {alert.owner}: {e}")
            return False

        await self.store.delete_alert(alert.id)
        return True
