"""
PaymentMonitor - polls escrow payments and delivers status webhooks
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx

from x402_escrow.config import DEFAULT_MAX_MONITORED_PAYMENTS, DEFAULT_POLL_INTERVAL_SECONDS
from x402_escrow.exceptions import MonitorCapacityError
from x402_escrow.types import TERMINAL_STATUSES, PaymentStatus, X402Payment

logger = logging.getLogger(__name__)


class PaymentStatusSource(Protocol):
    """Anything that can compute a payment's current status"""

    async def check_payment_status(self, payment_id: str) -> X402Payment:
        ...


@dataclass
class MonitoredPayment:
    """Registry entry for one watched payment"""

    payment_id: str
    callback_url: str
    last_status: PaymentStatus
    poll_interval: float
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class PaymentMonitor:
    """
    Polls payment status at a fixed interval and POSTs a webhook on every
    status transition until the payment is claimed or refunded.

    The registry is owned by the instance. Starting an id that is already
    watched replaces the old entry, cancelling its task first.
    Webhooks are fire-and-forget: one attempt, failures are only logged.
    """

    def __init__(
        self,
        source: PaymentStatusSource,
        http_client: Optional[httpx.AsyncClient] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_monitored: int = DEFAULT_MAX_MONITORED_PAYMENTS,
        webhook_timeout: float = 10.0,
    ) -> None:
        self._source = source
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._poll_interval = poll_interval
        self._max_monitored = max_monitored
        self._webhook_timeout = webhook_timeout
        self._entries: dict[str, MonitoredPayment] = {}
        self._lock = asyncio.Lock()

    @property
    def active_count(self) -> int:
        return len(self._entries)

    def is_monitoring(self, payment_id: str) -> bool:
        return payment_id in self._entries

    def get(self, payment_id: str) -> Optional[MonitoredPayment]:
        return self._entries.get(payment_id)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._webhook_timeout)
        return self._http_client

    async def start(
        self,
        payment_id: str,
        callback_url: str,
        poll_interval: Optional[float] = None,
    ) -> MonitoredPayment:
        """
        Start (or restart) monitoring a payment.

        Raises:
            MonitorCapacityError: If the registry is full and ``payment_id``
                is not already being monitored
        """
        interval = poll_interval or self._poll_interval

        try:
            payment = await self._source.check_payment_status(payment_id)
            initial_status = payment.status
        except Exception as e:
            # Not yet created on-chain
            logger.debug(f"Initial status unavailable for {payment_id}: {e}")
            initial_status = PaymentStatus.PENDING

        entry = MonitoredPayment(
            payment_id=payment_id,
            callback_url=callback_url,
            last_status=initial_status,
            poll_interval=interval,
        )

        async with self._lock:
            existing = self._entries.pop(payment_id, None)
            if existing is not None:
                self._cancel(existing)
                logger.info(f"Restarting monitor: paymentId={payment_id}")
            elif len(self._entries) >= self._max_monitored:
                raise MonitorCapacityError(self._max_monitored)

            entry.task = asyncio.create_task(
                self._poll(entry), name=f"x402-monitor-{payment_id}"
            )
            self._entries[payment_id] = entry

        logger.info(
            f"Monitoring payment: paymentId={payment_id}, status={initial_status.value}, "
            f"interval={interval}s"
        )
        return entry

    async def stop(self, payment_id: str) -> bool:
        """Stop monitoring a payment. Returns False if it was not monitored."""
        async with self._lock:
            entry = self._entries.pop(payment_id, None)
        if entry is None:
            return False
        self._cancel(entry)
        logger.info(f"Stopped monitoring: paymentId={payment_id}")
        return True

    async def stop_all(self) -> None:
        """Stop every monitor and wait for the poll tasks to finish"""
        async with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()

        for entry in entries:
            self._cancel(entry)
        tasks = [e.task for e in entries if e.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Stopped all monitors: count={len(entries)}")

    async def close(self) -> None:
        """Stop all monitors and release the webhook HTTP client"""
        await self.stop_all()
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    @staticmethod
    def _cancel(entry: MonitoredPayment) -> None:
        task = entry.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _remove(self, entry: MonitoredPayment) -> None:
        """Remove ``entry`` unless it has already been stopped or replaced"""
        async with self._lock:
            if self._entries.get(entry.payment_id) is entry:
                del self._entries[entry.payment_id]

    async def _poll(self, entry: MonitoredPayment) -> None:
        payment_id = entry.payment_id
        try:
            while True:
                await asyncio.sleep(entry.poll_interval)

                try:
                    payment = await self._source.check_payment_status(payment_id)
                except Exception as e:
                    logger.warning(f"Error monitoring payment {payment_id}: {e}")
                    continue

                if payment.status != entry.last_status:
                    logger.info(
                        f"Payment status changed: paymentId={payment_id}, "
                        f"{entry.last_status.value} -> {payment.status.value}"
                    )
                    entry.last_status = payment.status
                    await self.send_webhook(entry.callback_url, self.webhook_body(payment))

                if payment.status in TERMINAL_STATUSES:
                    logger.info(
                        f"Monitoring finished: paymentId={payment_id}, "
                        f"status={payment.status.value}"
                    )
                    return
        finally:
            await self._remove(entry)

    @staticmethod
    def webhook_body(payment: X402Payment) -> dict[str, Any]:
        return {
            "paymentId": payment.id,
            "status": payment.status.value,
            "payment": payment.model_dump(by_alias=True, mode="json"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def send_webhook(self, url: str, body: dict[str, Any]) -> bool:
        """POST a webhook once. Returns False on any delivery failure."""
        client = await self._get_client()
        try:
            response = await client.post(url, json=body)
            response.raise_for_status()
            return True
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Failed to send webhook to {url}: {e}")
            return False
