"""Push delivery over the Expo-compatible HTTP push gateway.

``PushGateway`` is the long-lived handle returned by ``init_push_gateway``: it owns the
HTTP client and the batching/pacing configuration. ``PushDeliveryClient`` binds a gateway
to a database session so delivery outcomes can deactivate tokens.

Delivery never raises to callers. Every outcome is counted in a ``DeliveryReport``:
``ok`` tickets are delivered, unregistered/invalid tokens are permanent failures (the token
is deactivated) and anything else, including an unreachable gateway, is transient.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from fastapi import Request

from app.core.config import Settings
from app.core.exceptions import PushGatewayError

from .common import chunked, unique_in_order
from .tokens import TokenRegistry, is_valid_push_token, mask_token

logger = logging.getLogger("app.notifications.push")

MAX_BATCH_SIZE = 100
PERMANENT_ERRORS = frozenset({"DeviceNotRegistered"})
_PERMANENT_MESSAGE = re.compile(r"not a (valid|registered)", re.IGNORECASE)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class DeliveryReport:
    """Aggregate outcome of one or more push sends."""

    delivered: int = 0
    skipped: int = 0
    permanent_failures: int = 0
    transient_failures: int = 0
    batches: int = 0

    @property
    def attempted(self) -> int:
        return self.delivered + self.permanent_failures + self.transient_failures

    @property
    def succeeded(self) -> bool:
        """True when at least one device accepted the message."""
        return self.delivered > 0

    def merge(self, other: "DeliveryReport") -> "DeliveryReport":
        self.delivered += other.delivered
        self.skipped += other.skipped
        self.permanent_failures += other.permanent_failures
        self.transient_failures += other.transient_failures
        self.batches += other.batches
        return self

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class PushTicket:
    """Per-message gateway verdict."""

    status: str
    message: Optional[str] = None
    error: Optional[str] = None
    ticket_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PushTicket":
        if not isinstance(payload, dict):
            return cls(status="error", message="Malformed ticket")
        details = payload.get("details") or {}
        return cls(
            status=str(payload.get("status", "error")),
            message=payload.get("message"),
            error=details.get("error") if isinstance(details, dict) else None,
            ticket_id=payload.get("id"),
        )

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def permanent(self) -> bool:
        if self.ok:
            return False
        if self.error in PERMANENT_ERRORS:
            return True
        return bool(self.message and _PERMANENT_MESSAGE.search(self.message))


class PushGateway:
    """HTTP client for the push gateway with fixed-size batching and inter-batch pacing."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str,
        batch_size: int = MAX_BATCH_SIZE,
        batch_delay: float = 0.1,
        android_channel_id: str = "default",
        sleep: Optional[Sleep] = None,
    ) -> None:
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self.client = client
        self.url = url
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.android_channel_id = android_channel_id
        self._sleep: Sleep = sleep or asyncio.sleep

    def build_message(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
            "priority": "high",
            "channelId": self.android_channel_id,
            "badge": 1,
        }

    async def pause(self) -> None:
        await self._sleep(self.batch_delay)

    async def _post(self, payload: Any) -> List[PushTicket]:
        try:
            response = await self.client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise PushGatewayError(
                f"Push gateway responded with {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise PushGatewayError(f"Push gateway unreachable: {exc}") from exc
        except ValueError as exc:
            raise PushGatewayError("Push gateway returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise PushGatewayError("Push gateway returned an unexpected body")
        if body.get("errors") and not body.get("data"):
            raise PushGatewayError(f"Push gateway rejected the request: {body['errors']}")
        data = body.get("data")
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise PushGatewayError("Push gateway response has no tickets")
        return [PushTicket.from_payload(item) for item in data]

    async def send_one(self, message: Dict[str, Any]) -> PushTicket:
        tickets = await self._post(message)
        if not tickets:
            raise PushGatewayError("Push gateway returned no ticket")
        return tickets[0]

    async def send_batch(self, messages: Sequence[Dict[str, Any]]) -> List[PushTicket]:
        return await self._post(list(messages))

    async def aclose(self) -> None:
        await self.client.aclose()


def init_push_gateway(
    settings: Settings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[Sleep] = None,
) -> PushGateway:
    """Build the ready-to-use gateway handle; call ``aclose`` on shutdown."""
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": "application/json",
    }
    if settings.push_access_token:
        headers["Authorization"] = f"Bearer {settings.push_access_token}"
    client = httpx.AsyncClient(
        headers=headers,
        timeout=settings.push_timeout_seconds,
        transport=transport,
    )
    logger.info("Push gateway initialised for %s", settings.push_gateway_url)
    return PushGateway(
        client,
        url=settings.push_gateway_url,
        batch_size=settings.push_batch_size,
        batch_delay=settings.push_batch_delay_seconds,
        android_channel_id=settings.push_android_channel_id,
        sleep=sleep,
    )


def get_push_gateway(request: Request) -> Optional[PushGateway]:
    """FastAPI dependency returning the gateway created in the app lifespan."""
    return getattr(request.app.state, "push_gateway", None)


class PushDeliveryClient:
    """Fan a title/body out to devices and keep the token registry honest."""

    def __init__(self, gateway: PushGateway, registry: TokenRegistry) -> None:
        self.gateway = gateway
        self.registry = registry

    async def deliver_to_user(
        self,
        user_id: int,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> DeliveryReport:
        """Send to every active device of one user; a user without devices is a no-op."""
        report = DeliveryReport()
        tokens = self.registry.active_tokens(user_id)
        legacy = False
        if not tokens:
            legacy_token = self.registry.legacy_token(user_id)
            if legacy_token:
                tokens = [legacy_token]
                legacy = True
        if not tokens:
            logger.debug("No push tokens for user %s", user_id)
            return report

        valid: List[str] = []
        for token in unique_in_order(tokens):
            if is_valid_push_token(token):
                valid.append(token)
                continue
            report.skipped += 1
            logger.warning(
                "Skipping malformed push token %s for user %s", mask_token(token), user_id
            )
            self._discard(user_id, token, legacy)

        if not valid:
            return report

        messages = [self.gateway.build_message(t, title, body, data) for t in valid]
        results = await asyncio.gather(
            *(self.gateway.send_one(message) for message in messages),
            return_exceptions=True,
        )
        for token, result in zip(valid, results):
            self._classify(user_id, token, result, report, legacy=legacy)

        logger.info(
            "Push fan-out for user %s: delivered=%s permanent=%s transient=%s skipped=%s",
            user_id,
            report.delivered,
            report.permanent_failures,
            report.transient_failures,
            report.skipped,
        )
        return report

    async def deliver_to_many(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> DeliveryReport:
        """Send to a precomputed token list in sequential, paced batches."""
        report = DeliveryReport()
        for index, batch in enumerate(chunked(list(tokens), self.gateway.batch_size)):
            if index:
                await self.gateway.pause()
            report.batches += 1
            messages = [self.gateway.build_message(t, title, body, data) for t in batch]
            try:
                tickets = await self.gateway.send_batch(messages)
            except PushGatewayError as exc:
                report.transient_failures += len(batch)
                logger.warning(
                    "Push batch %s (%s tokens) failed: %s", index + 1, len(batch), exc.message
                )
                continue
            for position, token in enumerate(batch):
                ticket: Any
                if position < len(tickets):
                    ticket = tickets[position]
                else:
                    ticket = PushGatewayError("Missing ticket in batch response")
                self._classify(None, token, ticket, report)

        logger.info(
            "Bulk push: tokens=%s batches=%s delivered=%s permanent=%s transient=%s",
            len(tokens),
            report.batches,
            report.delivered,
            report.permanent_failures,
            report.transient_failures,
        )
        return report

    def _classify(
        self,
        user_id: Optional[int],
        token: str,
        outcome: Any,
        report: DeliveryReport,
        *,
        legacy: bool = False,
    ) -> None:
        if isinstance(outcome, BaseException):
            report.transient_failures += 1
            logger.warning("Push to %s failed transiently: %s", mask_token(token), outcome)
            return
        if outcome.ok:
            report.delivered += 1
            return
        if outcome.permanent:
            report.permanent_failures += 1
            logger.info(
                "Push token %s rejected permanently (%s)",
                mask_token(token),
                outcome.error or outcome.message,
            )
            self._discard(user_id, token, legacy)
            return
        report.transient_failures += 1
        logger.warning(
            "Push to %s failed: %s %s", mask_token(token), outcome.error, outcome.message
        )

    def _discard(self, user_id: Optional[int], token: str, legacy: bool) -> None:
        try:
            if legacy and user_id is not None:
                self.registry.clear_legacy_token(user_id)
            else:
                self.registry.deactivate(token)
        except Exception as exc:
            # Token bookkeeping must not turn a delivery outcome into an error.
            logger.error("Could not retire push token %s: %s", mask_token(token), exc)
            self.registry.db.rollback()


__all__ = [
    "DeliveryReport",
    "MAX_BATCH_SIZE",
    "PERMANENT_ERRORS",
    "PushDeliveryClient",
    "PushGateway",
    "PushTicket",
    "get_push_gateway",
    "init_push_gateway",
]
