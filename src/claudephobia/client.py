"""Fetch Claude usage windows from the claude.ai web API.

API Details:
- ``GET /api/organizations`` lists the organizations for the session; the
  first entry's ``uuid`` is used.
- ``GET /api/organizations/{uuid}/usage`` returns one object per window:
  ``{"five_hour": {"utilization": 42.0, "resets_at": "..."}, ...}``
- ``GET /api/organizations/{uuid}/rate_limits`` returns ``rate_limit_tier``.
- Auth: ``Cookie: sessionKey=<token>``

Utilization arrives either as a 0-100 percentage or as a 0-1 fraction
depending on the window, so every value goes through
``normalize_utilization``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from .models import RateLimitWindow, UsageSnapshot
from .windows import WINDOWS

logger = logging.getLogger(__name__)

BASE_URL = "https://claude.ai"
REQUEST_TIMEOUT = 15.0  # seconds, per request
FALLBACK_RESET = timedelta(hours=1)
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)

RE_ISO_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:?\d{2})?$",
    re.IGNORECASE,
)


class UsageAPIError(Exception):
    """Base class for failures talking to the usage API."""

    user_message = "Could not read usage data."


class Unauthorized(UsageAPIError):
    """The session key was rejected."""

    user_message = "Session expired. Update your session key."

    def __init__(self, status_code: int = 401):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class InvalidResponse(UsageAPIError):
    """The API answered, but not with the shape we expect."""

    def __init__(self, detail: str):
        super().__init__(f"Unexpected response: {detail}")
        self.detail = detail


class NetworkFailure(UsageAPIError):
    """Transport-level failure (DNS, TLS, timeout, connection reset...)."""

    def __init__(self, description: str):
        super().__init__(description)
        self.description = description

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return self.description


# ── Payload normalization ────────────────────────────────────────────────────

def normalize_utilization(raw: float) -> float:
    """Map a raw utilization value onto a 0-1 fraction.

    Values above 1 are percentages (``45`` -> ``0.45``); anything else is
    already a fraction. The result is clamped to ``[0, 1]``.
    """
    value = raw / 100.0 if raw > 1 else float(raw)
    return min(1.0, max(0.0, value))


def parse_resets_at(value: Any, now: datetime | None = None) -> datetime:
    """Parse an ISO-8601 reset timestamp, falling back to now + 1 hour."""
    now = now or datetime.now(timezone.utc)
    if isinstance(value, str):
        m = RE_ISO_TIMESTAMP.match(value.strip())
        if m:
            base, frac, tz = m.groups()
            text = base.replace(" ", "T")
            if frac:
                # fromisoformat wants exactly 6 fractional digits on older Pythons
                text += "." + (frac + "000000")[:6]
            if tz and tz.upper() != "Z":
                text += tz if ":" in tz else f"{tz[:3]}:{tz[3:]}"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                parsed = None
            if parsed is not None:
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed.astimezone(timezone.utc)
    logger.debug("Unparseable resets_at %r, assuming one hour from now", value)
    return now + FALLBACK_RESET


def parse_limit(value: Any, now: datetime | None = None) -> Optional[RateLimitWindow]:
    """Parse one window object. Returns None if it is missing or malformed."""
    if not isinstance(value, dict):
        return None
    utilization = value.get("utilization")
    if isinstance(utilization, bool) or not isinstance(utilization, (int, float)):
        return None
    return RateLimitWindow(
        utilization=normalize_utilization(utilization),
        resets_at=parse_resets_at(value.get("resets_at"), now),
    )


def parse_usage_payload(payload: Any, rate_limit_tier: str | None = None,
                        now: datetime | None = None) -> UsageSnapshot:
    """Build a snapshot from the ``/usage`` body. Each window parses on its own."""
    if not isinstance(payload, dict):
        return UsageSnapshot(rate_limit_tier=rate_limit_tier)
    windows = {key: parse_limit(payload.get(key), now) for key in WINDOWS}
    return UsageSnapshot(rate_limit_tier=rate_limit_tier, **windows)


def parse_org_id(payload: Any) -> str:
    """Extract the first organization's uuid from ``/api/organizations``."""
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        org_id = payload[0].get("uuid")
        if isinstance(org_id, str) and org_id:
            return org_id
    raise InvalidResponse("Could not parse organization ID")


# ── Client ───────────────────────────────────────────────────────────────────

class ClaudeUsageClient:
    """Async client for the claude.ai usage endpoints."""

    def __init__(self, session_key: str, base_url: str = BASE_URL,
                 transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float = REQUEST_TIMEOUT):
        self.session_key = session_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Cookie": f"sessionKey={self.session_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            follow_redirects=True,
        )

    async def _get(self, client: httpx.AsyncClient, path: str) -> httpx.Response:
        try:
            return await client.get(path)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"Request timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(str(e) or type(e).__name__) from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    async def fetch_org_id(self, client: httpx.AsyncClient) -> str:
        response = await self._get(client, "/api/organizations")
        if response.status_code in (401, 403):
            raise Unauthorized(response.status_code)
        return parse_org_id(self._json(response))

    async def fetch_usage(self, client: httpx.AsyncClient, org_id: str) -> Any:
        """Return the raw usage body, or None if the endpoint had nothing usable."""
        response = await self._get(client, f"/api/organizations/{org_id}/usage")
        if response.status_code in (401, 403):
            raise Unauthorized(response.status_code)
        if response.status_code != 200:
            logger.warning("Usage endpoint returned HTTP %s", response.status_code)
            return None
        body = self._json(response)
        if not isinstance(body, dict):
            logger.warning("Usage endpoint returned a non-object body")
            return None
        return body

    async def fetch_tier(self, client: httpx.AsyncClient, org_id: str) -> Optional[str]:
        """Best-effort tier lookup; never raises."""
        try:
            response = await self._get(client, f"/api/organizations/{org_id}/rate_limits")
        except UsageAPIError as e:
            logger.debug("Tier lookup failed: %s", e)
            return None
        if response.status_code != 200:
            return None
        body = self._json(response)
        if not isinstance(body, dict):
            return None
        tier = body.get("rate_limit_tier")
        return tier if isinstance(tier, str) else None

    async def fetch(self) -> UsageSnapshot:
        """Fetch a fresh snapshot of every usage window plus the account tier."""
        async with self._new_client() as client:
            org_id = await self.fetch_org_id(client)
            usage, tier = await asyncio.gather(
                self.fetch_usage(client, org_id),
                self.fetch_tier(client, org_id),
                return_exceptions=True,
            )
        if isinstance(usage, BaseException):
            raise usage
        if isinstance(tier, BaseException):
            logger.debug("Tier lookup failed: %s", tier)
            tier = None
        snapshot = parse_usage_payload(usage, tier)
        logger.debug(
            "Fetched usage: %s",
            ", ".join(f"{k}={w.percent}%" for k, w in snapshot.windows().items()) or "no windows",
        )
        return snapshot

    async def test_connection(self) -> str:
        """Validate the session key. Returns the organization id."""
        async with self._new_client() as client:
            return await self.fetch_org_id(client)
