"""
Backend auto-detection.

Runs the probes one at a time in priority order and returns the first
record a probe produces. Never raises: every failure path resolves to a
fully populated UsageRecord carrying an error.
"""

import asyncio
import logging
from datetime import date
from enum import Enum, auto
from typing import List, Optional

import httpx

from .http_client import TransportError, UsageHttpClient
from .models import ERROR_NOT_CONFIGURED, ERROR_UNDETECTED, BackendType, UsageRecord
from .probes import PROBES, ProbeResult, utc_today

lib_logger = logging.getLogger("api_usage_tracker")


class DetectionState(Enum):
    """Lifecycle of a single detection session."""
    NOT_STARTED = auto()
    PROBING_NEW_API = auto()
    PROBING_ONE_API = auto()
    PROBING_OPENROUTER = auto()
    RESOLVED = auto()
    EXHAUSTED = auto()


_PROBING_STATES = {
    BackendType.NEW_API: DetectionState.PROBING_NEW_API,
    BackendType.ONE_API: DetectionState.PROBING_ONE_API,
    BackendType.OPENROUTER: DetectionState.PROBING_OPENROUTER,
}


class DetectionSession:
    """One detection attempt for a fixed pair of credentials.

    Sessions are single use. Credentials are read once at construction and
    nothing is cached between sessions.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        today: Optional[date] = None,
    ):
        self.api_key = api_key or ""
        self.endpoint = (endpoint or "").rstrip("/")
        self.transport = transport
        self.today = today or utc_today()
        self.state = DetectionState.NOT_STARTED
        self.attempted: List[BackendType] = []

    async def run(self) -> UsageRecord:
        if self.state != DetectionState.NOT_STARTED:
            raise RuntimeError("detection session already used")

        if not self.api_key or not self.endpoint:
            self.state = DetectionState.EXHAUSTED
            return UsageRecord.unknown(ERROR_NOT_CONFIGURED)

        try:
            client = UsageHttpClient(self.api_key, transport=self.transport)
        except TransportError as e:
            self.state = DetectionState.EXHAUSTED
            lib_logger.warning(f"Cannot query {self.endpoint}: {e}")
            return UsageRecord.unknown(ERROR_UNDETECTED)

        async with client:
            for backend_type, probe in PROBES:
                self.state = _PROBING_STATES[backend_type]
                self.attempted.append(backend_type)
                try:
                    result: ProbeResult = await probe(client, self.endpoint, self.today)
                except Exception as e:
                    lib_logger.warning(
                        f"{backend_type.value} probe raised unexpectedly for {self.endpoint}: {e}",
                        exc_info=True,
                    )
                    result = None

                if result is not None and result.error is None:
                    self.state = DetectionState.RESOLVED
                    lib_logger.info(f"Detected {backend_type.value} backend at {self.endpoint}")
                    return result

        self.state = DetectionState.EXHAUSTED
        lib_logger.info(f"No known billing schema matched {self.endpoint}")
        return UsageRecord.unknown(ERROR_UNDETECTED)


async def fetch_usage(
    api_key: str,
    endpoint: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    today: Optional[date] = None,
) -> UsageRecord:
    """Detect the gateway behind endpoint and return its normalized usage.

    Args:
        api_key: Bearer token for the gateway (may be empty)
        endpoint: Gateway base URL (may be empty)
        transport: Optional httpx transport override
        today: Reference date for the usage windows (defaults to UTC today)

    Returns:
        The first probe's record, or the unknown sentinel with error set
    """
    session = DetectionSession(api_key, endpoint, transport=transport, today=today)
    return await session.run()


def fetch_usage_sync(
    api_key: str,
    endpoint: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    today: Optional[date] = None,
) -> UsageRecord:
    """Blocking wrapper around fetch_usage for synchronous callers.

    Uses asyncio.run, so it must not be called while an event loop is
    running; async callers await fetch_usage directly.
    """
    return asyncio.run(fetch_usage(api_key, endpoint, transport=transport, today=today))
