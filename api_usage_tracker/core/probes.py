"""
Per-backend usage probes.

Each probe assumes one gateway's billing schema, fetches usage from the
endpoints that schema exposes and converts the native units to dollars.

Probes return None when the backend does not speak their schema. Transport
failures and malformed bodies are converted to None at the probe boundary so
the detector can move on to the next candidate.
"""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .http_client import TransportError, UsageHttpClient
from .models import BackendType, UsageRecord

lib_logger = logging.getLogger("api_usage_tracker")

ProbeResult = Optional[UsageRecord]
Probe = Callable[[UsageHttpClient, str, date], Awaitable[ProbeResult]]

# NewAPI reports usage in cents; zero and huge limits both mean "no limit"
NEW_API_SUBSCRIPTION_PATH = "/v1/dashboard/billing/subscription"
NEW_API_USAGE_PATH = "/v1/dashboard/billing/usage"
NEW_API_CENTS_PER_DOLLAR = 100
NEW_API_UNLIMITED_THRESHOLD_USD = 1_000_000

# 1 quota unit = $0.000002 on this path
ONE_API_SELF_PATH = "/api/user/self"
ONE_API_UNITS_PER_DOLLAR = 500_000

OPENROUTER_HOST_MARKER = "openrouter.ai"
OPENROUTER_KEY_URL = "https://openrouter.ai/api/v1/auth/key"


class SchemaMismatch(ValueError):
    """Response parsed as JSON but lacks the fields a probe expects."""


def _require_object(body: Any, what: str) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise SchemaMismatch(f"{what} is not a JSON object")
    return body


def _amount(obj: Dict[str, Any], key: str, required: bool = False) -> float:
    """Read a numeric field, treating null as 0.

    Raises:
        SchemaMismatch: If the field is required and absent, or not a number
    """
    if key not in obj:
        if required:
            raise SchemaMismatch(f"missing '{key}'")
        return 0.0
    value = obj[key]
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaMismatch(f"'{key}' is not a number: {value!r}")
    return float(value)


def _data_object(body: Any) -> Dict[str, Any]:
    data = _require_object(body, "response").get("data")
    if not isinstance(data, dict):
        raise SchemaMismatch("missing 'data' object")
    return data


def usage_windows(today: date) -> Tuple[Tuple[str, str], ...]:
    """Date ranges for the today, month and all-time rollups.

    All-time is approximated as first-of-year through today.
    """
    end = today.isoformat()
    month_start = today.replace(day=1).isoformat()
    year_start = today.replace(month=1, day=1).isoformat()
    return ((end, end), (month_start, end), (year_start, end))


async def _fetch_new_api_usage(
    client: UsageHttpClient, endpoint: str, start_date: str, end_date: str
) -> float:
    body = await client.get_json(
        f"{endpoint}{NEW_API_USAGE_PATH}",
        params={"start_date": start_date, "end_date": end_date},
    )
    usage = _require_object(body, "usage response")
    return _amount(usage, "total_usage", required=True) / NEW_API_CENTS_PER_DOLLAR


async def probe_new_api(
    client: UsageHttpClient, endpoint: str, today: date
) -> ProbeResult:
    """Probe the NewAPI billing dashboard endpoints.

    Reads the hard limit from the subscription endpoint, then fetches the
    three usage windows concurrently and waits for all of them. A failure in
    any window disqualifies the whole probe.
    """
    try:
        subscription = _require_object(
            await client.get_json(f"{endpoint}{NEW_API_SUBSCRIPTION_PATH}"),
            "subscription response",
        )
        if subscription.get("error"):
            raise SchemaMismatch("subscription response carries an error")
        hard_limit_usd = _amount(subscription, "hard_limit_usd", required=True)
    except (TransportError, SchemaMismatch) as e:
        lib_logger.debug(f"NewAPI subscription probe failed: {e}")
        return None

    results = await asyncio.gather(
        *(
            _fetch_new_api_usage(client, endpoint, start, end)
            for start, end in usage_windows(today)
        ),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, (TransportError, SchemaMismatch)):
            lib_logger.debug(f"NewAPI usage probe failed: {result}")
            return None
        if isinstance(result, BaseException):
            raise result

    today_used, month_used, total_used = results
    if hard_limit_usd <= 0 or hard_limit_usd >= NEW_API_UNLIMITED_THRESHOLD_USD:
        total = 0.0
        remaining = 0.0
    else:
        total = hard_limit_usd
        remaining = hard_limit_usd - total_used

    return UsageRecord(
        today_used=today_used,
        month_used=month_used,
        total_used=total_used,
        total=total,
        remaining=remaining,
        backend_type=BackendType.NEW_API
    )


async def probe_one_api(
    client: UsageHttpClient, endpoint: str, today: date
) -> ProbeResult:
    """Probe the OneAPI self-info endpoint.

    quota is the remaining balance and used_quota the spend so far; the
    total is derived from both. No daily or monthly breakdown exists.
    """
    try:
        data = _data_object(await client.get_json(f"{endpoint}{ONE_API_SELF_PATH}"))
        remaining = _amount(data, "quota") / ONE_API_UNITS_PER_DOLLAR
        total_used = _amount(data, "used_quota") / ONE_API_UNITS_PER_DOLLAR
    except (TransportError, SchemaMismatch) as e:
        lib_logger.debug(f"OneAPI probe failed: {e}")
        return None

    return UsageRecord(
        today_used=0.0,
        month_used=0.0,
        total_used=total_used,
        total=remaining + total_used,
        remaining=remaining,
        backend_type=BackendType.ONE_API
    )


async def probe_openrouter(
    client: UsageHttpClient, endpoint: str, today: date
) -> ProbeResult:
    """Probe the OpenRouter key endpoint.

    Only runs for OpenRouter endpoints; the key info always lives on the
    public host regardless of the configured base URL.
    """
    if OPENROUTER_HOST_MARKER not in endpoint:
        return None

    try:
        data = _data_object(await client.get_json(OPENROUTER_KEY_URL))
        usage = _amount(data, "usage")
        limit = _amount(data, "limit")
    except (TransportError, SchemaMismatch) as e:
        lib_logger.debug(f"OpenRouter probe failed: {e}")
        return None

    return UsageRecord(
        today_used=0.0,
        month_used=0.0,
        total_used=usage,
        total=limit,
        remaining=limit - usage if limit > 0 else 0.0,
        backend_type=BackendType.OPENROUTER
    )


# Tried in this order; the first matching probe wins.
PROBES: Tuple[Tuple[BackendType, Probe], ...] = (
    (BackendType.NEW_API, probe_new_api),
    (BackendType.ONE_API, probe_one_api),
    (BackendType.OPENROUTER, probe_openrouter),
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()
