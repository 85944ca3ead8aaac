from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional, Iterable
import asyncio
import logging
import math
import re
import time

import httpx

logger = logging.getLogger(__name__)

_FRACTION_RE = re.compile(r"(\.\d+)")


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware UTC.

    If the datetime is naive (no tzinfo), assume it is UTC and attach tzinfo=UTC.
    If it is aware, convert to UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def serialize_dt(dt: datetime) -> str:
    """Serialize datetime as ISO-8601 with trailing 'Z' for UTC."""
    return to_utc(dt).isoformat().replace("+00:00", "Z")


def parse_dt_iso(s: Optional[str]) -> Optional[datetime]:
    """Robust ISO datetime parser that preserves timezone when present.

    Supports:
    - ...Z (UTC)
    - ...+HH:MM or ...+HHMM (inserts colon)
    - date-only (YYYY-MM-DD) -> midnight
    Returns None if parsing fails.
    """
    if not s:
        return None
    t = s.strip()
    if not t:
        return None
    try:
        # Replace trailing Z with +00:00
        if t.endswith("Z"):
            t = t[:-1] + "+00:00"
        # Firestore emits nanoseconds; fromisoformat accepts at most micro
        t = _FRACTION_RE.sub(lambda m: "." + m.group(1)[1:7].ljust(6, "0"), t)
        # Insert colon into timezone if missing (e.g., +0200 -> +02:00)
        if len(t) >= 11 and (t[-5] in ["+", "-"] and t[-3] != ":"):
            t = t[:-2] + ":" + t[-2:]
        return datetime.fromisoformat(t)
    except ValueError:
        for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(s.strip(), fmt)
            except ValueError:
                continue
    return None


def parse_date_like(value: Any) -> Optional[datetime]:
    """Best-effort conversion of a stored date value into a datetime.

    Accepts datetimes, dates, ISO strings, epoch numbers (seconds, or
    milliseconds when large) and Firestore-style ``{"seconds", "nanos"}``
    timestamp maps. Anything else yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(value):
                return None
            seconds = value / 1000.0 if abs(value) > 1e11 else float(value)
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            nanos = value.get("nanos", value.get("nanoseconds", value.get("_nanoseconds"))) or 0
            try:
                return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
            except (OverflowError, OSError, ValueError, TypeError):
                return None
        return None
    if isinstance(value, str):
        return parse_dt_iso(value)
    return None


def coerce_float(value: Any, default: float = 0.0) -> float:
    """Parse a non-negative float; anything unusable becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return default
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    if not math.isfinite(result) or result < 0:
        return default
    return result


def coerce_int(value: Any, default: int = 0) -> int:
    """Parse a non-negative integer, truncating fractional input."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value if value >= 0 else default
    if isinstance(value, str):
        try:
            result = int(value.strip())
            return result if result >= 0 else default
        except ValueError:
            pass
    number = coerce_float(value, default=-1.0)
    if number < 0:
        return default
    return int(number)


def coerce_str(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, str):
        return value
    return str(value)


def round_half_up(value: float) -> int:
    # round() is banker's rounding; percentages use half-up
    return int(math.floor(value + 0.5))


def request_with_retries(
    method: str,
    url: str,
    *,
    params: Optional[Any] = None,
    headers: Optional[dict] = None,
    json: Optional[Any] = None,
    content: Optional[bytes] = None,
    timeout: float = 20.0,
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    status_forcelist: Iterable[int] = (500, 502, 503, 504),
    client: Optional[httpx.Client] = None,
) -> httpx.Response:
    """HTTP request with simple retries for transient errors."""
    attempt = 0
    last_exc: Optional[Exception] = None
    while attempt < max_attempts:
        attempt += 1
        try:
            if client is None:
                with httpx.Client(timeout=timeout) as c:
                    resp = c.request(
                        method, url, params=params, headers=headers, json=json, content=content
                    )
            else:
                resp = client.request(
                    method, url, params=params, headers=headers, json=json, content=content
                )
            if resp.status_code in status_forcelist and attempt < max_attempts:
                logger.debug("%s %s -> %s, retrying", method, url, resp.status_code)
                time.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError:
            raise
        except httpx.HTTPError as e:
            last_exc = e
            if attempt < max_attempts:
                logger.debug("%s %s failed (%s), retrying", method, url, e)
                time.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            raise
    assert last_exc is not None
    raise last_exc


async def async_request_with_retries(
    method: str,
    url: str,
    *,
    params: Optional[Any] = None,
    headers: Optional[dict] = None,
    json: Optional[Any] = None,
    content: Optional[bytes] = None,
    timeout: float = 20.0,
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    status_forcelist: Iterable[int] = (500, 502, 503, 504),
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    """Async HTTP request with simple retries for transient errors."""
    attempt = 0
    last_exc: Optional[Exception] = None
    while attempt < max_attempts:
        attempt += 1
        try:
            if client is None:
                async with httpx.AsyncClient(timeout=timeout) as ac:
                    resp = await ac.request(
                        method, url, params=params, headers=headers, json=json, content=content
                    )
            else:
                resp = await client.request(
                    method, url, params=params, headers=headers, json=json, content=content
                )
            if resp.status_code in status_forcelist and attempt < max_attempts:
                logger.debug("%s %s -> %s, retrying", method, url, resp.status_code)
                await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError:
            raise
        except httpx.HTTPError as e:
            last_exc = e
            if attempt < max_attempts:
                logger.debug("%s %s failed (%s), retrying", method, url, e)
                await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))
                continue
            raise
    assert last_exc is not None
    raise last_exc


def get_with_retries(url: str, **kwargs: Any) -> httpx.Response:
    """HTTP GET with simple retries for transient errors."""
    return request_with_retries("GET", url, **kwargs)


async def async_get_with_retries(url: str, **kwargs: Any) -> httpx.Response:
    """Async HTTP GET with simple retries for transient errors."""
    return await async_request_with_retries("GET", url, **kwargs)
