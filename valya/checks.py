"""
Valya - Built-in Checks.

============================================================
PURPOSE
============================================================
Reusable checks that follow the ValidatorCheck contract:

    async def check(value, params) -> None      # pass
    raise ValidationFailed(message)             # fail

Each factory binds its configuration into the immutable params
record, so one ValidatorCheck can be shared between orchestrators.

CHECKS:
- required     - value present and non-empty
- min_length   - len(value) >= length
- max_length   - len(value) <= length
- matches      - value matches a regular expression
- one_of       - value is one of a fixed set of choices
- remote       - an HTTP endpoint accepts the value

============================================================
"""

import asyncio
import logging
import re
from typing import Any, Iterable, Mapping, Optional

import aiohttp

from .config import get_config
from .exceptions import ValidationFailed
from .models import ValidatorCheck


logger = logging.getLogger(__name__)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return len(value) == 0
    except TypeError:
        return False


# ============================================================
# LOCAL CHECKS
# ============================================================

async def _required(value: Any, params: Mapping[str, Any]) -> None:
    if _is_missing(value):
        raise ValidationFailed(params["message"])


async def _min_length(value: Any, params: Mapping[str, Any]) -> None:
    try:
        size = len(value)
    except TypeError:
        raise ValidationFailed(params["message"]) from None
    if size < params["length"]:
        raise ValidationFailed(params["message"])


async def _max_length(value: Any, params: Mapping[str, Any]) -> None:
    try:
        size = len(value)
    except TypeError:
        raise ValidationFailed(params["message"]) from None
    if size > params["length"]:
        raise ValidationFailed(params["message"])


async def _matches(value: Any, params: Mapping[str, Any]) -> None:
    if not isinstance(value, str):
        raise ValidationFailed(params["message"])
    match = re.fullmatch if params["full"] else re.search
    if match(params["pattern"], value, params["flags"]) is None:
        raise ValidationFailed(params["message"])


async def _one_of(value: Any, params: Mapping[str, Any]) -> None:
    if value not in params["choices"]:
        raise ValidationFailed(params["message"])


def required(message: str = "Field is required") -> ValidatorCheck:
    """Fail on None, blank strings and empty collections."""
    return ValidatorCheck(check=_required, params={"message": message}, name="required")


def min_length(length: int, message: Optional[str] = None) -> ValidatorCheck:
    """Fail when the value is shorter than length."""
    if length < 0:
        raise ValueError("length must be >= 0")
    return ValidatorCheck(
        check=_min_length,
        params={
            "length": length,
            "message": message or f"Must be at least {length} characters",
        },
        name="min_length",
    )


def max_length(length: int, message: Optional[str] = None) -> ValidatorCheck:
    """Fail when the value is longer than length."""
    if length < 0:
        raise ValueError("length must be >= 0")
    return ValidatorCheck(
        check=_max_length,
        params={
            "length": length,
            "message": message or f"Must be at most {length} characters",
        },
        name="max_length",
    )


def matches(
    pattern: str,
    message: str = "Invalid format",
    full: bool = True,
    flags: int = 0,
) -> ValidatorCheck:
    """Fail when the value does not match pattern (whole string unless full=False)."""
    re.compile(pattern, flags)
    return ValidatorCheck(
        check=_matches,
        params={"pattern": pattern, "message": message, "full": full, "flags": flags},
        name="matches",
    )


def one_of(choices: Iterable[Any], message: Optional[str] = None) -> ValidatorCheck:
    """Fail when the value is not one of choices."""
    frozen = tuple(choices)
    return ValidatorCheck(
        check=_one_of,
        params={
            "choices": frozen,
            "message": message or f"Must be one of: {', '.join(map(str, frozen))}",
        },
        name="one_of",
    )


# ============================================================
# REMOTE CHECK
# ============================================================

async def _read_message(response: aiohttp.ClientResponse, message_key: str) -> Optional[str]:
    """Extract a rejection message from a 4xx response body."""
    try:
        payload = await response.json(content_type=None)
    except ValueError:
        text = (await response.text()).strip()
        return text or None
    if isinstance(payload, dict):
        return payload.get(message_key)
    if isinstance(payload, str):
        return payload or None
    return None


async def _remote(value: Any, params: Mapping[str, Any]) -> None:
    url = params["url"]
    timeout = aiohttp.ClientTimeout(
        total=params["timeout"] or get_config().remote_timeout_seconds
    )

    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                params["method"],
                url,
                json={params["field"]: value},
                headers=dict(params["headers"]),
            ) as response:
                if 200 <= response.status < 300:
                    return
                if 400 <= response.status < 500:
                    message = await _read_message(response, params["message_key"])
                    raise ValidationFailed(message or params["message"])
                logger.warning(f"Remote check {url} answered HTTP {response.status}")
                raise ValidationFailed(params["unavailable_message"])

    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Remote check {url} unreachable: {type(e).__name__}: {e}")
        raise ValidationFailed(params["unavailable_message"]) from e


def remote(
    url: str,
    message: str = "Value was rejected",
    unavailable_message: str = "Validation service unavailable",
    field: str = "value",
    message_key: str = "message",
    method: str = "POST",
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> ValidatorCheck:
    """
    Ask an HTTP endpoint whether the value is acceptable.

    The value is sent as a JSON body {field: value}.
    - 2xx: pass
    - 4xx: fail with the body's message_key (or message)
    - 5xx, timeouts, connection errors: fail with unavailable_message

    Args:
        url: Endpoint URL
        message: Fallback rejection message
        unavailable_message: Message when the service cannot answer
        field: JSON key the value is sent under
        message_key: JSON key holding the rejection message
        method: HTTP method
        headers: Extra request headers
        timeout: Total request timeout in seconds (default from settings)
    """
    if not url:
        raise ValueError("url is required")
    return ValidatorCheck(
        check=_remote,
        params={
            "url": url,
            "message": message,
            "unavailable_message": unavailable_message,
            "field": field,
            "message_key": message_key,
            "method": method.upper(),
            "headers": tuple(sorted((headers or {}).items())),
            "timeout": timeout,
        },
        name="remote",
    )
