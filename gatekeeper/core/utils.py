import re
from datetime import timedelta
from typing import Any

from fastapi import Request
from pydantic import TypeAdapter

# [-][d.]hh:mm[:ss[.fffffff]]
_TIMESPAN_PATTERN = re.compile(
    r"^(?P<sign>-)?"
    r"(?:(?P<days>\d+)\.)?"
    r"(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)

_SECONDS_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")

_timedelta_adapter = TypeAdapter(timedelta)

BEARER_PREFIX = "bearer "


def parse_duration(value: Any) -> timedelta:
    """
    Parse a configured duration into a timedelta

    Accepts the "[d.]hh:mm[:ss[.fffffff]]" form (e.g. "01:00:00" for one hour),
    plain seconds ("90", 90, 1.5) and ISO-8601 durations ("PT1H").

    Args:
        value: Raw duration value

    Returns:
        Parsed duration

    Raises:
        ValueError: If the value is not a recognizable duration
    """
    if isinstance(value, timedelta):
        return value

    if isinstance(value, str):
        match = _TIMESPAN_PATTERN.match(value.strip())

        if match:
            hours = int(match["hours"])
            minutes = int(match["minutes"])
            seconds = int(match["seconds"] or 0)

            if hours > 23 or minutes > 59 or seconds > 59:
                raise ValueError(f"Duration component out of range: {value!r}")

            fraction = match["fraction"] or "0"
            duration = timedelta(
                days=int(match["days"] or 0),
                hours=hours,
                minutes=minutes,
                seconds=seconds,
                microseconds=round(int(fraction) * 10 ** (6 - len(fraction))),
            )

            return -duration if match["sign"] else duration

        if _SECONDS_PATTERN.match(value.strip()):
            return timedelta(seconds=float(value))

    return _timedelta_adapter.validate_python(value)


def split_csv(value: Any) -> list[str]:
    """
    Split a comma-separated string into a list of non-empty, stripped items.
    Lists are passed through unchanged.
    """
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]

    return [item.strip() for item in str(value).split(",") if item.strip()]


def get_client_ip(request: Request, trust_forwarded_headers: bool = False) -> str | None:
    """
    Get client IP address from the connection or, when the service runs
    behind a trusted proxy, from the forwarding headers

    Args:
        request: FastAPI request object
        trust_forwarded_headers: Whether X-Forwarded-For / X-Real-IP may be used

    Returns:
        Client IP address, or None when it cannot be determined
    """
    if trust_forwarded_headers:
        forwarded_for = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        if forwarded_for:
            return forwarded_for

        real_ip = request.headers.get("X-Real-IP", "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host

    return None


def extract_bearer_token(authorization: str | None) -> str | None:
    """
    Extract the credential from an "Authorization: Bearer <token>" header value.

    The scheme is matched case-insensitively and must be followed by exactly
    one space. Anything else is treated as no credential.

    Args:
        authorization: Raw header value

    Returns:
        The token, or None when the header is absent or malformed
    """
    if not authorization or len(authorization) <= len(BEARER_PREFIX):
        return None

    if authorization[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        return None

    token = authorization[len(BEARER_PREFIX) :]

    if token[0].isspace():
        return None

    return token.strip() or None
