from __future__ import annotations

from typing import Optional

from analytics.ranges import RangeWindow
from api.deps.services import Services
from api.errors import bad_request


def require(value: Optional[str], name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise bad_request(f"Missing {name}")
    return value


def parse_range(value: Optional[str]) -> RangeWindow:
    try:
        return RangeWindow.parse(value)
    except ValueError as e:
        raise bad_request(str(e)) from e


def parse_cred_idx(services: Services, value: Optional[str]) -> Optional[int]:
    """Empty means "every credential set"; anything else must name a configured set."""
    if value is None or value.strip() == "":
        return None
    try:
        idx = int(value)
    except ValueError as e:
        raise bad_request("Invalid credIdx") from e
    if idx < 0 or idx >= len(services.exchange.credentials) or not services.exchange.credentials[idx].complete:
        raise bad_request("Invalid credIdx")
    return idx


def parse_baseline(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError as e:
        raise bad_request("Invalid baseline") from e
