from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# OKX application codes
OK_CODE = "0"
RATE_LIMIT_CODE = "50011"
PARAM_ERROR_CODE = "51000"

# Signature / key / timestamp / passphrase failures. Retrying cannot fix these.
AUTH_ERROR_CODES = frozenset(
    {
        "50100",  # API frozen
        "50101",  # key does not match environment
        "50102",  # timestamp request expired
        "50103",  # OK-ACCESS-KEY missing
        "50104",  # OK-ACCESS-PASSPHRASE missing
        "50105",  # passphrase incorrect
        "50107",  # OK-ACCESS-TIMESTAMP missing
        "50111",  # invalid OK-ACCESS-KEY
        "50112",  # invalid OK-ACCESS-TIMESTAMP
        "50113",  # invalid signature
        "50114",  # invalid authorization
    }
)

# Codes that mean "nothing to show right now" for history listings.
SOFT_EMPTY_CODES = frozenset({RATE_LIMIT_CODE, "51291", "50034"})


class ExchangeError(Exception):
    """Base class for every upstream failure."""


class ExchangeConfigError(ExchangeError):
    """No usable credentials for the requested set."""


class ExchangeTransportError(ExchangeError):
    """The request did not produce an HTTP response."""


class ExchangeConnectivityError(ExchangeTransportError):
    """Every candidate host failed at the connection level."""

    def __init__(self, message: str, hosts: Optional[List[str]] = None):
        super().__init__(message)
        self.hosts = list(hosts or [])


class ExchangeResponseError(ExchangeError):
    """An HTTP response arrived but its body is not usable JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None, host: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.host = host


class ExchangeAuthError(ExchangeError):
    """Credentials or signature rejected by the exchange."""

    def __init__(self, response: "ExchangeResponse"):
        super().__init__(f"OKX auth failure code={response.code} msg={response.message}")
        self.response = response


@dataclass
class ExchangeResponse:
    """Parsed OKX envelope: {"code": "0", "msg": "", "data": [...]}."""

    payload: Dict[str, Any] = field(default_factory=dict)
    host: Optional[str] = None
    cred_idx: Optional[int] = None
    status_code: int = 200
    attempts: int = 1

    @property
    def code(self) -> str:
        code = self.payload.get("code")
        return "" if code is None else str(code)

    @property
    def message(self) -> str:
        return str(self.payload.get("msg") or self.payload.get("error") or "")

    @property
    def ok(self) -> bool:
        return self.code == OK_CODE and isinstance(self.payload.get("data"), list)

    @property
    def rows(self) -> List[Dict[str, Any]]:
        data = self.payload.get("data")
        if not isinstance(data, list):
            return []
        return [r for r in data if isinstance(r, dict)]

    @property
    def rate_limited(self) -> bool:
        return self.code == RATE_LIMIT_CODE

    @property
    def auth_failed(self) -> bool:
        return self.code in AUTH_ERROR_CODES or (self.status_code == 401 and not self.rate_limited)
