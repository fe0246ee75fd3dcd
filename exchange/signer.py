"""
OKX v5 request signing.

prehash = timestamp + METHOD + requestPath(+query) + body
sign    = base64(HMAC-SHA256(secret, prehash))

`sign` is a pure function. The timestamp must be produced right before the
request goes out; OKX rejects stale timestamps with code 50102.
"""

from __future__ import annotations

import base64
import datetime
import hashlib
import hmac
from typing import Dict, Optional

from exchange.credentials import CredentialSet


def iso_timestamp(now: Optional[datetime.datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2024-01-01T00:00:00.000Z"""
    now = now or datetime.datetime.now(datetime.timezone.utc)
    now = now.astimezone(datetime.timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def sign(secret: str, timestamp: str, method: str, path: str, body: str = "") -> str:
    prehash = f"{timestamp}{method.upper()}{path}{body or ''}"
    digest = hmac.new(secret.encode("utf-8"), prehash.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def build_headers(
    cred: CredentialSet,
    timestamp: str,
    method: str,
    path: str,
    body: str = "",
    simulated: bool = False,
) -> Dict[str, str]:
    headers = {
        "OK-ACCESS-KEY": cred.key,
        "OK-ACCESS-SIGN": sign(cred.secret, timestamp, method, path, body),
        "OK-ACCESS-TIMESTAMP": timestamp,
        "OK-ACCESS-PASSPHRASE": cred.passphrase,
        "Content-Type": "application/json",
    }
    if simulated:
        headers["x-simulated-trading"] = "1"
    return headers
