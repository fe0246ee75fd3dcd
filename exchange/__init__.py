"""
OKX v5 REST access: signing, host failover, rate-limit retry and
per-credential fan-out.
"""

from .credentials import CredentialSet, load_credentials
from .errors import ExchangeError, ExchangeResponse
from .fanout import CredentialFanout, FanoutResult, tag_rows
from .okx import OkxExchange, RequestSpec

__all__ = [
    "CredentialSet",
    "CredentialFanout",
    "ExchangeError",
    "ExchangeResponse",
    "FanoutResult",
    "OkxExchange",
    "RequestSpec",
    "load_credentials",
    "tag_rows",
]
