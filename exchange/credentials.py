from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


def split_csv(value: Optional[str]) -> List[str]:
    return [s.strip() for s in (value or "").split(",") if s.strip()]


@dataclass(frozen=True)
class CredentialSet:
    key: str
    secret: str
    passphrase: str

    @property
    def complete(self) -> bool:
        return bool(self.key and self.secret and self.passphrase)

    def __repr__(self) -> str:
        # never leak the secret or passphrase into logs
        masked = (self.key[:4] + "...") if self.key else ""
        return f"CredentialSet(key={masked!r}, complete={self.complete})"


def load_credentials(settings) -> List[CredentialSet]:
    """
    Build the ordered credential list from settings.

    The comma-separated OKX_API_KEYS / OKX_SECRET_KEYS / OKX_PASSPHRASES lists
    are used only when all three have the same length. Otherwise the single
    OKX_API_KEY set is used. Index positions are the `credIdx` values exposed by the API.
    """
    keys = split_csv(getattr(settings, "OKX_API_KEYS", ""))
    secrets = split_csv(getattr(settings, "OKX_SECRET_KEYS", ""))
    passes = split_csv(getattr(settings, "OKX_PASSPHRASES", ""))

    multi: List[CredentialSet] = []
    if keys and len(keys) == len(secrets) == len(passes):
        multi = [CredentialSet(k, s, p) for k, s, p in zip(keys, secrets, passes)]

    if multi:
        return multi

    single = CredentialSet(
        key=(getattr(settings, "OKX_API_KEY", "") or "").strip(),
        secret=(getattr(settings, "OKX_SECRET_KEY", "") or "").strip(),
        passphrase=(getattr(settings, "OKX_PASSPHRASE", "") or "").strip(),
    )
    return [single]
