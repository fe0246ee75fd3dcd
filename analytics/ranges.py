from __future__ import annotations

from enum import Enum
from typing import Optional

DAY_MS = 86_400_000


class RangeWindow(str, Enum):
    D7 = "7D"
    D30 = "30D"
    D90 = "90D"
    D180 = "180D"
    D365 = "365D"
    ALL = "ALL"

    @property
    def duration_ms(self) -> Optional[int]:
        """Lookback in ms; None means unbounded."""
        return _DURATIONS[self]

    @property
    def page_limit(self) -> int:
        """Rows requested per bot from the history endpoints."""
        return _PAGE_LIMITS[self]

    def contains(self, ts_ms: float, now_ms: float) -> bool:
        if self.duration_ms is None:
            return True
        return now_ms - ts_ms <= self.duration_ms

    @classmethod
    def parse(cls, value: Optional[str], default: "RangeWindow" = None) -> "RangeWindow":
        if value is None or str(value).strip() == "":
            return default or cls.D30
        text = str(value).strip().upper()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Invalid range {value!r}; expected one of {', '.join(m.value for m in cls)}")


_DURATIONS = {
    RangeWindow.D7: 7 * DAY_MS,
    RangeWindow.D30: 30 * DAY_MS,
    RangeWindow.D90: 90 * DAY_MS,
    RangeWindow.D180: 180 * DAY_MS,
    RangeWindow.D365: 365 * DAY_MS,
    RangeWindow.ALL: None,
}

_PAGE_LIMITS = {
    RangeWindow.D7: 50,
    RangeWindow.D30: 100,
    RangeWindow.D90: 150,
    RangeWindow.D180: 200,
    RangeWindow.D365: 300,
    RangeWindow.ALL: 300,
}
