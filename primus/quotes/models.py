"""Quote data models — typed representations of Twelve Data objects."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Bar:
    """A single OHLCV bar."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
