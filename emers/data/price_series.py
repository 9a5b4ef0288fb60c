"""
Price series data model.
Immutable, date-ordered daily OHLCV bars backed by read-only numpy arrays.
"""

import bisect
import json
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from emers.utils.errors import FetchError, InvalidParameterError
from emers.utils.numerics import simple_returns

PRICE_FIELDS = ("open", "high", "low", "close", "adj_close", "volume")


@dataclass(frozen=True)
class PricePoint:
    """One daily bar. A zero price marks a missing value that must be imputed."""
    date: str
    open: float
    high: float
    low: float
    close: float
    adj_close: float
    volume: float


def _frozen(values: Iterable[float], name: str, length: int) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.ndim != 1 or arr.size != length:
        raise InvalidParameterError(f"Column '{name}' has {arr.size} values, expected {length}")
    if np.any(arr < 0):
        raise InvalidParameterError(f"Column '{name}' contains negative values")
    arr.setflags(write=False)
    return arr


class PriceSeries:
    """
    Ordered daily bars for one symbol.

    Features:
    - Strictly increasing ISO dates, no duplicates
    - Read-only column arrays (open, high, low, close, adj_close, volume)
    - Slicing and index selection return new series
    - Conversion to and from pandas DataFrames
    """

    def __init__(self, symbol: str, dates: Sequence[str], open: Iterable[float],
                 high: Iterable[float], low: Iterable[float], close: Iterable[float],
                 volume: Iterable[float], adj_close: Optional[Iterable[float]] = None):
        if not isinstance(symbol, str) or not symbol.strip():
            raise InvalidParameterError("Symbol must be a non-empty string")

        self.symbol = symbol.strip().upper()
        self._dates = tuple(str(d)[:10] for d in dates)
        n = len(self._dates)

        for i in range(1, n):
            if self._dates[i] <= self._dates[i - 1]:
                raise InvalidParameterError(
                    f"Dates must be strictly increasing: {self._dates[i - 1]} then {self._dates[i]}"
                )

        self._open = _frozen(open, "open", n)
        self._high = _frozen(high, "high", n)
        self._low = _frozen(low, "low", n)
        self._close = _frozen(close, "close", n)
        self._volume = _frozen(volume, "volume", n)
        self._adj_close = _frozen(adj_close if adj_close is not None else self._close, "adj_close", n)

    @classmethod
    def from_points(cls, symbol: str, points: Sequence[PricePoint]) -> "PriceSeries":
        return cls(
            symbol,
            [p.date for p in points],
            [p.open for p in points],
            [p.high for p in points],
            [p.low for p in points],
            [p.close for p in points],
            [p.volume for p in points],
            [p.adj_close for p in points],
        )

    @classmethod
    def from_closes(cls, symbol: str, closes: Sequence[float], start_date: str = "2024-01-01",
                    volume: float = 1000.0) -> "PriceSeries":
        """Build a flat-bar series (open = high = low = close) on consecutive business days."""
        dates = pd.bdate_range(start=start_date, periods=len(closes)).strftime("%Y-%m-%d")
        return cls(symbol, list(dates), closes, closes, closes, closes, [volume] * len(closes))

    @classmethod
    def from_dataframe(cls, symbol: str, data: pd.DataFrame) -> "PriceSeries":
        """
        Build a series from an OHLCV DataFrame.

        Accepts lowercase or capitalised column names, a ``date``/``Date`` column or
        a DatetimeIndex. Rows are sorted by date and duplicate dates dropped (last wins).

        Raises:
            InvalidParameterError: If required columns are missing
        """
        frame = data.copy()
        frame.columns = [str(c).strip().lower().replace(" ", "_") for c in frame.columns]
        frame = frame.rename(columns={"adjclose": "adj_close"})

        if "date" not in frame.columns:
            if isinstance(frame.index, pd.DatetimeIndex) or frame.index.name in ("date", "Date"):
                frame = frame.reset_index()
                frame = frame.rename(columns={frame.columns[0]: "date"})
            else:
                raise InvalidParameterError("No date information in data")

        missing = [c for c in ("open", "high", "low", "close", "volume") if c not in frame.columns]
        if missing:
            raise InvalidParameterError(f"Missing required columns: {missing}")

        frame["date"] = pd.to_datetime(frame["date"]).dt.strftime("%Y-%m-%d")
        frame = frame.sort_values("date").drop_duplicates(subset="date", keep="last")
        adj = frame["adj_close"] if "adj_close" in frame.columns else frame["close"]

        return cls(symbol, frame["date"].tolist(), frame["open"], frame["high"],
                   frame["low"], frame["close"], frame["volume"], adj)

    @classmethod
    def from_json(cls, symbol: str, payload) -> "PriceSeries":
        """
        Parse a JSON price payload: a list of objects (or a JSON string of one)
        with ``date``, ``open``, ``high``, ``low``, ``close``, ``volume`` and
        optionally ``adjClose``. The number of parsed rows is ``len()`` of the result.

        Raises:
            FetchError: If the payload is malformed
        """
        try:
            rows = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
            if not isinstance(rows, list):
                raise TypeError(f"expected a list of bars, got {type(rows).__name__}")
            rows = sorted(rows, key=lambda r: str(r["date"])[:10])
            return cls(
                symbol,
                [str(r["date"])[:10] for r in rows],
                [float(r["open"]) for r in rows],
                [float(r["high"]) for r in rows],
                [float(r["low"]) for r in rows],
                [float(r["close"]) for r in rows],
                [float(r.get("volume", 0) or 0) for r in rows],
                [float(r.get("adjClose", r["close"])) for r in rows],
            )
        except (ValueError, KeyError, TypeError) as e:
            raise FetchError(f"Malformed price payload for {symbol}: {e}") from e

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            "date": list(self._dates),
            "open": self._open,
            "high": self._high,
            "low": self._low,
            "close": self._close,
            "adj_close": self._adj_close,
            "volume": self._volume,
        })

    @property
    def dates(self) -> tuple:
        return self._dates

    @property
    def open(self) -> np.ndarray:
        return self._open

    @property
    def high(self) -> np.ndarray:
        return self._high

    @property
    def low(self) -> np.ndarray:
        return self._low

    @property
    def close(self) -> np.ndarray:
        return self._close

    @property
    def adj_close(self) -> np.ndarray:
        return self._adj_close

    @property
    def volume(self) -> np.ndarray:
        return self._volume

    def __len__(self) -> int:
        return len(self._dates)

    def __iter__(self) -> Iterator[PricePoint]:
        for i in range(len(self)):
            yield self[i]

    def __getitem__(self, i: int) -> PricePoint:
        return PricePoint(
            date=self._dates[i],
            open=float(self._open[i]),
            high=float(self._high[i]),
            low=float(self._low[i]),
            close=float(self._close[i]),
            adj_close=float(self._adj_close[i]),
            volume=float(self._volume[i]),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, PriceSeries):
            return NotImplemented
        return (self.symbol == other.symbol and self._dates == other._dates
                and all(np.array_equal(getattr(self, f), getattr(other, f), equal_nan=True)
                        for f in PRICE_FIELDS))

    def __repr__(self) -> str:
        if not self._dates:
            return f"PriceSeries({self.symbol}, empty)"
        return f"PriceSeries({self.symbol}, {len(self)} bars, {self._dates[0]}..{self._dates[-1]})"

    def index_of(self, date: str) -> Optional[int]:
        """Exact-match lookup of a bar by ISO date."""
        i = bisect.bisect_left(self._dates, date)
        if i < len(self._dates) and self._dates[i] == date:
            return i
        return None

    def slice(self, start: int, end: int) -> "PriceSeries":
        """Bars ``[start, end)`` as a new series."""
        return self.take(range(max(0, start), min(len(self), end)))

    def take(self, indices: Iterable[int]) -> "PriceSeries":
        """
        Select bars by position.

        Raises:
            InvalidParameterError: If the indices are not strictly increasing
        """
        idx = list(indices)
        return PriceSeries(
            self.symbol,
            [self._dates[i] for i in idx],
            self._open[idx],
            self._high[idx],
            self._low[idx],
            self._close[idx],
            self._volume[idx],
            self._adj_close[idx],
        )

    def with_columns(self, **columns) -> "PriceSeries":
        """Return a copy with the given columns replaced."""
        values = {f: columns.get(f, getattr(self, f)) for f in PRICE_FIELDS}
        return PriceSeries(self.symbol, list(self._dates), values["open"], values["high"],
                           values["low"], values["close"], values["volume"], values["adj_close"])

    def returns(self) -> np.ndarray:
        """Close-to-close fractional returns (length ``len(self) - 1``)."""
        return simple_returns(self._close)

    def to_points(self) -> List[PricePoint]:
        return list(self)
