"""
CSV-based price cache.
Implements the IPriceCache interface keyed by (symbol, start_date, end_date).
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List

import pandas as pd

from emers.data.price_series import PriceSeries
from emers.interfaces.data_interfaces import IPriceCache
from emers.utils.errors import ErrorKind, IOFailureError

CSV_COLUMNS = ["Date", "Open", "High", "Low", "Close", "Volume", "AdjClose"]


class CsvPriceCache(IPriceCache):
    """
    Local CSV cache for downloaded price series.

    Features:
    - One file per (symbol, start_date, end_date): ``<symbol>_<start>_to_<end>.csv``
    - Prices written with 4 decimal digits, integer volume
    - Optional timestamped backup of a file before it is overwritten
    """

    def __init__(self, base_path: str = "data/csv", enable_backup: bool = False):
        """
        Initialize the cache.

        Args:
            base_path: Directory holding the CSV files
            enable_backup: Whether to keep a copy of a file before overwriting it
        """
        self.base_path = Path(base_path)
        self.enable_backup = enable_backup
        self.logger = logging.getLogger(__name__)
        self.base_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _clean_symbol(symbol: str) -> str:
        if not symbol or not isinstance(symbol, str):
            raise ValueError("Symbol must be a non-empty string")
        symbol = symbol.strip().upper()
        for char in '<>:"/\\|?*':
            symbol = symbol.replace(char, '_')
        return symbol

    def file_path(self, symbol: str, start_date: str, end_date: str) -> Path:
        """Path of the cache file for a key."""
        return self.base_path / f"{self._clean_symbol(symbol)}_{start_date}_to_{end_date}.csv"

    def has(self, symbol: str, start_date: str, end_date: str) -> bool:
        return self.file_path(symbol, start_date, end_date).exists()

    def load(self, symbol: str, start_date: str, end_date: str) -> PriceSeries:
        """
        Load a cached series.

        Raises:
            IOFailureError: If the file is missing or unreadable
        """
        path = self.file_path(symbol, start_date, end_date)
        if not path.exists():
            raise IOFailureError(f"No cached data at {path}", ErrorKind.FILE_NOT_FOUND)

        try:
            frame = pd.read_csv(path, dtype={"Date": str})
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise IOFailureError(f"Failed to read {path}: {e}", ErrorKind.FILE_READ_FAILED) from e

        missing = [c for c in CSV_COLUMNS if c not in frame.columns]
        if missing:
            raise IOFailureError(f"Cache file {path} missing columns {missing}", ErrorKind.FILE_READ_FAILED)

        series = PriceSeries(
            symbol,
            frame["Date"].tolist(),
            frame["Open"], frame["High"], frame["Low"], frame["Close"],
            frame["Volume"], frame["AdjClose"],
        )
        self.logger.info(f"Loaded {len(series)} cached bars for {series.symbol} from {path.name}")
        return series

    def store(self, series: PriceSeries, start_date: str, end_date: str) -> bool:
        """
        Write a series to the cache.

        Raises:
            IOFailureError: If the file cannot be written
        """
        path = self.file_path(series.symbol, start_date, end_date)
        self._create_backup(path)

        frame = pd.DataFrame({
            "Date": list(series.dates),
            "Open": series.open,
            "High": series.high,
            "Low": series.low,
            "Close": series.close,
            "Volume": series.volume.round().astype("int64"),
            "AdjClose": series.adj_close,
        }, columns=CSV_COLUMNS)

        try:
            frame.to_csv(path, index=False, float_format="%.4f")
        except OSError as e:
            raise IOFailureError(f"Failed to write {path}: {e}", ErrorKind.FILE_WRITE_FAILED) from e

        self.logger.info(f"Cached {len(series)} bars for {series.symbol} at {path.name}")
        return True

    def list_cached(self, symbol: str = None) -> List[Path]:
        """Cache files, optionally restricted to one symbol."""
        pattern = f"{self._clean_symbol(symbol)}_*.csv" if symbol else "*.csv"
        return sorted(self.base_path.glob(pattern))

    def _create_backup(self, file_path: Path):
        """Copy an existing file aside before it is overwritten."""
        if not self.enable_backup or not file_path.exists():
            return
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = file_path.with_name(f"{file_path.stem}_{timestamp}.bak")
        try:
            shutil.copy2(file_path, backup_path)
            self.logger.info(f"Created backup: {backup_path}")
        except OSError as e:
            self.logger.warning(f"Failed to create backup for {file_path}: {str(e)}")
