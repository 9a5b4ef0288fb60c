"""
Unit tests for the CSV price cache.
"""

import unittest
import tempfile
import shutil
from pathlib import Path

from emers.data.data_storage import CsvPriceCache
from emers.data.price_series import PriceSeries
from emers.utils.errors import ErrorKind, IOFailureError


class TestCsvPriceCache(unittest.TestCase):
    """Test cases for CsvPriceCache class."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.cache = CsvPriceCache(base_path=self.temp_dir)
        self.series = PriceSeries(
            "AAPL",
            ["2024-01-02", "2024-01-03", "2024-01-04"],
            [100.12346, 101.0, 102.0],
            [105.0, 106.0, 107.0],
            [99.0, 100.0, 101.0],
            [104.0, 105.0, 106.0],
            [1000000.4, 1100000, 1200000],
            [103.5, 104.5, 105.5],
        )

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_file_naming(self):
        path = self.cache.file_path("brk/b", "2024-01-01", "2024-02-01")
        self.assertEqual(path.name, "BRK_B_2024-01-01_to_2024-02-01.csv")

    def test_store_and_load(self):
        self.assertFalse(self.cache.has("AAPL", "2024-01-01", "2024-01-31"))
        self.assertTrue(self.cache.store(self.series, "2024-01-01", "2024-01-31"))
        self.assertTrue(self.cache.has("AAPL", "2024-01-01", "2024-01-31"))

        loaded = self.cache.load("AAPL", "2024-01-01", "2024-01-31")

        self.assertEqual(loaded.dates, self.series.dates)
        self.assertAlmostEqual(loaded.open[0], 100.1235)   # 4 decimal digits
        self.assertEqual(loaded.volume[0], 1000000)        # integer volume
        self.assertEqual(list(loaded.adj_close), [103.5, 104.5, 105.5])

    def test_csv_header(self):
        self.cache.store(self.series, "2024-01-01", "2024-01-31")
        path = self.cache.file_path("AAPL", "2024-01-01", "2024-01-31")
        header = path.read_text().splitlines()[0]
        self.assertEqual(header, "Date,Open,High,Low,Close,Volume,AdjClose")

    def test_load_missing(self):
        with self.assertRaises(IOFailureError) as ctx:
            self.cache.load("MSFT", "2024-01-01", "2024-01-31")
        self.assertEqual(ctx.exception.kind, ErrorKind.FILE_NOT_FOUND)

    def test_load_file_with_missing_columns(self):
        path = self.cache.file_path("MSFT", "2024-01-01", "2024-01-31")
        path.write_text("Date,Close\n2024-01-02,1.0\n")

        with self.assertRaises(IOFailureError):
            self.cache.load("MSFT", "2024-01-01", "2024-01-31")

    def test_backup_before_overwrite(self):
        cache = CsvPriceCache(base_path=self.temp_dir, enable_backup=True)
        cache.store(self.series, "2024-01-01", "2024-01-31")
        cache.store(self.series, "2024-01-01", "2024-01-31")

        backups = list(Path(self.temp_dir).glob("*.bak"))
        self.assertEqual(len(backups), 1)

    def test_list_cached(self):
        self.cache.store(self.series, "2024-01-01", "2024-01-31")
        self.cache.store(self.series, "2024-02-01", "2024-02-29")

        self.assertEqual(len(self.cache.list_cached("AAPL")), 2)
        self.assertEqual(self.cache.list_cached("MSFT"), [])


if __name__ == '__main__':
    unittest.main()
