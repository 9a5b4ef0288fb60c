"""
Unit tests for the PriceSeries model.
"""

import json

import numpy as np
import pandas as pd
import pytest

from emers.data.price_series import PricePoint, PriceSeries
from emers.utils.errors import FetchError, InvalidParameterError


@pytest.fixture
def series():
    return PriceSeries("aapl", ["2024-01-02", "2024-01-03", "2024-01-04"],
                       [10, 11, 12], [11, 12, 13], [9, 10, 11], [10.5, 11.5, 12.5], [100, 200, 300])


class TestPriceSeries:

    def test_symbol_normalised(self, series):
        assert series.symbol == "AAPL"
        assert len(series) == 3

    def test_columns_are_read_only(self, series):
        with pytest.raises(ValueError):
            series.close[0] = 99.0

    def test_adj_close_defaults_to_close(self, series):
        np.testing.assert_array_equal(series.adj_close, series.close)

    def test_dates_must_increase(self):
        with pytest.raises(InvalidParameterError):
            PriceSeries("X", ["2024-01-03", "2024-01-02"], [1, 1], [1, 1], [1, 1], [1, 1], [1, 1])
        with pytest.raises(InvalidParameterError):
            PriceSeries("X", ["2024-01-02", "2024-01-02"], [1, 1], [1, 1], [1, 1], [1, 1], [1, 1])

    def test_column_length_and_sign_checked(self):
        with pytest.raises(InvalidParameterError):
            PriceSeries("X", ["2024-01-02"], [1, 2], [1], [1], [1], [1])
        with pytest.raises(InvalidParameterError):
            PriceSeries("X", ["2024-01-02"], [1], [1], [1], [-1], [1])
        with pytest.raises(InvalidParameterError):
            PriceSeries("  ", [], [], [], [], [], [])

    def test_getitem_and_iteration(self, series):
        assert series[1] == PricePoint("2024-01-03", 11.0, 12.0, 10.0, 11.5, 11.5, 200.0)
        assert [p.date for p in series] == list(series.dates)
        assert PriceSeries.from_points("AAPL", series.to_points()) == series

    def test_slice_and_take(self, series):
        assert series.slice(1, 3).dates == ("2024-01-03", "2024-01-04")
        assert series.take([0, 2]).dates == ("2024-01-02", "2024-01-04")
        assert len(series.slice(5, 9)) == 0

    def test_take_requires_increasing_indices(self, series):
        with pytest.raises(InvalidParameterError):
            series.take([2, 0])

    def test_index_of(self, series):
        assert series.index_of("2024-01-03") == 1
        assert series.index_of("2024-01-05") is None

    def test_returns(self, series):
        np.testing.assert_allclose(series.returns(), [1 / 10.5, 1 / 11.5])

    def test_with_columns_returns_new_series(self, series):
        updated = series.with_columns(volume=[1, 2, 3])
        assert list(updated.volume) == [1, 2, 3]
        assert list(series.volume) == [100, 200, 300]

    def test_dataframe_round_trip(self, series):
        assert PriceSeries.from_dataframe("AAPL", series.to_dataframe()) == series

    def test_from_dataframe_with_datetime_index_and_capitalised_columns(self):
        frame = pd.DataFrame({
            "Open": [2.0, 1.0], "High": [2.0, 1.0], "Low": [2.0, 1.0],
            "Close": [2.0, 1.0], "Volume": [5, 6],
        }, index=pd.DatetimeIndex(["2024-01-03", "2024-01-02"], name="Date"))

        result = PriceSeries.from_dataframe("msft", frame)
        assert result.dates == ("2024-01-02", "2024-01-03")
        assert list(result.close) == [1.0, 2.0]

    def test_from_dataframe_missing_columns(self):
        frame = pd.DataFrame({"date": ["2024-01-02"], "close": [1.0]})
        with pytest.raises(InvalidParameterError):
            PriceSeries.from_dataframe("X", frame)

    def test_from_json(self):
        payload = json.dumps([
            {"date": "2024-01-03", "open": 2, "high": 2, "low": 2, "close": 2, "volume": 10},
            {"date": "2024-01-02", "open": 1, "high": 1, "low": 1, "close": 1, "volume": 10,
             "adjClose": 0.9},
        ])
        result = PriceSeries.from_json("X", payload)

        assert len(result) == 2
        assert result.dates[0] == "2024-01-02"
        assert result.adj_close[0] == pytest.approx(0.9)

    @pytest.mark.parametrize("payload", ["not json", '{"date": "2024-01-02"}', '[{"date": "2024-01-02"}]'])
    def test_from_json_malformed(self, payload):
        with pytest.raises(FetchError):
            PriceSeries.from_json("X", payload)

    def test_from_closes_uses_business_days(self):
        result = PriceSeries.from_closes("X", [1.0] * 6, start_date="2024-01-05")
        assert result.dates[:2] == ("2024-01-05", "2024-01-08")
