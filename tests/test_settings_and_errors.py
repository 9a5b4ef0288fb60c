"""
Unit tests for configuration, the error taxonomy, numeric helpers and validation utilities.
"""

import math

import numpy as np
import pytest

from emers.config.settings import BacktestConfig, EmersConfig
from emers.utils import numerics
from emers.utils.errors import (
    CorruptedDatabaseError, EmersError, ErrorKind, FetchError, InsufficientDataError,
    InvalidParameterError, IOFailureError, Result
)
from emers.utils.validation_utils import (
    is_iso_date, validate_date_range, validate_event_fields, validate_price_series
)
from emers.data.price_series import PriceSeries


class TestEmersConfig:

    def test_defaults_are_valid(self):
        config = EmersConfig()
        assert config.environment == "development"
        assert config.validate_config()
        assert config.logging.log_level == "INFO"

    def test_environment_overrides(self):
        assert EmersConfig("production").logging.log_level == "WARNING"
        testing = EmersConfig("testing")
        assert testing.logging.enable_file_logging is False
        assert testing.logging.log_level == "DEBUG"

    def test_invalid_indicator_settings(self):
        config = EmersConfig()
        config.indicators.macd_fast = 30
        assert not config.validate_config()

    def test_to_dict(self):
        data = EmersConfig("testing").to_dict()
        assert data["environment"] == "testing"
        assert set(data) == {"environment", "data", "indicators", "patterns", "anomalies",
                             "events", "backtest", "logging"}
        assert data["backtest"]["position_size"] == 1000.0

    def test_backtest_config_validation(self):
        with pytest.raises(ValueError, match="Entry threshold"):
            BacktestConfig(entry_threshold=1.5)


class TestErrors:

    def test_codes_and_tags(self):
        assert ErrorKind.INVALID_PARAMETER.code == 1003
        assert ErrorKind.FETCH_FAILED.code == 5101
        assert ErrorKind.INSUFFICIENT_DATA.describe() == "[INSUFFICIENT_DATA:5102]"

    def test_exception_kinds(self):
        assert InvalidParameterError("x").kind == ErrorKind.INVALID_PARAMETER
        assert CorruptedDatabaseError("x").kind == ErrorKind.DATA_CORRUPTED
        assert FetchError("x").kind == ErrorKind.FETCH_FAILED
        assert isinstance(FetchError("x"), IOFailureError)
        assert IOFailureError("x", ErrorKind.FILE_WRITE_FAILED).kind == ErrorKind.FILE_WRITE_FAILED

    def test_str_includes_tag(self):
        assert str(InvalidParameterError("bad window")) == "[INVALID_PARAMETER:1003] bad window"

    def test_result_success(self):
        result = Result.success(42)
        assert result.ok and bool(result)
        assert result.unwrap() == 42

    @pytest.mark.parametrize("kind,exc_type", [
        (ErrorKind.INVALID_PARAMETER, InvalidParameterError),
        (ErrorKind.INSUFFICIENT_DATA, InsufficientDataError),
        (ErrorKind.FILE_NOT_FOUND, IOFailureError),
        (ErrorKind.DIVISION_BY_ZERO, EmersError),
    ])
    def test_result_failure_unwrap_raises(self, kind, exc_type):
        result = Result.failure(kind, "nope")
        assert not result
        with pytest.raises(exc_type) as info:
            result.unwrap()
        assert info.value.kind == kind
        assert info.value.message == "nope"


class TestNumerics:

    def test_mean_and_population_stddev(self):
        assert numerics.mean([]) == 0.0
        assert numerics.stddev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)

    def test_sliding_sum(self):
        out = numerics.sliding_sum([1, 2, 3, 4], 2)
        assert np.isnan(out[0])
        assert list(out[1:]) == [3.0, 5.0, 7.0]
        assert numerics.sliding_sum([1, 2], 3).size == 0

    def test_true_range(self):
        tr = numerics.true_range([10, 12], [8, 11], [9, 11.5])
        assert list(tr) == [2.0, 3.0]

    def test_zscore_floor(self):
        assert numerics.zscore(5.0, 1.0, 0.0) == 0.0
        assert numerics.zscore(5.0, 1.0, 2.0) == 2.0

    def test_returns(self):
        assert list(numerics.simple_returns([100, 110, 0, 5])) == pytest.approx([0.1, -1.0, 0.0])
        assert numerics.log_returns([100, 100 * math.e])[0] == pytest.approx(1.0)

    def test_ewma_variance_of_constant_returns(self):
        assert numerics.ewma_variance([0.01] * 50) == pytest.approx(0.0001)

    def test_normal_cdf(self):
        assert numerics.normal_cdf(0.0) == pytest.approx(0.5)
        assert numerics.normal_cdf(1.96) == pytest.approx(0.975, abs=1e-3)


class TestValidationUtils:

    def test_iso_dates(self):
        assert is_iso_date("2024-02-29")
        assert not is_iso_date("2023-02-29")
        assert not is_iso_date("2024-1-5")
        assert not is_iso_date(None)

    def test_date_range(self):
        assert validate_date_range("2024-01-01", "2024-02-01") == (True, [])
        ok, issues = validate_date_range("2024-02-01", "2024-01-01")
        assert not ok and issues == ["Start date must be before end date"]
        ok, issues = validate_date_range("yesterday", "2024-01-01")
        assert not ok and len(issues) == 1

    def test_price_series_issues(self):
        series = PriceSeries("X", ["2024-01-01", "2024-01-02"], [10, 10], [9, 12], [8, 9], [10, 20], [1, 1])
        ok, issues = validate_price_series(series)
        assert not ok
        assert "High price inconsistency detected" in issues
        assert "Extreme price movements detected: 1 days" in issues

    def test_price_series_length(self):
        ok, issues = validate_price_series(PriceSeries.from_closes("X", [1.0]), min_length=2)
        assert not ok
        assert validate_price_series(None) == (False, ["Series is None"])

    def test_event_fields(self):
        assert validate_event_fields("2024-01-01", "Title", 0.5, 50) == (True, [])
        ok, issues = validate_event_fields("2024-01-01", "", 2.0, 150)
        assert len(issues) == 3
