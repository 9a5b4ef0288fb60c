"""
Unit tests for the historical analysis façade.
"""

import math
from unittest.mock import Mock

import numpy as np
import pytest

from emers.analysis.historical_analysis import HistoricalAnalyzer, max_drawdown
from emers.config.settings import EmersConfig
from emers.context import AnalysisContext
from emers.data.price_series import PriceSeries
from emers.interfaces.data_interfaces import IPriceSource
from emers.utils.errors import EmersError, ErrorKind, FetchError


@pytest.fixture
def analyzer():
    return HistoricalAnalyzer()


@pytest.fixture
def zigzag():
    return PriceSeries.from_closes("ZIG", [100.0, 110.0, 99.0, 108.9], start_date="2024-01-01")


def random_series(symbol, seed, n=120):
    rng = np.random.default_rng(seed)
    return PriceSeries.from_closes(symbol, 100 * np.cumprod(1 + rng.normal(0.0005, 0.01, n)))


class TestSummarize:

    def test_summary_statistics(self, analyzer, zigzag):
        summary = analyzer.summarize(zigzag).unwrap()
        returns = np.array([0.1, -0.1, 0.1])

        assert summary.bars == 4
        assert summary.start_date == "2024-01-01"
        assert summary.mean_return == pytest.approx(returns.mean())
        assert summary.annualized_return == pytest.approx(1.089 ** (252 / 3) - 1)
        assert summary.annualized_volatility == pytest.approx(np.std(returns) * math.sqrt(252))
        assert summary.max_drawdown == pytest.approx(0.1)
        assert summary.best_day == pytest.approx(0.1)
        assert summary.best_day_date == zigzag.dates[1]
        assert summary.worst_day == pytest.approx(-0.1)
        assert summary.worst_day_date == zigzag.dates[2]
        assert summary.pattern_counts == {}

    def test_flat_series_has_zero_sharpe(self, analyzer):
        summary = analyzer.summarize(PriceSeries.from_closes("F", [10.0] * 10)).unwrap()
        assert summary.annualized_volatility == 0.0
        assert summary.sharpe_ratio == 0.0

    @pytest.mark.parametrize("series", [None, PriceSeries.from_closes("ONE", [10.0])])
    def test_insufficient_data(self, analyzer, series):
        result = analyzer.summarize(series)
        assert not result.ok
        assert result.error_kind == ErrorKind.INSUFFICIENT_DATA

    def test_max_drawdown(self):
        assert max_drawdown(np.array([100.0, 120.0, 90.0, 130.0, 117.0])) == pytest.approx(0.25)
        assert max_drawdown(np.array([])) == 0.0

    def test_batch_summarize(self, analyzer, zigzag):
        summaries = analyzer.batch_summarize({"ZIG": zigzag, "ONE": PriceSeries.from_closes("ONE", [1.0])})
        assert list(summaries) == ["ZIG"]


class TestCorrelationMatrix:

    def test_matrix(self):
        a = random_series("A", 1)
        b = PriceSeries.from_closes("B", a.close * 2)
        c = random_series("C", 2, n=100)

        matrix = HistoricalAnalyzer.correlation_matrix({"A": a, "B": b, "C": c})

        assert list(matrix.index) == ["A", "B", "C"]
        assert matrix.loc["A", "A"] == 1.0
        assert matrix.loc["A", "B"] == pytest.approx(1.0)
        assert matrix.loc["A", "C"] == matrix.loc["C", "A"]
        assert -1.0 <= matrix.loc["B", "C"] <= 1.0


class TestSmaCrossoverBacktest:

    def test_valid_parameters(self, analyzer):
        result = analyzer.test_sma_crossover_strategy(random_series("R", 3), "sma_crossover:5,20")
        assert result.ok
        assert result.value.strategy_name == "sma_crossover:5,20"

    @pytest.mark.parametrize("parameters", ["momentum", "sma_crossover:x,y", "sma_crossover:20,5"])
    def test_invalid_parameters(self, analyzer, parameters):
        result = analyzer.test_sma_crossover_strategy(random_series("R", 3), parameters)
        assert result.error_kind == ErrorKind.INVALID_PARAMETER


class TestContextLoading:

    @pytest.fixture
    def source(self):
        def fetch(symbol, start, end):
            if symbol == "BAD":
                raise FetchError("unknown symbol")
            return random_series(symbol, 5)
        source = Mock(spec=IPriceSource)
        source.fetch_stock_data.side_effect = fetch
        return source

    @pytest.fixture
    def context_analyzer(self, source):
        return HistoricalAnalyzer(AnalysisContext(EmersConfig("testing"), price_source=source))

    def test_summarize_symbol(self, context_analyzer, source):
        summary = context_analyzer.summarize_symbol("ACME", "2024-01-01", "2024-06-30").unwrap()

        assert summary.symbol == "ACME"
        source.fetch_stock_data.assert_called_once_with("ACME", "2024-01-01", "2024-06-30")

    def test_summarize_symbol_failure(self, context_analyzer):
        result = context_analyzer.summarize_symbol("BAD", "2024-01-01", "2024-06-30")
        assert result.error_kind == ErrorKind.FETCH_FAILED

    def test_load_symbols_skips_failures(self, context_analyzer):
        loaded = context_analyzer.load_symbols(["ACME", "BAD", "GLOBEX"], "2024-01-01", "2024-06-30")
        assert list(loaded) == ["ACME", "GLOBEX"]

    def test_loading_requires_context(self, analyzer):
        with pytest.raises(EmersError):
            analyzer.load_symbols(["ACME"], "2024-01-01", "2024-06-30")
