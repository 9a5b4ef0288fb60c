#!/usr/bin/env python3
"""
Main entry point for the market event analysis system.
Runs historical analysis, backtests, cross-validation and event detection for a set of symbols.
"""

import sys
import argparse
import signal
from datetime import datetime, timedelta

from emers.analysis.anomaly_detector import AnomalyDetector
from emers.analysis.historical_analysis import HistoricalAnalyzer
from emers.backtesting.backtest_engine import BacktestEngine
from emers.backtesting.cross_validation import StrategyValidator
from emers.backtesting.performance_calculator import PerformanceCalculator
from emers.backtesting.strategies import parse_strategy
from emers.backtesting.validation_metrics import generate_validation_report
from emers.context import AnalysisContext
from emers.data.news_data_fetcher import NewsEventFetcher
from emers.events.event_analysis import EventAnalyzer
from emers.monitoring.visualization import AnalysisVisualizer
from emers.utils.errors import EmersError
from emers.utils.logging_utils import get_logger, log_error_with_context, log_performance_metrics
from emers.utils.validation_utils import validate_date_range

# Global context for signal handling
context = None


def signal_handler(signum, frame):
    """Handle system signals for graceful shutdown."""
    logger = get_logger("Main")
    logger.info(f"Received signal {signum}, shutting down...")

    if context:
        context.close()

    sys.exit(0)


def setup_signal_handlers():
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def run_analyze_mode(ctx: AnalysisContext, args) -> bool:
    """Summarize each symbol and chart its patterns, signals and anomalies."""
    logger = get_logger("Main")
    analyzer = HistoricalAnalyzer(ctx)
    series_by_symbol = analyzer.load_symbols(args.symbols, args.start, args.end)
    if not series_by_symbol:
        logger.error("No price data could be loaded")
        return False

    visualizer = AnalysisVisualizer(args.output_dir) if args.plot else None
    anomaly_detector = AnomalyDetector(ctx.config.anomalies)

    for symbol, series in series_by_symbol.items():
        result = analyzer.summarize(series)
        if not result.ok:
            logger.warning(f"Skipping {symbol}: {result.message}")
            continue
        summary = result.value
        logger.info(f"{symbol} {summary.start_date}..{summary.end_date} ({summary.bars} bars)")
        logger.info(f"  Annualized return: {summary.annualized_return * 100:.2f}%")
        logger.info(f"  Annualized volatility: {summary.annualized_volatility * 100:.2f}%")
        logger.info(f"  Max drawdown: {summary.max_drawdown * 100:.2f}%")
        logger.info(f"  Sharpe ratio: {summary.sharpe_ratio:.2f}")
        logger.info(f"  Best day: {summary.best_day * 100:.2f}% on {summary.best_day_date}")
        logger.info(f"  Worst day: {summary.worst_day * 100:.2f}% on {summary.worst_day_date}")
        for pattern_type, count in summary.pattern_counts.items():
            logger.info(f"  {pattern_type}: {count}")

        if visualizer:
            patterns = analyzer.pattern_detector.detect_price_patterns(series)
            signals = analyzer.pattern_detector.detect_sma_crossover_signals(series)
            anomalies = anomaly_detector.detect_anomalies(series)
            visualizer.plot_price_analysis(series, patterns, signals, anomalies)

    if visualizer and len(series_by_symbol) > 1:
        visualizer.plot_correlation_heatmap(analyzer.correlation_matrix(series_by_symbol))
    return True


def run_backtest_mode(ctx: AnalysisContext, args) -> bool:
    """Backtest one strategy on each symbol."""
    logger = get_logger("Main")
    engine = BacktestEngine(ctx.config.backtest)
    calculator = PerformanceCalculator(ctx.config.backtest)
    visualizer = AnalysisVisualizer(args.output_dir) if args.plot else None
    success = True

    for symbol in args.symbols:
        try:
            series = ctx.load_prices(symbol, args.start, args.end)
            strategy = parse_strategy(args.strategy)
        except (EmersError, ValueError) as e:
            logger.error(f"Backtest of {symbol} failed: {e}")
            success = False
            continue

        outcome = engine.run_backtest(series, strategy)
        if not outcome.ok:
            logger.error(f"Backtest of {symbol} failed: {outcome.message}")
            success = False
            continue

        report = calculator.generate_performance_report(outcome.value)
        logger.info(f"{symbol} backtest with {outcome.value.strategy_name} "
                    f"(grade {report['performance_grade']}):")
        for key, value in report["performance_summary"].items():
            logger.info(f"  {key}: {value}")
        log_performance_metrics(calculator.export_metrics_to_dict(outcome.value))
        if visualizer:
            visualizer.plot_equity_curve(outcome.value, list(series.dates))
    return success


def run_crossval_mode(ctx: AnalysisContext, args) -> bool:
    """K-fold cross-validation of strategy selection on each symbol."""
    logger = get_logger("Main")
    validator = StrategyValidator(ctx.config.backtest)
    success = True

    for symbol in args.symbols:
        try:
            series = ctx.load_prices(symbol, args.start, args.end)
        except EmersError as e:
            logger.error(f"Cross-validation of {symbol} failed: {e}")
            success = False
            continue

        outcome = validator.cross_validate(series, args.folds, show_progress=True)
        if not outcome.ok:
            logger.error(f"Cross-validation of {symbol} failed: {outcome.message}")
            success = False
            continue
        cv = outcome.value
        for fold in cv.folds:
            logger.info(f"  Fold {fold.fold + 1}: {fold.strategy.value}, accuracy {fold.metrics.accuracy:.4f}")
        logger.info("\n" + generate_validation_report(cv.mean_metrics, f"{symbol} ({cv.k}-fold mean)"))
    return success


def run_events_mode(ctx: AnalysisContext, args) -> bool:
    """Ingest news, detect market events and report on the most significant ones."""
    logger = get_logger("Main")
    analyzer = EventAnalyzer(ctx.config.events, ctx.scorer)
    fetcher = NewsEventFetcher(ctx.news_source, ctx.event_db, ctx.scorer)
    fetcher.fetch_events_for_symbols(args.symbols, args.start, args.end)

    for symbol in args.symbols:
        try:
            series = ctx.load_prices(symbol, args.start, args.end)
        except EmersError as e:
            logger.error(f"Event detection for {symbol} failed: {e}")
            continue

        events = analyzer.detect_market_events(series, ctx.event_db)
        logger.info(f"{symbol}: {len(events)} events")
        for event in sorted(events, key=lambda e: e.impact_score, reverse=True)[:args.top]:
            detailed = analyzer.analyze_event(event, series)
            logger.info("\n" + analyzer.generate_event_report(detailed))

    ctx.save_events()
    stats = ctx.event_db.stats()
    logger.info(f"Event database holds {stats.total_events} events")
    return True


def main():
    """Main function routing to the selected mode."""
    global context

    today = datetime.now().date()
    parser = argparse.ArgumentParser(description="Market Event Analysis System")
    parser.add_argument("--mode",
                        choices=["analyze", "backtest", "crossval", "events"],
                        default="analyze",
                        help="Operation mode")
    parser.add_argument("--symbols", nargs="+", default=["AAPL"], help="Ticker symbols")
    parser.add_argument("--start", default=(today - timedelta(days=3 * 365)).isoformat(),
                        help="Start date (YYYY-MM-DD)")
    parser.add_argument("--end", default=today.isoformat(), help="End date (YYYY-MM-DD)")
    parser.add_argument("--strategy", default="sma_crossover:10,30",
                        help="Backtest strategy name or 'sma_crossover:short,long'")
    parser.add_argument("--folds", type=int, default=5, help="Cross-validation folds")
    parser.add_argument("--top", type=int, default=3, help="Events to report per symbol")
    parser.add_argument("--plot", action="store_true", help="Save charts")
    parser.add_argument("--output-dir", default="data/visualizations", help="Chart directory")
    parser.add_argument("--env",
                        choices=["development", "testing", "production"],
                        default="development",
                        help="Environment")

    args = parser.parse_args()

    setup_signal_handlers()
    logger = get_logger("Main")

    is_valid, issues = validate_date_range(args.start, args.end)
    if not is_valid:
        for issue in issues:
            logger.error(issue)
        return 1

    try:
        context = AnalysisContext.create(args.env)

        modes = {
            "analyze": run_analyze_mode,
            "backtest": run_backtest_mode,
            "crossval": run_crossval_mode,
            "events": run_events_mode,
        }
        success = modes[args.mode](context, args)
        return 0 if success else 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except EmersError as e:
        log_error_with_context(logger, e, f"{args.mode} mode")
        return 1
    finally:
        if context:
            context.close()


if __name__ == "__main__":
    sys.exit(main())
