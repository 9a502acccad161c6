"""Command-line entry point: ``futures-quant <command> ...``."""

from __future__ import annotations

import argparse
import logging
import sys
import uuid

from futures_quant.configuration.loader import load_backtest_config, load_datamine_config
from futures_quant.context import RuntimeContext
from futures_quant.exceptions import FuturesQuantError
from futures_quant.utils.logging_utils import setup_logging

LOGGER = logging.getLogger("futures_quant.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="futures-quant",
        description="Continuous futures archives, data mining and backtests.",
    )
    parser.add_argument("--config", default="config.yaml", help="Runtime configuration YAML.")
    parser.add_argument("--assets", default="assets.yaml", help="Instrument list YAML.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Build .gobz archives from raw CSVs.")
    generate.add_argument(
        "--symbol",
        default=None,
        help="Regenerate a single instrument, overwriting its archives.",
    )

    analyze = subparsers.add_parser("analyze", help="Print feature statistics of an archive.")
    analyze.add_argument("symbol", help="ES selects ES.F1; ES.F2 selects the second series.")
    analyze.add_argument("--output", default=None, help="Also write the statistics as JSON.")

    backtest = subparsers.add_parser("backtest", help="IS/OOS backtest of explicit strategies.")
    backtest.add_argument("yaml_path", metavar="YAML")

    datamine = subparsers.add_parser("datamine", help="Search feature/bin entry rules.")
    datamine.add_argument("yaml_path", metavar="YAML")
    datamine.add_argument("--output", default=None, help="Write ranked results as JSON.")
    datamine.add_argument(
        "--run-id",
        default="",
        help="Optional run_id for rows written to storage.results_db.",
    )

    correlate = subparsers.add_parser("correlate", help="Correlate IS metrics with OOS Sharpe.")
    correlate.add_argument("yaml_path", metavar="YAML")

    strategy_yaml = subparsers.add_parser(
        "strategy-yaml", help="Convert strategy description lines into a backtest YAML."
    )
    strategy_yaml.add_argument("input_path", metavar="INPUT")
    strategy_yaml.add_argument("output_path", metavar="OUTPUT")
    return parser


def _print_lines(lines: list[str]) -> None:
    print("\n".join(lines))


def _context(args: argparse.Namespace, with_assets: bool = True, with_currencies: bool = False) -> RuntimeContext:
    context = RuntimeContext()
    context.load_config(args.config)
    setup_logging("futures_quant", context.config.system.log_level)
    if with_assets:
        context.load_assets(args.assets)
    if with_currencies:
        context.load_currencies()
    return context


def _run_generate(args: argparse.Namespace) -> None:
    from futures_quant.generation.pipeline import generate

    context = _context(args)
    generate(context.config, context.assets, symbol=args.symbol)


def _run_analyze(args: argparse.Namespace) -> None:
    from futures_quant.analysis.analyzer import analyze

    context = _context(args, with_assets=False)
    config = context.config
    summary = analyze(
        config.paths.archive_path,
        args.symbol,
        min_non_null=config.analysis.min_non_null,
        bins=config.analysis.histogram_bins,
        output=args.output,
    )
    _print_lines(summary.lines())


def _run_backtest(args: argparse.Namespace) -> None:
    from futures_quant.backtesting.runner import run_backtest

    context = _context(args, with_currencies=True)
    backtest_config = load_backtest_config(args.yaml_path)
    report = run_backtest(
        backtest_config,
        context.config.paths.archive_path,
        context.assets,
        context.converter,
        max_workers=context.config.execution.max_workers,
    )
    _print_lines(report.lines())


def _run_datamine(args: argparse.Namespace) -> None:
    from futures_quant.optimization.datamine import run_datamine
    from futures_quant.optimization.ranking import (
        format_ranked,
        rank_results,
        ranked_rows,
        summarize_weekday_optimization,
        write_results_json,
    )
    from futures_quant.optimization.storage import save_optimization_rows

    context = _context(args, with_currencies=True)
    mining_config = load_datamine_config(args.yaml_path)
    if mining_config.max_workers <= 0:
        mining_config.max_workers = context.config.execution.max_workers
    results, records = run_datamine(
        mining_config, context.config.paths.archive_path, context.assets, context.converter
    )
    symbol_order = mining_config.assets or [item.symbol for item in records]
    ranked = rank_results(results, mining_config.strategy_limit, symbol_order)
    _print_lines(format_ranked(ranked))
    if mining_config.optimize_weekdays:
        _print_lines(summarize_weekday_optimization(ranked))
    if args.output:
        write_results_json(args.output, ranked)
    results_db = context.config.storage.results_db
    if results_db:
        run_id = str(args.run_id or "").strip() or str(uuid.uuid4())
        count = save_optimization_rows(results_db, run_id, ranked_rows(ranked))
        LOGGER.info("Saved %d rows to %s (run_id=%s)", count, results_db, run_id)


def _run_correlate(args: argparse.Namespace) -> None:
    from futures_quant.optimization.correlation import run_correlation

    context = _context(args, with_currencies=True)
    mining_config = load_datamine_config(args.yaml_path)
    if mining_config.max_workers <= 0:
        mining_config.max_workers = context.config.execution.max_workers
    report = run_correlation(
        mining_config, context.config.paths.archive_path, context.assets, context.converter
    )
    _print_lines(report.lines())


def _run_strategy_yaml(args: argparse.Namespace) -> None:
    from futures_quant.strategy_yaml import generate_strategy_yaml

    setup_logging("futures_quant")
    generate_strategy_yaml(args.input_path, args.output_path)


_COMMANDS = {
    "generate": _run_generate,
    "analyze": _run_analyze,
    "backtest": _run_backtest,
    "datamine": _run_datamine,
    "correlate": _run_correlate,
    "strategy-yaml": _run_strategy_yaml,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        _COMMANDS[args.command](args)
    except FuturesQuantError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
