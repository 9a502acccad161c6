from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from futures_quant.cli import main
from futures_quant.optimization.storage import load_optimization_rows
from futures_quant.storage.archive import archive_path


def _write_configs(tmp_path: Path, raw_dir: Path, results_db: str = "") -> tuple[Path, Path]:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        textwrap.dedent(
            f"""
            paths:
              raw_data_path: "{raw_dir}"
              archive_path: "{tmp_path / 'archives'}"
              fx_path: "{raw_dir}"
            generation:
              quantile_buffer_size: 200
              quantile_stride: 50
            analysis:
              min_non_null: 10
              histogram_bins: 5
            storage:
              results_db: "{results_db}"
            execution:
              max_workers: 1
            """
        ),
        encoding="utf-8",
    )
    assets_path = tmp_path / "assets.yaml"
    assets_path.write_text(
        textwrap.dedent(
            """
            assets:
              - symbol: ES
                tick_size: 0.25
                tick_value: 12.5
                broker_fee: 0.85
                exchange_fee: 1.18
                spread: 1
            """
        ),
        encoding="utf-8",
    )
    return config_path, assets_path


def test_missing_config_reports_error(tmp_path: Path, capsys):
    code = main(["--config", str(tmp_path / "missing.yaml"), "generate"])
    assert code == 1
    assert "error:" in capsys.readouterr().err


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        main(["explode"])


def test_strategy_yaml_command(tmp_path: Path):
    source = tmp_path / "lines.txt"
    source.write_text("ES.momentum_1d (0.70, 1.00), long, 16:00, 24h\n", encoding="utf-8")
    target = tmp_path / "backtest.yaml"
    assert main(["strategy-yaml", str(source), str(target)]) == 0
    assert "momentum_1d" in target.read_text(encoding="utf-8")


def test_strategy_yaml_command_rejects_bad_lines(tmp_path: Path, capsys):
    source = tmp_path / "lines.txt"
    source.write_text("garbage\n", encoding="utf-8")
    assert main(["strategy-yaml", str(source), str(tmp_path / "out.yaml")]) == 1
    assert "Unable to parse strategy line" in capsys.readouterr().err


def test_generate_then_analyze(raw_data_dir: Path, tmp_path: Path, capsys):
    config_path, assets_path = _write_configs(tmp_path, raw_data_dir)
    common = ["--config", str(config_path), "--assets", str(assets_path)]
    assert main([*common, "generate"]) == 0
    assert archive_path(tmp_path / "archives", "ES", 1).exists()

    output = tmp_path / "stats.json"
    assert main([*common, "analyze", "ES", "--output", str(output)]) == 0
    assert "Symbol: ES" in capsys.readouterr().out
    assert json.loads(output.read_text(encoding="utf-8"))["symbol"] == "ES"


def test_backtest_command(raw_data_dir: Path, tmp_path: Path, capsys):
    config_path, assets_path = _write_configs(tmp_path, raw_data_dir)
    common = ["--config", str(config_path), "--assets", str(assets_path)]
    assert main([*common, "generate"]) == 0
    backtest_path = tmp_path / "backtest.yaml"
    backtest_path.write_text(
        textwrap.dedent(
            """
            date_min: 2024-01-01
            date_split: 2024-02-15
            date_max: 2024-03-29
            strategies:
              - symbol: ES
                side: short
                time: "10:00"
                holding_time: 8
                conditions:
                  - feature: momentum_4h
                    min: 0.0
                    max: 1.0
            """
        ),
        encoding="utf-8",
    )
    assert main([*common, "backtest", str(backtest_path)]) == 0
    assert "1. ES.momentum_4h (0.00, 1.00), short, 10:00, 8h" in capsys.readouterr().out


def test_datamine_command_writes_json_and_sqlite(raw_data_dir: Path, tmp_path: Path, capsys):
    results_db = tmp_path / "results.sqlite3"
    config_path, assets_path = _write_configs(tmp_path, raw_data_dir, results_db=str(results_db))
    common = ["--config", str(config_path), "--assets", str(assets_path)]
    assert main([*common, "generate"]) == 0
    mining_path = tmp_path / "datamine.yaml"
    mining_path.write_text(
        textwrap.dedent(
            """
            assets: [ES]
            enable_short: false
            bins: [[0.0, 1.0]]
            time_of_day: "16:00"
            strategy_limit: 3
            segments: 2
            """
        ),
        encoding="utf-8",
    )
    output = tmp_path / "ranked.json"
    args = [*common, "datamine", str(mining_path), "--output", str(output), "--run-id", "run-1"]
    assert main(args) == 0
    assert capsys.readouterr().out.startswith("ES:")

    payload = json.loads(output.read_text(encoding="utf-8"))
    strategies = payload["results"][0]["strategies"]
    assert payload["results"][0]["symbol"] == "ES"
    assert 1 <= len(strategies) <= 3
    assert all(item["side"] == "long" for item in strategies)

    rows = load_optimization_rows(str(results_db), "run-1")
    assert [row["strategy"] for row in rows] == [item["strategy"] for item in strategies]
