"""Tests for the command line entrypoint."""

from __future__ import annotations

from pathlib import Path

import pytest

from taxledger.main import main

_HEADER = (
    "Date,Type,Sub Type,Action,Symbol,Instrument Type,Description,Value,Quantity,Average Price,"
    "Commissions,Fees,Multiplier,Root Symbol,Underlying Symbol,Expiration Date,Strike Price,Call or Put,Order #"
)
_STO_ROW = (
    "2022-01-03T15:29:49+0100,Trade,Sell to Open,SELL_TO_OPEN,SPY   220218P00430000,Equity Option,"
    "Sold 1 SPY 02/18/22 Put 430.00,455.00,1,455.00,0.00,0.00,100,SPY,SPY,2/18/22,430,PUT,"
)


def _configure_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point settings at a temporary transactions tree.

    Args:
        tmp_path: Pytest temporary directory.
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        Path: Transactions directory.
    """

    transactions_dir = tmp_path / "transactions"
    transactions_dir.mkdir()
    rate_file = tmp_path / "eurofxref-hist.csv"
    rate_file.write_text("Date,USD\n2022-01-03,1.25\n", encoding="utf-8")
    monkeypatch.setenv("TRANSACTIONS_DIR", str(transactions_dir))
    monkeypatch.setenv("EXCHANGE_RATE_FILE", str(rate_file))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'registry.db'}")
    return transactions_dir


def test_main_calculate_prints_report_and_report_reads_snapshot(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Run `calculate` then `report` against the same snapshot.

    Returns:
        None: Assertions validate printed totals.

    Raises:
        AssertionError: Raised when output differs.
    """

    transactions_dir = _configure_environment(tmp_path, monkeypatch)
    (transactions_dir / "2022.csv").write_text(f"{_HEADER}\n{_STO_ROW}\n", encoding="utf-8")

    main(["calculate"])
    calculate_output = capsys.readouterr().out
    main(["report"])
    report_output = capsys.readouterr().out

    assert "364.00" in calculate_output
    assert "Last transaction: 2022-01-03T15:29:49+01:00" in calculate_output
    assert report_output == calculate_output


def test_main_report_without_snapshot_exits_with_error(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _configure_environment(tmp_path, monkeypatch)

    with pytest.raises(SystemExit) as exit_info:
        main(["report"])

    assert exit_info.value.code == 1
    assert capsys.readouterr().out.startswith("SNAPSHOT_NOT_FOUND")


def test_main_calculate_failure_prints_error_code(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    transactions_dir = _configure_environment(tmp_path, monkeypatch)
    (transactions_dir / "2022.csv").write_text(
        f"{_HEADER}\n{_STO_ROW.replace('SELL_TO_OPEN', 'BUY_TO_CLOSE')}\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit) as exit_info:
        main(["calculate"])

    assert exit_info.value.code == 1
    assert capsys.readouterr().out.startswith("DATA_INCONSISTENCY:")


def test_main_invalid_settings_exit_with_status_one(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("REPORT_TIMEZONE", "Mars/Olympus_Mons")

    with pytest.raises(SystemExit) as exit_info:
        main(["calculate"])

    assert exit_info.value.code == 1
    assert "Startup configuration validation failed" in capsys.readouterr().out


def test_main_unlock_releases_stale_lock(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    _configure_environment(tmp_path, monkeypatch)

    main(["unlock"])

    assert "0 abandoned run(s) marked failed" in capsys.readouterr().out
