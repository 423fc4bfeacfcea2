from __future__ import annotations

import os
import signal
import threading

from diskburn import cli


def no_signals(monkeypatch):
    monkeypatch.setattr(cli, "install_signal_handlers", lambda cancel: None)


def test_small_run_exits_zero(tmp_path, monkeypatch, capsys):
    no_signals(monkeypatch)

    code = cli.main([str(tmp_path), "--free-mb", "10", "--unit-mb", "1", "--fill", "90",
                     "--block-size", "65536", "--workers", "2", "--allow-root"])

    output = capsys.readouterr().out
    assert code == 0
    assert "Verdict:                PASS" in output
    assert "Disk before:" in output and "Disk after:" in output
    assert os.listdir(tmp_path) == []


def test_keep_and_report_flags(tmp_path, monkeypatch):
    no_signals(monkeypatch)
    report = tmp_path / "report.txt"

    code = cli.main([str(tmp_path), "--free-mb", "4", "--unit-mb", "1", "--fill", "100",
                     "--columns", "2", "--workers", "1", "--keep", "--allow-root",
                     "--report", str(report)])

    assert code == 0
    assert not report.exists()
    assert sorted(os.listdir(tmp_path)) == ["1", "2", "reference.bin", "reference.bin.sha256"]


def test_bad_fill_is_precondition_exit(tmp_path, monkeypatch, capsys):
    no_signals(monkeypatch)
    code = cli.main([str(tmp_path), "--free-mb", "10", "--fill", "150", "--allow-root"])
    assert code == 2
    assert "ERROR" in capsys.readouterr().out


def test_missing_target_is_precondition_exit(tmp_path, monkeypatch, capsys):
    no_signals(monkeypatch)
    assert cli.main([str(tmp_path / "missing")]) == 2
    assert cli.main([str(tmp_path / "missing"), "--free-mb", "10"]) == 2

    output = capsys.readouterr().out
    assert "Disk before: unavailable" in output
    assert "Invalid directory" in output


def test_signal_handler_sets_cancel(monkeypatch):
    installed = {}
    monkeypatch.setattr(cli.signal, "signal", lambda sig, fn: installed.__setitem__(sig, fn))
    cancel = threading.Event()

    cli.install_signal_handlers(cancel)
    installed[signal.SIGINT](signal.SIGINT, None)

    assert cancel.is_set()
    assert set(installed) == {signal.SIGINT, signal.SIGTERM}
