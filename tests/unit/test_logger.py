"""
Tests for logging setup.
"""

import logging

import pytest
from click.testing import CliRunner

from dutchbid.cli.main import cli
from dutchbid.utils.logger import DutchBidLogger, get_logger, setup_logging


@pytest.fixture
def fresh_logging(monkeypatch):
    """Allow setup to run again; restore the dutchbid logger afterwards."""
    root = logging.getLogger("dutchbid")
    handlers, level = list(root.handlers), root.level
    monkeypatch.setattr(DutchBidLogger, "_initialized", False)
    monkeypatch.setattr(DutchBidLogger, "_log_dir", None)

    yield root

    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _file_handlers(root):
    return [h for h in root.handlers if isinstance(h, logging.FileHandler)]


class TestSetup:
    """Tests for DutchBidLogger.setup."""

    def test_console_only_by_default(self, fresh_logging):
        setup_logging(level=logging.INFO)

        assert len(fresh_logging.handlers) == 1
        assert _file_handlers(fresh_logging) == []

    def test_log_to_file(self, fresh_logging, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(level=logging.INFO, log_dir=str(log_dir), log_to_file=True)

        get_logger("chain").warning("Stale read: auction end moved")
        for handler in _file_handlers(fresh_logging):
            handler.flush()

        text = (log_dir / "dutchbid.log").read_text()
        assert "[dutchbid.chain] WARNING" in text
        assert "Stale read: auction end moved" in text

    def test_file_respects_level(self, fresh_logging, tmp_path):
        setup_logging(level=logging.WARNING, log_dir=str(tmp_path), log_to_file=True)

        get_logger("scheduler").info("cycle done")
        for handler in _file_handlers(fresh_logging):
            handler.flush()

        assert "cycle done" not in (tmp_path / "dutchbid.log").read_text()

    def test_setup_runs_once(self, fresh_logging, tmp_path):
        setup_logging(level=logging.INFO)
        setup_logging(level=logging.DEBUG, log_dir=str(tmp_path), log_to_file=True)

        assert fresh_logging.level == logging.INFO
        assert _file_handlers(fresh_logging) == []


class TestCliLogDir:
    """Tests for the --log-dir option."""

    def test_log_dir_creates_log_file(self, fresh_logging, tmp_path):
        log_dir = tmp_path / "logs"

        result = CliRunner().invoke(
            cli,
            ["--log-dir", str(log_dir), "--env-file", str(tmp_path / "missing.env"), "status"],
            env={"DUTCHBID_AUCTION_ADDRESS": "0x123", "DUTCHBID_TOKEN_ADDRESS": None},
        )

        assert result.exit_code == 1
        assert (log_dir / "dutchbid.log").exists()
        assert len(_file_handlers(fresh_logging)) == 1
