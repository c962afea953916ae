"""
Tests for logging setup.
"""

import logging

import pytest

from aao_itest.core.observability.logging_config import parse_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    botocore_level = logging.getLogger("botocore").level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("botocore").setLevel(botocore_level)


class TestParseLevel:
    @pytest.mark.parametrize(
        "name, level",
        [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), ("", logging.INFO),
         (None, logging.INFO), ("chatty", logging.INFO)],
    )
    def test_levels(self, name, level):
        assert parse_level(name) == level


class TestSetupLogging:
    def test_default_is_info_on_stderr(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        [handler] = root.handlers
        assert isinstance(handler, logging.StreamHandler)

    def test_idempotent(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_third_party_quieted(self):
        setup_logging("INFO")
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_debug_leaves_third_party_alone(self):
        logging.getLogger("botocore").setLevel(logging.NOTSET)
        setup_logging("DEBUG")
        assert logging.getLogger("botocore").level == logging.NOTSET

    def test_log_file(self, tmp_path):
        path = tmp_path / "itest.log"
        setup_logging("WARNING", log_file=str(path), log_file_level="DEBUG")

        logging.getLogger("aao_itest.test").debug("checking spec.customTags")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "checking spec.customTags" in path.read_text()

    @pytest.mark.parametrize(
        "level, fmt",
        [("DEBUG", "%(name)s:%(lineno)d"), ("INFO", "%(asctime)s %(message)s"),
         ("ERROR", "%(levelname)s %(message)s")],
    )
    def test_console_format_follows_level(self, level, fmt):
        setup_logging(level)
        [handler] = logging.getLogger().handlers
        assert fmt in handler.formatter._fmt
