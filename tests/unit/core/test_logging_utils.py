"""Tests for logging setup."""

import logging

from closurecal.core.logging_utils import LOG_FORMAT, configure_logging


def _package_handlers(logger):
    return [h for h in logger.handlers if getattr(h, '_closurecal_handler', False)]


class TestConfigureLogging:

    def test_sets_level_from_name(self, package_logger):
        logger = configure_logging('debug')
        assert logger is package_logger
        assert logger.level == logging.DEBUG

    def test_repeated_calls_do_not_stack_handlers(self, package_logger):
        configure_logging()
        configure_logging()
        assert len(_package_handlers(package_logger)) == 1

    def test_writes_log_file(self, package_logger, tmp_path):
        log_file = tmp_path / 'logs' / 'calibration.log'
        configure_logging(logging.INFO, log_file=log_file)

        logging.getLogger('closurecal.inversion.driver').info("iteration done")
        for handler in _package_handlers(package_logger):
            handler.flush()

        assert len(_package_handlers(package_logger)) == 2
        text = log_file.read_text()
        assert "[INFO] [closurecal.inversion.driver] - iteration done" in text

    def test_format_fields(self):
        assert '%(levelname)s' in LOG_FORMAT
        assert '%(name)s' in LOG_FORMAT
