"""Test configuration for pytest."""

import logging
import os
import pytest

from tiffolio.logging import reset_level


@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests to be minimal."""
    os.environ['TIFFOLIO_LOG_LEVEL'] = 'WARNING'

    logging.getLogger().setLevel(logging.WARNING)

    # The pipeline warns on every failed file; tests trigger those on purpose
    for logger_name in ['tiffolio.pipeline', 'tiffolio.pdf.assembler']:
        logging.getLogger(logger_name).setLevel(logging.ERROR)

    yield

    # --log-level in CLI tests changes every tiffolio logger
    reset_level()
    for name, logger in logging.root.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith('tiffolio'):
            logger.setLevel(logging.WARNING)
