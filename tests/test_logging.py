import logging

import pytest

from tempchat.core.logging import LIBRARY_LEVELS, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_levels():
    names = [None, *LIBRARY_LEVELS]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestSetupLogging:
    def test_level_from_argument(self):
        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        # Libraries stay capped even when the app logs at DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_error_level_also_quiets_libraries(self):
        setup_logging("ERROR")
        assert logging.getLogger("httpx").level == logging.ERROR

    def test_get_logger(self):
        assert get_logger("tempchat.test").name == "tempchat.test"
