"""
Tests for the hmmkit logging setup.
"""

import logging

import pytest

from hmmkit.logger import (
    ROOT_LOGGER_NAME,
    disable_file_logging,
    enable_file_logging,
    get_logger,
    set_log_level,
)


def file_handlers():
    return [h for h in logging.getLogger(ROOT_LOGGER_NAME).handlers if isinstance(h, logging.FileHandler)]


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    disable_file_logging()
    set_log_level('WARNING')


def test_module_loggers_are_children_of_root():
    assert get_logger('hmmkit.calculators.viterbi').name == 'hmmkit.calculators.viterbi'
    assert get_logger('custom').name == 'hmmkit.custom'
    assert logging.getLogger(ROOT_LOGGER_NAME).propagate is False


def test_file_logging_writes_records(temp_dir):
    set_log_level('INFO')
    path = enable_file_logging(str(temp_dir / "nested" / "hmmkit.log"))

    get_logger('test').info("written to file")
    for handler in file_handlers():
        handler.flush()

    assert path.exists()
    assert "written to file" in path.read_text()


def test_enabling_same_file_twice_keeps_one_handler(temp_dir):
    enable_file_logging(str(temp_dir / "a.log"))
    enable_file_logging(str(temp_dir / "a.log"))

    assert len(file_handlers()) == 1


def test_enabling_another_file_replaces_handler(temp_dir):
    enable_file_logging(str(temp_dir / "a.log"))
    enable_file_logging(str(temp_dir / "b.log"))

    handlers = file_handlers()
    assert len(handlers) == 1
    assert handlers[0].baseFilename.endswith("b.log")


def test_disable_file_logging(temp_dir):
    enable_file_logging(str(temp_dir / "a.log"))
    disable_file_logging()

    assert file_handlers() == []
