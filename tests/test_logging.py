"""Tests for logging utilities."""

import logging
import sys
from io import StringIO

from npbayes.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)


def test_get_logger_returns_logger():
    """Test that get_logger returns a namespaced logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "npbayes.test_module"


def test_get_logger_keeps_package_names():
    """Module names inside the package are not prefixed twice."""
    assert get_logger("npbayes.probabilistic.dpmm").name == "npbayes.probabilistic.dpmm"
    assert get_logger().name == "npbayes"


def test_get_logger_caching():
    """Test that get_logger caches loggers."""
    logger1 = get_logger("test_module")
    logger2 = get_logger("test_module")
    assert logger1 is logger2


def test_get_logger_different_modules():
    """Test that different modules get different loggers."""
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")
    assert logger1 is not logger2
    assert logger1.name != logger2.name


def test_logger_output():
    """Test that logger outputs messages correctly."""
    old_stderr = sys.stderr
    sys.stderr = captured = StringIO()

    try:
        configure_logging(level=logging.INFO, stream=captured)
        logger = get_logger("test_module")
        logger.info("Test message")

        output = captured.getvalue()
        assert "Test message" in output
        assert "[INFO] npbayes.test_module" in output
    finally:
        sys.stderr = old_stderr
        configure_logging(level=logging.WARNING)


def test_set_log_level():
    """Test that set_log_level updates logger levels."""
    logger = get_logger("test_module")

    set_log_level(logging.INFO)
    assert logger.level <= logging.INFO

    set_log_level(logging.WARNING)
    assert logger.level <= logging.WARNING


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")

    try:
        set_log_level("DEBUG")
        assert logger.level == logging.DEBUG

        set_log_level("ERROR")
        assert logger.level == logging.ERROR
    finally:
        set_log_level(logging.WARNING)


def test_configure_logging():
    """Test configure_logging function."""
    stream = StringIO()
    logger = get_logger("test_module")
    try:
        configure_logging(level=logging.DEBUG, stream=stream)

        logger.debug("Debug message")

        assert "Debug message" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_configure_logging_custom_format():
    """A custom format string is applied to every cached logger."""
    stream = StringIO()
    logger = get_logger("fmt_module")
    try:
        configure_logging(level=logging.INFO, format_string="%(name)s|%(message)s", stream=stream)
        logger.info("hello")
        assert "npbayes.fmt_module|hello" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_logger_does_not_propagate():
    """Test that loggers don't propagate to root logger."""
    logger = get_logger("test_module")
    assert logger.propagate is False


def test_sampler_logs_burn_in(three_blobs):
    """The MCMC driver reports burn-in completion at INFO level."""
    from npbayes.probabilistic import (
        DirichletProcessMixtureModel,
        MCMCConfig,
        MultivariateMeanCovarianceUpdater,
    )

    stream = StringIO()
    dpmm = DirichletProcessMixtureModel(
        MultivariateMeanCovarianceUpdater(2), mcmc_config=MCMCConfig(2, 1, 1)
    )
    try:
        configure_logging(level=logging.INFO, stream=stream)
        dpmm.initialize(three_blobs)
        assert "Burn-in finished after 2 iterations" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)
