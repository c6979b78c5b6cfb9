import os

import pytest
from loguru import logger


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow stress tests",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: mark slow stress tests (use --run-slow)"
    )


def pytest_collection_modifyitems(config, items):
    # Slow tests - CLI flag or env var
    run_slow = (
        config.getoption("--run-slow")
        or os.getenv("MINDRANK_RUN_SLOW_TESTS") == "1"
    )
    if not run_slow:
        skip_slow = pytest.mark.skip(
            reason="slow tests skipped (use --run-slow or MINDRANK_RUN_SLOW_TESTS=1)"
        )
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Ensure tests run with a clean environment.

    - Unset MINDRANK_* variables that can alter settings defaults.
    - Unset common LLM API keys to avoid accidental network init.
    """
    to_clear = [k for k in os.environ.keys() if k.startswith("MINDRANK_")]
    to_clear += ["OPENAI_API_KEY", "OPENAI_BASE_URL"]
    for k in to_clear:
        monkeypatch.delenv(k, raising=False)
    yield


@pytest.fixture
def log_messages():
    """Capture loguru output as a list of formatted messages."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda m: messages.append(str(m)), level="DEBUG", format="{level} {message}"
    )
    yield messages
    logger.remove(handler_id)
