import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Storefront environment to run tests under",
    )


def pytest_sessionstart(session):
    """Pin the environment before anything reads it.

    Storage and gateway factories fall back to these when a test does not
    inject its own adapters, so nothing touches the real state file.
    """
    os.environ["STOREFRONT_ENV"] = session.config.option.env
    os.environ["STOREFRONT_STORAGE"] = "memory"
    os.environ["PAYMENT_GATEWAY"] = "fake"


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
