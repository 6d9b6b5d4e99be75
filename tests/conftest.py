"""
Shared pytest fixtures and configuration for taskspine tests.

This module provides:
- Registry cleanup fixtures for test isolation
- Settings cache cleanup
- Auto-marking of tests by location
"""

from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from taskspine.core.settings import clear_settings_cache
from taskspine.scheduling.declarations import clear_registry


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path) or "cli" in test_path.parts:
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Registry / Settings Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_task_registry_fixture() -> Generator[None, None, None]:
    """
    Clear the global declaration registry and resolver around each test.

    Decorated task classes register into module-level defaults, so without
    this one test's @scheduled class would show up in the next test's list.
    """
    clear_registry()
    yield
    clear_registry()


@pytest.fixture(autouse=True)
def clean_settings_fixture(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Isolate settings from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TASKSPINE_DATABASE_PATH", str(tmp_path / "scheduler.db"))
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.contextvars.clear_contextvars()
