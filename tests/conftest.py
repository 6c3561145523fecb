"""Pytest configuration for the ScriptRust test suite."""

from pathlib import Path

import pytest

from scriptrust import run_source

APPS_DIR = Path(__file__).parent / "apps"


@pytest.fixture
def run_lines():
    """Run source and return its stdout lines, failing on any runtime error."""

    def _run(source: str, **kwargs) -> list[str]:
        result = run_source(source, **kwargs)
        if result.errors:
            pytest.fail("\n".join(str(e) for e in result.errors))
        return result.lines

    return _run


@pytest.fixture
def app_source():
    """Load a program from tests/apps by stem."""

    def _load(stem: str) -> str:
        return (APPS_DIR / f"{stem}.rs").read_text()

    return _load
