"""Shared test fixtures for mxrequest.

Provides isolation for the global output manager, the ``mxrequest`` logger,
and the XDG configuration directories. These fixtures are discovered by
pytest automatically.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from mxrequest.output import reset_output


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and logger handlers after every test.

    The OutputManager and the Rich log handler cache references to
    sys.stdout/sys.stderr at creation time. When Typer's CliRunner redirects
    those streams and the test finishes, the cached references become stale.
    """
    yield
    reset_output()
    logger = logging.getLogger("mxrequest")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect config and data dirs to *tmp_path* and clear mxrequest env vars."""
    monkeypatch.setattr("mxrequest.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MXREQUEST_PROFILE", raising=False)
    monkeypatch.delenv("MXREQUEST_HOMESERVER", raising=False)
    monkeypatch.delenv("MATRIX_ACCESS_TOKEN", raising=False)
    return tmp_path
