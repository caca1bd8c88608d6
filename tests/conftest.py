"""Shared pytest fixtures for the setup-yarn suite."""

from __future__ import annotations

import logging

import pytest

from SetupYarn.Action.logging_utils import LOGGER_NAME


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo ``setup_logging`` so ``caplog`` keeps seeing package records."""

    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_setup_yarn_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def runner_env(tmp_path, monkeypatch):
    """Point ``GITHUB_PATH`` and ``HOME`` at scratch locations."""

    github_path = tmp_path / "github_path"
    github_path.touch()
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("GITHUB_PATH", str(github_path))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("PATH", "/usr/bin")
    return github_path
