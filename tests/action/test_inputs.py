"""Parsing of the ``INPUT_*`` variables."""

from __future__ import annotations

import pytest

from SetupYarn.Action import ActionInputs, get_inputs


@pytest.fixture(autouse=True)
def _clean_inputs(monkeypatch):
    monkeypatch.delenv("INPUT_VERSION", raising=False)
    monkeypatch.delenv("INPUT_CACHE", raising=False)


def test_defaults_when_unset():
    inputs = get_inputs()
    assert inputs.version == ""
    assert inputs.cache is False


def test_version_is_trimmed(monkeypatch):
    monkeypatch.setenv("INPUT_VERSION", "  4.1.0\n")
    assert get_inputs().version == "4.1.0"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("TRUE", True), (" True ", True), ("false", False), ("yes", False), ("", False)],
)
def test_cache_flag_only_accepts_true(monkeypatch, raw, expected):
    monkeypatch.setenv("INPUT_CACHE", raw)
    assert get_inputs().cache is expected


def test_constructor_accepts_python_values():
    inputs = ActionInputs(version="stable", cache=True)
    assert (inputs.version, inputs.cache) == ("stable", True)
