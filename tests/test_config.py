import importlib
from pathlib import Path

import pytest

from udise_dashboard import config


def test_environment_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("UDISE_API_URL", "https://udise.example.org/api/")
    monkeypatch.setenv("UDISE_API_TIMEOUT", "3.5")
    monkeypatch.setenv("UDISE_PAGE_SIZE", "50")
    monkeypatch.setenv("UDISE_SESSION_FILE", str(tmp_path / "token.json"))
    try:
        reloaded = importlib.reload(config)

        assert reloaded.API_BASE_URL == "https://udise.example.org/api"
        assert reloaded.API_TIMEOUT == 3.5
        assert reloaded.DEFAULT_PAGE_SIZE == 50
        assert reloaded.SESSION_FILE == tmp_path / "token.json"
    finally:
        monkeypatch.undo()
        importlib.reload(config)


def test_staleness_windows():
    assert config.RECORDS_TTL == 300
    assert config.DISTRIBUTION_TTL == 120
    assert config.FILTER_OPTIONS_TTL == 600
    assert config.FILTER_OPTIONS_TTL > config.RECORDS_TTL > config.DISTRIBUTION_TTL


@pytest.mark.parametrize("raw, expected", [("500", 100), ("0", 1), ("abc", 20), ("25", 25)])
def test_page_size_from_environment_is_clamped(monkeypatch, raw, expected):
    monkeypatch.setenv("UDISE_PAGE_SIZE", raw)
    try:
        assert importlib.reload(config).DEFAULT_PAGE_SIZE == expected
    finally:
        monkeypatch.undo()
        importlib.reload(config)
