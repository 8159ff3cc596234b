from __future__ import annotations

import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SDK_SRC = BASE_DIR / "src"

for path in (SDK_SRC, BASE_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

API_BASE_URL = "https://api.example.com"


@pytest.fixture
def till_env(monkeypatch):
    for key in ("TILL_ENV", "TILL_API_BASE_URL_DEV", "TILL_TIMEOUT_SECONDS", "TILL_CONNECT_TIMEOUT_SECONDS"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TILL_API_BASE_URL", API_BASE_URL)
    monkeypatch.setenv("TILL_RETRY_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("TILL_RETRIES", "2")
    return API_BASE_URL
