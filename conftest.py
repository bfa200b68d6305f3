"""Test environment for the whole tree.

Settings() is built at import time and needs the POSTGRES_* variables, so
they are set here before any test module imports match_chat.
"""
from __future__ import annotations

import os
from pathlib import Path

ENV_FILE = Path(__file__).resolve().parent / ".env.test"

TEST_DEFAULTS = {
    "POSTGRES_USER": "test",
    "POSTGRES_PASSWORD": "test",
    "POSTGRES_DB": "match_chat_test",
    "JWT_SECRET": "test-secret-with-at-least-32-bytes!!",
    "DB_CREATE_SCHEMA": "false",
}


def _read_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for raw in path.read_text().splitlines():
        raw = raw.strip()
        if raw and not raw.startswith("#") and "=" in raw:
            key, _, value = raw.partition("=")
            values[key.strip()] = value.strip()
    return values


for _key, _value in {**TEST_DEFAULTS, **_read_env_file(ENV_FILE)}.items():
    os.environ.setdefault(_key, _value)
