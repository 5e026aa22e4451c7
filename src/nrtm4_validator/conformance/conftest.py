"""Fixtures for running the bundled NRTMv4 record cases with --pyargs."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Set

import pytest

_FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Root of the per-category record files (notification/, snapshot/, delta/)."""
    return _FIXTURES_DIR


@pytest.fixture
def listed_record_files(fixtures_dir: Path) -> Set[str]:
    """Record file paths named in manifest.json, relative to *fixtures_dir*."""
    manifest = json.loads((fixtures_dir / "manifest.json").read_text(encoding="utf-8"))
    return {entry["path"] for entry in manifest["fixtures"]}


@pytest.fixture
def record_files_on_disk(fixtures_dir: Path) -> Set[str]:
    """Every record file shipped under *fixtures_dir*, as manifest-style paths."""
    return {
        path.relative_to(fixtures_dir).as_posix()
        for path in fixtures_dir.rglob("*.json")
        if path.name != "manifest.json"
    }
