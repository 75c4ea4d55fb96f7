"""Test configuration helpers for ensuring local imports resolve."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_project_root_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_root_on_path()

from chaincrf.config import CRFConfig  # noqa: E402
from chaincrf.types import Instance  # noqa: E402


@pytest.fixture
def quiet_config() -> CRFConfig:
    return CRFConfig(verbose=False, max_iterations=200)


@pytest.fixture
def toy_corpus() -> list[Instance]:
    return [
        Instance.from_words(["the", "dog", "barks"], ["DT", "N", "V"]),
        Instance.from_words(["a", "cat", "sleeps"], ["DT", "N", "V"]),
        Instance.from_words(["dogs", "bark"], ["N", "V"]),
    ]
