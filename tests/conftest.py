"""Pytest configuration for mbarewrite tests.

Shared configuration for all test suites.
"""

import logging
import pathlib
import random
import sys

import pytest

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Add project root to path for all tests to ensure imports work
PROJECT_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

ALL_WIDTHS = (8, 16, 32, 64, 128)


@pytest.fixture
def rng() -> random.Random:
    """A seeded random source so that randomized tests are reproducible."""
    return random.Random(0x5EED)


@pytest.fixture
def ring8():
    from mbarewrite.core.bits import BitVectorRing

    return BitVectorRing(8)


@pytest.fixture(params=ALL_WIDTHS, ids=lambda w: f"w{w}")
def ring(request):
    from mbarewrite.core.bits import BitVectorRing

    return BitVectorRing(request.param)


@pytest.fixture
def user_dir(tmp_path, monkeypatch) -> pathlib.Path:
    """Point MBAREWRITE_HOME at a temporary directory."""
    home = tmp_path / "mbarewrite-home"
    monkeypatch.setenv("MBAREWRITE_HOME", str(home))
    return home
