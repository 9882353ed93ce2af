"""
Pytest configuration and shared fixtures for Backtrack tests.

This module provides:
- Per-test temporary backup directories
- Backup generator fixtures
- Processor fixtures with a deterministic content sniffer
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from common.config import RunConfig  # noqa: E402
from processors.threema.processor import ThreemaProcessor  # noqa: E402
from tests.fixtures.media_samples import signature_sniff  # noqa: E402


# ============================================================================
# Session-scoped fixtures - created once per test session
# ============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


# ============================================================================
# Function-scoped fixtures - created fresh for each test
# ============================================================================


@pytest.fixture
def temp_export_dir(tmp_path) -> Path:
    """Create a temporary backup directory for a single test.

    This directory is automatically cleaned up after each test.
    """
    export_dir = tmp_path / "backup"
    export_dir.mkdir()
    return export_dir


@pytest.fixture
def scenario_backup(temp_export_dir) -> Path:
    """Create the reference backup (one contact, one conversation, one attachment)."""
    from tests.fixtures.generators import create_scenario_backup
    return create_scenario_backup(temp_export_dir)


@pytest.fixture
def run_config() -> RunConfig:
    """Default configuration without a run log file."""
    return RunConfig(log_to="")


@pytest.fixture
def processor(run_config) -> ThreemaProcessor:
    """Processor using the signature sniffer instead of libmagic."""
    return ThreemaProcessor(run_config, sniff=signature_sniff)
