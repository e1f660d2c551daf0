"""Pytest configuration and shared fixtures."""

import shutil
import tempfile
from pathlib import Path

import pytest

from cardinal.config import Settings
from cardinal.storage import RecordStore


@pytest.fixture
def temp_data_dir():
    """Create a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def minimal_settings(temp_data_dir):
    """Create minimal settings for testing."""
    return Settings(
        discord_token="test_token",
        discord_guild_id=None,
        command_prefix=">",
        data_path=str(temp_data_dir / "state.json"),
        moderation_log_channel_id=None,
        clean_scan_limit=100,
        temporary_message_seconds=0,
        api_enabled=True,
        api_host="127.0.0.1",
        api_port=8000,
        api_rate_limit="1000/minute",
    )


@pytest.fixture
def record_store(temp_data_dir):
    """A record store persisted inside the temporary directory."""
    return RecordStore(temp_data_dir / "state.json")
