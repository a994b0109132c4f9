"""Shared test fixtures for twistsync tests."""

import logging
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

from twistsync.core.config_manager import ConfigManager, DEFAULT_CONFIG
from twistsync.core.types import ChannelDTO, CommentDTO, Settings, ThreadDTO


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset the config singleton and logger handlers after each test."""
    yield
    ConfigManager.reset()
    logger = logging.getLogger("twistsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real credentials out of tests."""
    for name in ("TWIST_TOKEN", "TWIST_WORKSPACE_ID", "TWIST_WORKSPACE_DIR", "TWISTSYNC_CONFIG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def config_file(tmp_dir):
    """Create a temporary settings.yaml with test credentials and return its path."""
    config_path = tmp_dir / "config" / "settings.yaml"
    config_path.parent.mkdir(parents=True)

    config = ConfigManager._deep_copy(DEFAULT_CONFIG)
    config["twist"]["token"] = "test-token"
    config["twist"]["workspace_id"] = 42
    config["sync"]["workspace_dir"] = str(tmp_dir / "workspace")

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    return config_path


@pytest.fixture
def settings(tmp_dir):
    return Settings(
        token="test-token",
        workspace_id=42,
        workspace_dir=tmp_dir / "workspace",
    )


def make_channel(channel_id=111, name="General", archived=False):
    return ChannelDTO(id=channel_id, name=name, workspace_id=42, archived=archived)


def make_thread(thread_id=67890, title="Welcome", last_updated_ts=100,
                content="Hello team.", channel_id=111):
    return ThreadDTO(
        id=thread_id, title=title, content=content,
        creator=7, creator_name="Alice", channel_id=channel_id,
        workspace_id=42, posted_ts=1704110400, last_updated_ts=last_updated_ts,
    )


def make_comment(comment_id=555, content="First!", thread_id=67890):
    return CommentDTO(
        id=comment_id, thread_id=thread_id, creator=8,
        creator_name="Bob", content=content, posted_ts=1704114000,
    )
