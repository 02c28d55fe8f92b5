"""
Configuration Module - Runtime settings for the telemetry console

Handles:
- Default values for every tunable
- Loading overrides from a .env file and SNITAP_* environment variables
- Validation of the values through pydantic
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


ENV_PREFIX = "SNITAP_"


class Settings(BaseModel):
    """Settings shared by the feed, the pipeline and the UI"""

    feed_url: str = "ws://127.0.0.1:7000/api/ws/logs"
    api_url: str = "http://127.0.0.1:7000"

    # Retention and viewport geometry
    capacity: int = Field(default=1000, gt=0)
    row_height: int = Field(default=1, gt=0)
    overscan: int = Field(default=5, ge=0)
    follow_threshold: int = Field(default=1, ge=0)

    # Timers (seconds)
    poll_interval: float = Field(default=0.1, gt=0)
    device_refresh_interval: float = Field(default=30.0, gt=0)
    http_timeout: float = Field(default=10.0, gt=0)

    # Reconnection
    auto_reconnect: bool = True
    max_reconnect_delay: float = Field(default=10.0, gt=0)

    # Files
    asn_file: Optional[Path] = None
    state_file: Path = Path.home() / ".snitap" / "state.json"
    log_dir: Path = Path(__file__).parent / "app_log"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment

    Args:
        env_file: Optional path to a .env file (default: search from cwd)

    Returns:
        Validated Settings instance
    """
    load_dotenv(env_file)

    overrides = {}
    for name in Settings.model_fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            overrides[name] = value

    # pydantic coerces the strings ("1000", "true", "/tmp/x") to field types
    return Settings(**overrides)
