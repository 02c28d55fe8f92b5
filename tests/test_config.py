
import pytest
from pydantic import ValidationError

from SNITAP.config import Settings, load_settings


def test_defaults(clean_env):
    settings = load_settings()

    assert settings.capacity == 1000
    assert settings.overscan == 5
    assert settings.feed_url == "ws://127.0.0.1:7000/api/ws/logs"
    assert settings.auto_reconnect is True


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("SNITAP_CAPACITY", "250")
    clean_env.setenv("SNITAP_AUTO_RECONNECT", "false")
    clean_env.setenv("SNITAP_ASN_FILE", str(tmp_path / "asn.json"))

    settings = load_settings()

    assert settings.capacity == 250
    assert settings.auto_reconnect is False
    assert settings.asn_file == tmp_path / "asn.json"


def test_env_file(clean_env, tmp_path):
    # load_dotenv writes to os.environ; register the key so it is removed afterwards
    clean_env.setenv("SNITAP_FEED_URL", "unset")
    clean_env.delenv("SNITAP_FEED_URL")

    env_file = tmp_path / "snitap.env"
    env_file.write_text("SNITAP_FEED_URL=ws://engine:9000/api/ws/logs\n")

    settings = load_settings(str(env_file))
    assert settings.feed_url == "ws://engine:9000/api/ws/logs"


def test_invalid_values_raise(clean_env):
    clean_env.setenv("SNITAP_CAPACITY", "0")
    with pytest.raises(ValidationError):
        load_settings()

    with pytest.raises(ValidationError):
        Settings(row_height=0)
