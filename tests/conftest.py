import threading

import pytest

from SNITAP.config import Settings


SAMPLE_LINE = (
    "2025/10/13 22:41:12.466126 [INFO] SNI TCP: assets.alicdn.com "
    "192.168.1.100:38894 -> 92.123.206.67:443"
)


def make_line(domain="example.com", protocol="TCP", target=False,
              source="192.168.1.100:38894", destination="92.123.206.67:443",
              timestamp="2025/10/13 22:41:12.466126"):
    marker = " TARGET" if target else ""
    return f"{timestamp} [INFO] SNI {protocol}{marker}: {domain} {source} -> {destination}"


@pytest.fixture
def line_factory():
    return make_line


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in Settings.model_fields:
        monkeypatch.delenv("SNITAP_" + name.upper(), raising=False)
    # keep load_dotenv away from any .env in the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def settings(tmp_path):
    return Settings(
        feed_url="ws://feed.test/api/ws/logs",
        api_url="http://api.test",
        state_file=tmp_path / "state.json",
        log_dir=tmp_path / "app_log",
        auto_reconnect=False,
    )


class FakeSocket:
    """Context-managed, iterable stand-in for a websocket connection"""

    def __init__(self, messages, block=False):
        self.messages = list(messages)
        self.block = block
        self.closed = threading.Event()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed.set()
        return False

    def __iter__(self):
        for message in self.messages:
            yield message
        if self.block:
            self.closed.wait(5)

    def close(self):
        self.closed.set()
