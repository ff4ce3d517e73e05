"""Tests for tool configuration and log formatting."""

import io
import logging

import pytest

from natsforge.colorlog import CYAN, RESET, CustomFormatter, attach
from natsforge.config import Config
from natsforge.models import NatsforgeError
from natsforge.validate import PeerPolicy


class TestConfig:
    def test_defaults_when_missing(self, tmp_path):
        cfg = Config.load(str(tmp_path / "none.toml"))
        assert cfg == Config()
        assert cfg.memory_resolver
        assert cfg.policy is PeerPolicy.UNION

    def test_load(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('nsc = "/opt/nsc"\nretries = 5\npeer_policy = "strict"\n')
        cfg = Config.load(str(path))
        assert cfg.nsc == "/opt/nsc"
        assert cfg.retries == 5
        assert cfg.timeout == 30.0
        assert cfg.policy is PeerPolicy.STRICT

    def test_broken_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("nsc = [")
        assert Config.load(str(path)) == Config()

    def test_unknown_policy_is_an_error(self):
        with pytest.raises(NatsforgeError, match="unknown peer_policy 'strcit'"):
            Config(peer_policy="strcit").policy

    def test_url_resolver(self):
        assert not Config(resolver="http://localhost:9090").memory_resolver


def record(level, msg):
    return logging.LogRecord("natsforge", level, __file__, 1, msg, None, None)


class TestColorLog:
    def test_colored(self):
        text = CustomFormatter().format(record(logging.INFO, "hello"))
        assert text.startswith(CYAN)
        assert text.endswith(RESET)
        assert "INFO - hello" in text

    def test_plain(self):
        text = CustomFormatter(color=False).format(record(logging.ERROR, "boom"))
        assert "\x1b[" not in text
        assert "ERROR - boom" in text

    def test_attach_without_tty(self):
        handler = logging.StreamHandler(io.StringIO())
        attach(handler)
        assert isinstance(handler.formatter, CustomFormatter)
        assert not handler.formatter.color
