"""Tests for configuration and the CLI."""

import pytest
from pydantic import ValidationError

from roomrelay import RelayConfig, __version__
from roomrelay.cli import build_parser, main
from roomrelay.config import DEV_ORIGINS, parse_origins
from roomrelay.prompts import SYSTEM_INSTRUCTION


class TestRelayConfig:
    """Tests for RelayConfig."""

    def test_defaults(self):
        config = RelayConfig.from_env({})

        assert config.jwt_secret == ""
        assert config.trigger == "@ai"
        assert config.temperature == 0.4
        assert config.generation_timeout == 60.0
        assert config.max_tokens is None
        assert config.cors_origins == DEV_ORIGINS
        assert config.system_instruction == SYSTEM_INSTRUCTION

    def test_from_environment(self):
        config = RelayConfig.from_env({
            "JWT_SECRET": "s3cret",
            "JWT_ALGORITHM": "HS256, HS512",
            "ROOMRELAY_MODEL": "gpt-4o-mini",
            "ROOMRELAY_TEMPERATURE": "0.1",
            "ROOMRELAY_MAX_TOKENS": "2048",
            "ROOMRELAY_TIMEOUT": "15",
            "ROOMRELAY_TRIGGER": "@bot",
            "ROOMRELAY_PROJECTS_FILE": "projects.json",
            "FRONTEND_URLS": "https://a.example.com, https://b.example.com",
        })

        assert config.jwt_secret == "s3cret"
        assert config.jwt_algorithms == ["HS256", "HS512"]
        assert config.model == "gpt-4o-mini"
        assert config.temperature == 0.1
        assert config.max_tokens == 2048
        assert config.generation_timeout == 15.0
        assert config.trigger == "@bot"
        assert config.projects_file == "projects.json"
        assert config.cors_origins == ["https://a.example.com", "https://b.example.com"]

    def test_production_has_no_origin_fallback(self):
        assert RelayConfig.from_env({"NODE_ENV": "production"}).cors_origins == []

    def test_invalid_timeout(self):
        with pytest.raises(ValidationError):
            RelayConfig(generation_timeout=0)

    def test_parse_origins(self):
        assert parse_origins(" a , ,b ") == ["a", "b"]
        assert parse_origins(None) == DEV_ORIGINS
        assert parse_origins("", production=True) == []


class TestCLI:
    """Tests for the command-line interface."""

    def test_version(self, capsys):
        assert main(["version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "serve" in capsys.readouterr().out

    def test_serve_arguments(self):
        args = build_parser().parse_args(["serve", "--port", "4000", "--log-level", "debug"])
        assert args.port == 4000
        assert args.host == "127.0.0.1"
        assert args.log_level == "debug"

    def test_serve_requires_secret(self, monkeypatch, capsys):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        assert main(["serve"]) == 1
        assert "JWT_SECRET" in capsys.readouterr().err
