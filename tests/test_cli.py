"""Tests for the command line interface."""

import argparse
import json

from sanity2strapi.cli import build_config, main


def namespace(**kwargs):
    defaults = {
        "config": None,
        "sanity_project": None,
        "sanity_export": None,
        "strapi_project": None,
        "strapi_url": None,
        "token": None,
        "asset_provider": None,
        "batch_size": None,
        "batch_delay": None,
        "retry_attempts": None,
        "retry_delay": None,
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestBuildConfig:
    """Test merging flags, config file and environment."""

    def test_defaults(self):
        config = build_config(namespace(), environ={})
        assert config.strapi_url == "http://localhost:1337"
        assert config.asset_provider == "strapi"
        assert config.batch_size == 10

    def test_environment(self):
        config = build_config(namespace(), environ={
            "STRAPI_URL": "http://env:1337",
            "STRAPI_API_TOKEN": "env-token",
            "CLOUDINARY_CLOUD_NAME": "demo",
        })
        assert config.strapi_url == "http://env:1337"
        assert config.api_token == "env-token"
        assert config.cloudinary == {"cloud_name": "demo"}

    def test_precedence(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "strapi_url": "http://file:1337",
            "batch_size": 25,
            "cloudinary": {"api_key": "file-key"},
        }))
        environ = {
            "STRAPI_URL": "http://env:1337",
            "STRAPI_API_TOKEN": "env-token",
            "CLOUDINARY_CLOUD_NAME": "demo",
        }

        config = build_config(namespace(config=str(path), batch_size=5), environ=environ)

        assert config.strapi_url == "http://file:1337"
        assert config.api_token == "env-token"
        assert config.batch_size == 5
        assert config.cloudinary == {"cloud_name": "demo", "api_key": "file-key"}


class TestMain:
    def test_no_command(self):
        assert main([]) == 1

    def test_analyze_writes_output(self, studio_path, export_path, tmp_path):
        output = tmp_path / "analysis.json"

        code = main([
            "analyze",
            "--sanity-project", str(studio_path),
            "--sanity-export", str(export_path),
            "--output", str(output),
        ])

        assert code == 0
        assert json.loads(output.read_text())["documentTypes"] == ["category", "person", "post", "siteSettings"]

    def test_content_without_token_fails_pre_flight(self, export_path, strapi_path, monkeypatch, capsys):
        monkeypatch.delenv("STRAPI_API_TOKEN", raising=False)

        code = main([
            "content",
            "--sanity-export", str(export_path),
            "--strapi-project", str(strapi_path),
        ])

        assert code == 1
        assert "API token" in capsys.readouterr().err

    def test_unreadable_config_file(self, tmp_path, capsys):
        path = tmp_path / "config.json"
        path.write_text("{broken")

        assert main(["schemas", "--config", str(path)]) == 1
        assert "could not read config" in capsys.readouterr().err
