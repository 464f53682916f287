import json

from click.testing import CliRunner

from blob_gateway.cli import cli


def test_show_config__masks_credentials(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"Database": "media", "Listen": ":8123"}), encoding="utf-8")

    result = CliRunner().invoke(cli, ["show-config", "--config", str(config_file)])

    assert result.exit_code == 0
    _, _, body = result.output.partition("\n")
    shown = json.loads(body)
    assert shown["database"] == "media"
    assert shown["listen_port"] == 8123
    assert shown["aws_secret_access_key"] in ("****", None)


def test_show_config__rejects_invalid_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"Mode": "sometimes"}), encoding="utf-8")

    result = CliRunner().invoke(cli, ["show-config", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "invalid configuration" in result.output
