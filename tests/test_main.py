from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from modstream import main as cli


@pytest.fixture(autouse=True)
def keep_logging_config(monkeypatch):
    monkeypatch.setattr(cli, "configure_all", lambda level, json_format: None)


def test_serve_arguments():
    args = cli.build_parser().parse_args(
        ["serve", "--config", "site.yaml", "--port", "9000", "--dry-run"]
    )

    assert args.command == "serve"
    assert args.config == "site.yaml"
    assert args.port == 9000
    assert args.dry_run


def test_simulate_defaults():
    args = cli.build_parser().parse_args(["simulate"])

    assert (args.host, args.port) == ("0.0.0.0", 5020)
    assert (args.start_address, args.count) == (0, 10)


def test_init_config_writes_defaults(tmp_path: Path, capsys):
    path = tmp_path / "config.yaml"

    assert cli.main(["init-config", "--config", str(path)]) == 0

    data = yaml.safe_load(path.read_text())
    assert data["server_ip"] == "localhost"
    assert data["protocol"] == "tcp"


def test_init_config_refuses_to_overwrite(tmp_path: Path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("server_ip: keep-me\n")

    assert cli.main(["init-config", "--config", str(path)]) == 1
    assert "keep-me" in path.read_text()

    assert cli.main(["init-config", "--config", str(path), "--force"]) == 0
    assert "keep-me" not in path.read_text()


def test_dry_run_prints_summary_without_serving(tmp_path: Path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("server_ip: 10.1.2.3\nstart_address: 4000\nquantity: 4\n")

    with patch("asyncio.run") as run:
        code = cli.main(["serve", "--config", str(path), "--port", "9100", "--dry-run"])

    out = capsys.readouterr().out
    assert code == 0
    run.assert_not_called()
    assert "TCP 10.1.2.3:5020" in out
    assert "4000-4003" in out
    assert ":9100" in out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_simulate_rejects_range_past_address_space(capsys):
    assert cli.main(["simulate", "--start-address", "65534", "--count", "4"]) == 1
    assert "does not fit" in capsys.readouterr().out
