"""Tests for the CLI entry point."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from nsc.cli import main
from nsc.errors import TransportError

PUBLIC = "https://rpc.example.org"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _no_sleep():
    with patch("nsc.comparator.time.sleep") as mock_sleep:
        yield mock_sleep


class TestCliHelp:
    """--help / -h produce usage information."""

    def test_help_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Check node sync status" in result.output

    def test_short_help(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["-h"])
        assert result.exit_code == 0
        assert "--public-rpc" in result.output

    def test_help_lists_exit_codes(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--help"])
        assert "Exit codes" in result.output
        assert "Still syncing" in result.output

    def test_help_shows_options(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--help"])
        for flag in (
            "--local-rpc",
            "--protocol",
            "--block-lag",
            "--sample-secs",
            "--container",
            "--compose-service",
            "--env-file",
            "--no-install",
            "--format",
        ):
            assert flag in result.output


class TestUsageErrors:
    """Invalid invocations exit 2."""

    def test_missing_public_rpc(self, runner: CliRunner) -> None:
        result = runner.invoke(main, [])
        assert result.exit_code == 2
        assert "--public-rpc is required" in result.output
        assert "Final status: error" in result.output

    def test_unknown_flag(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--bogus"])
        assert result.exit_code == 2
        assert "No such option" in result.output

    def test_invalid_protocol(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--public-rpc", PUBLIC, "-p", "solana"])
        assert result.exit_code == 2
        assert "Invalid value" in result.output

    def test_negative_block_lag(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--public-rpc", PUBLIC, "--block-lag", "-1"])
        assert result.exit_code == 2

    def test_zero_sample_secs(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--public-rpc", PUBLIC, "--sample-secs", "0"])
        assert result.exit_code == 2

    def test_missing_config_file(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main, ["--public-rpc", PUBLIC, "--config", "/nonexistent/config.yaml"]
        )
        assert result.exit_code == 2
        assert "Config file not found" in result.output

    def test_non_string_config_value(self, runner: CliRunner, tmp_path) -> None:
        cfg_file = tmp_path / "c.yaml"
        cfg_file.write_text("public_rpc: 8545\n", encoding="utf-8")
        result = runner.invoke(main, ["--config", str(cfg_file)])
        assert result.exit_code == 2
        assert "config error: public_rpc" in result.output

    def test_undecodable_env_file(self, runner: CliRunner, tmp_path) -> None:
        env_file = tmp_path / "bad.env"
        env_file.write_bytes(b"PUBLIC_RPC=\xff\xfe\n")
        result = runner.invoke(main, ["--env-file", str(env_file)])
        assert result.exit_code == 2
        assert "Cannot read env file" in result.output

    def test_protocol_from_env_file_is_validated(
        self, runner: CliRunner, tmp_path
    ) -> None:
        (tmp_path / ".env").write_text("PROTOCOL=solana\n", encoding="utf-8")
        result = runner.invoke(main, ["--public-rpc", PUBLIC])
        assert result.exit_code == 2
        assert "Unknown protocol 'solana'" in result.output

    @patch("nsc.executor.subprocess.run")
    def test_compose_service_not_running(
        self, mock_run: MagicMock, runner: CliRunner
    ) -> None:
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)
        result = runner.invoke(
            main, ["--public-rpc", PUBLIC, "--compose-service", "gwemix"]
        )
        assert result.exit_code == 2
        assert "Compose service 'gwemix' not found or not running" in result.output


class TestScenarios:
    """End-to-end runs with a scripted adapter."""

    def test_in_sync(self, runner: CliRunner, fake_adapter) -> None:
        adapter = fake_adapter(
            {"local": [1000], "public": [1000]},
            references={("local", 1000): "0xH", ("public", 1000): "0xH"},
        )
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC])

        assert result.exit_code == 0
        assert "eth_syncing: false" in result.output
        assert "Final status: in sync" in result.output

    def test_within_threshold_is_in_sync(self, runner: CliRunner, fake_adapter) -> None:
        adapter = fake_adapter({"local": [998], "public": [1000]})
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC])
        assert result.exit_code == 0

    def test_syncing(self, runner: CliRunner, fake_adapter, _no_sleep) -> None:
        adapter = fake_adapter(
            {"local": [900, 950], "public": [1000]},
            references={("local", 900): "0xA", ("public", 900): "0xA"},
            syncing=True,
        )
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC, "--sample-secs", "5"])

        assert result.exit_code == 1
        assert "local behind" in result.output
        assert "blocks/sec" in result.output
        assert "Final status: syncing" in result.output
        _no_sleep.assert_called_once_with(5)

    def test_diverged(self, runner: CliRunner, fake_adapter) -> None:
        adapter = fake_adapter(
            {"local": [1000], "public": [1000]},
            references={("local", 1000): "0xA", ("public", 1000): "0xB"},
        )
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC])

        assert result.exit_code == 2
        assert "Reference mismatch at block 1000: local 0xA != public 0xB" in result.output
        assert "Final status: error (diverged)" in result.output

    def test_public_unreachable(self, runner: CliRunner, fake_adapter) -> None:
        adapter = fake_adapter(
            {
                "local": [1000],
                "public": [TransportError("public", PUBLIC, "connection refused")],
            }
        )
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC])

        assert result.exit_code == 2
        assert "public transport error" in result.output
        assert "Final status: error" in result.output

    def test_json_format_error(self, runner: CliRunner, fake_adapter) -> None:
        adapter = fake_adapter(
            {
                "local": [1000],
                "public": [TransportError("public", PUBLIC, "connection refused")],
            }
        )
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC, "--format", "json"])

        assert result.exit_code == 2
        assert "Final status" not in result.output
        # stderr diagnostic first, then the JSON document on stdout
        data = json.loads(result.output[result.output.index("{"):])
        assert data["verdict"] == "transport_error"
        assert data["error"]["label"] == "public transport error"

    def test_json_format(self, runner: CliRunner, fake_adapter) -> None:
        adapter = fake_adapter(
            {"local": [1000], "public": [1000]},
            references={("local", 1000): "0xH", ("public", 1000): "0xH"},
        )
        with patch("nsc.cli.get_adapter", return_value=adapter):
            result = runner.invoke(main, ["--public-rpc", PUBLIC, "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["verdict"] == "in_sync"
        assert data["references"]["local"] == "0xH"

    def test_env_file_supplies_settings(
        self, runner: CliRunner, fake_adapter, tmp_path
    ) -> None:
        env_file = tmp_path / "node.env"
        env_file.write_text(
            f"PROTOCOL=cosmos\nPUBLIC_RPC={PUBLIC}\nRPC_PORT=36657\n", encoding="utf-8"
        )
        adapter = fake_adapter({"local": [10], "public": [10]})
        with patch("nsc.cli.get_adapter", return_value=adapter) as mock_get:
            result = runner.invoke(main, ["--env-file", str(env_file), "-f", "json"])

        assert result.exit_code == 0
        assert mock_get.call_args.args[0] == "cosmos"
        data = json.loads(result.output)
        assert data["local"]["url"] == "http://127.0.0.1:36657"
        assert data["public"]["url"] == PUBLIC

    def test_cli_overrides_env_file(
        self, runner: CliRunner, fake_adapter, tmp_path
    ) -> None:
        (tmp_path / ".env").write_text("PROTOCOL=cosmos\n", encoding="utf-8")
        adapter = fake_adapter({"local": [10], "public": [10]})
        with patch("nsc.cli.get_adapter", return_value=adapter) as mock_get:
            result = runner.invoke(main, ["--public-rpc", PUBLIC, "-p", "SUI"])

        assert result.exit_code == 0
        assert mock_get.call_args.args[0] == "sui"
