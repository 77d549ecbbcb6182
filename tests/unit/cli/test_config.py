"""Unit tests for the config commands."""

from tidyctl.cli.main import app
from tidyctl.core.paths import get_config_path
from typer.testing import CliRunner

runner = CliRunner()


class TestConfigShow:
    """Tests for config show command."""

    def test_show_defaults(self) -> None:
        """Without a file the defaults are printed as TOML."""
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "No config file" in result.stdout
        assert "retention_days = 30" in result.stdout
        assert 'hash_algorithm = "sha256"' in result.stdout

    def test_show_file_values(self) -> None:
        """Values from config.toml are shown."""
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("retention_days = 7\n")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "Settings from" in result.stdout
        assert "retention_days = 7" in result.stdout

    def test_show_invalid_file(self) -> None:
        """A broken config file exits with code 1."""
        path = get_config_path()
        path.parent.mkdir(parents=True)
        path.write_text("retention_days = 0\n")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1
        assert "Invalid config content" in result.output


class TestConfigInit:
    """Tests for config init command."""

    def test_init_writes_defaults(self) -> None:
        """init creates config.toml."""
        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert "Wrote default settings" in result.stdout
        assert "retention_days = 30" in get_config_path().read_text()

    def test_init_refuses_overwrite(self) -> None:
        """An existing file is kept unless --force is given."""
        runner.invoke(app, ["config", "init"])
        get_config_path().write_text("retention_days = 7\n")

        refused = runner.invoke(app, ["config", "init"])
        forced = runner.invoke(app, ["config", "init", "--force"])

        assert refused.exit_code == 1
        assert "already exists" in refused.output
        assert forced.exit_code == 0
        assert "retention_days = 30" in get_config_path().read_text()
