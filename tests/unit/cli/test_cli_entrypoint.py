from typer.testing import CliRunner

from bundleguard.cli.entrypoint import app
from bundleguard.cli.exceptions import EXIT_CONFIGURATION_ERROR

runner = CliRunner()


class TestEntrypoint:
    """Test command wiring through the typer application."""

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("protect", "install", "status"):
            assert command in result.output

    def test_settings_option_reaches_commands(self, settings_file, installed_tool):
        result = runner.invoke(app, ["--settings", str(settings_file), "status"])

        assert result.exit_code == 0
        assert "7.9.0" in result.output

    def test_protect_through_app(self, settings_file, installed_tool, build_dir):
        result = runner.invoke(
            app,
            ["-s", str(settings_file), "protect", str(build_dir)],
            env={"PROTECT_LICENSE_TOKEN": "ABC123"},
        )

        assert result.exit_code == 0
        assert (build_dir / "js" / "app.js").read_text() == "/* protected */app();"

    def test_protect_missing_build_dir(self, settings_file, tmp_path):
        result = runner.invoke(app, ["-s", str(settings_file), "protect", str(tmp_path / "missing")])
        assert result.exit_code == 2

    def test_install_exit_code(self, settings_file):
        result = runner.invoke(app, ["-s", str(settings_file), "install"])
        assert result.exit_code == EXIT_CONFIGURATION_ERROR
