"""
Tests for loading orchestration.

Focus Areas:
1. Source priority: defaults, environment, file, flags
2. Special flags (--config, --gen, --show, --version)
3. Switches, validation hooks and error reporting
"""

import io
from datetime import timedelta

import pytest
from pydantic import BaseModel

from cfgtree import (
    Config,
    LoaderOptions,
    TagUsageError,
    UnsupportedFormatError,
    load,
    load_env,
    load_file,
    load_flags,
)
from cfgtree.encoding.flag import FlagOptions
from cfgtree.render import RenderOptions


class Checked(BaseModel):
    workers: int = 1

    def validate_config(self):
        if self.workers < 1:
            raise ValueError("workers must be positive")


class ShowField(BaseModel):
    show: bool = False


class ConfigField(BaseModel):
    config: str = ""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "app.toml"
    path.write_text('run_duration = "3s"\n[db]\nhost = "file-host"\n', encoding="utf-8")
    return path


class TestPriority:
    """Test the order in which sources override each other."""

    def test_env_over_defaults(self, app_options):
        """Test environment values replace defaults."""
        Config(app_options).load(args=[], environ={"RUN_DURATION": "2s"})
        assert app_options.run_duration == timedelta(seconds=2)

    def test_file_over_env(self, app_options, config_file):
        """Test file values replace environment values."""
        Config(app_options).load(
            args=["-c", str(config_file)],
            environ={"RUN_DURATION": "2s", "UN": "env-user"},
        )
        assert app_options.run_duration == timedelta(seconds=3)
        assert app_options.db.host == "file-host"
        assert app_options.db.username == "env-user"

    def test_flags_over_file(self, app_options, config_file):
        """Test flags have the final word."""
        Config(app_options).load(
            args=["--config", str(config_file), "--run-duration", "4s", "--db-host", "flag-host"],
            environ={"RUN_DURATION": "2s"},
        )
        assert app_options.run_duration == timedelta(seconds=4)
        assert app_options.db.host == "flag-host"

    def test_multiple_targets(self, app_options):
        """Test several targets load together."""
        checked = Checked()
        Config(app_options, checked).load(args=["--workers", "3"], environ={"UN": "u"})
        assert checked.workers == 3
        assert app_options.db.username == "u"


class TestSpecialFlags:
    """Test the flags every loader provides."""

    def test_gen(self, app_options):
        """Test --gen prints a template and exits."""
        output = io.StringIO()
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).load(args=["--gen", "toml"], environ={}, output=output)
        assert exc_info.value.code == 0
        assert 'run_duration = "PT1S"' in output.getvalue()
        assert "[db]" in output.getvalue()

    def test_gen_env(self, app_options):
        """Test the env template can be generated."""
        output = io.StringIO()
        with pytest.raises(SystemExit):
            Config(app_options).load(args=["-g", "env"], environ={}, output=output)
        assert "export UN=default_username\n" in output.getvalue()

    def test_gen_rejects_unknown_format(self, app_options):
        """Test --gen only accepts known formats."""
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).load(args=["--gen", "xml"], environ={})
        assert exc_info.value.code == 2

    def test_show(self, app_options):
        """Test --show prints loaded values with their defaults."""
        output = io.StringIO()
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).load(
                args=["--show"], environ={"RUN_DURATION": "2s"}, output=output
            )
        assert exc_info.value.code == 0
        assert "run_duration (duration): 2s (default: 1s)" in output.getvalue().splitlines()

    def test_show_options(self, app_options):
        """Test rendering options are used by --show."""
        output = io.StringIO()
        config = Config(app_options).with_show_options(RenderOptions(field_name_format="env"))
        with pytest.raises(SystemExit):
            config.load(args=["--show"], environ={}, output=output)
        assert "RUN_DURATION (duration):" in output.getvalue()

    def test_version(self, app_options, capsys):
        """Test --version prints the version and exits."""
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).with_version("1.2.3").load(args=["-v"], environ={})
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == "1.2.3"

    def test_version_requires_a_version(self, app_options):
        """Test -v is not registered without a version."""
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).load(args=["-v"], environ={})
        assert exc_info.value.code == 2

    def test_help_lists_description(self, app_options, capsys):
        """Test the description and special flags appear in the help page."""
        with pytest.raises(SystemExit):
            Config(app_options).with_description("Duck service.").load(args=["--help"], environ={})
        out = capsys.readouterr().out
        assert "Duck service." in out
        assert "--config PATH" in out
        assert "--db-un" in out

    @pytest.mark.parametrize("model", [ShowField, ConfigField])
    def test_field_conflicts_with_special_flag(self, model):
        """Test a field named like a special flag is a tag usage error."""
        with pytest.raises(TagUsageError, match="reserved flag"):
            Config(model()).load(args=[], environ={})


class TestSwitches:
    """Test disabling sources."""

    def test_disable_env(self, app_options):
        """Test environment variables are ignored when disabled."""
        Config(app_options).disable_env().load(args=[], environ={"RUN_DURATION": "2s"})
        assert app_options.run_duration == timedelta(seconds=1)

    def test_disable_flags(self, app_options, config_file):
        """Test field flags are gone but special flags remain."""
        config = Config(app_options).disable_flags()
        config.load(args=["-c", str(config_file)], environ={})
        assert app_options.run_duration == timedelta(seconds=3)

        with pytest.raises(SystemExit):
            Config(app_options).disable_flags().load(args=["--run-duration", "5s"], environ={})

    def test_disable_files(self, app_options, config_file):
        """Test -c is not accepted when files are disabled."""
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).disable_files().load(args=["-c", str(config_file)], environ={})
        assert exc_info.value.code == 2

    def test_disable_format(self, app_options, tmp_path):
        """Test a disabled format is rejected."""
        path = tmp_path / "app.yml"
        path.write_text("run_duration: 5s\n", encoding="utf-8")
        with pytest.raises(UnsupportedFormatError):
            Config(app_options).disable_format("yaml").load(args=["-c", str(path)], environ={})
        assert app_options.run_duration == timedelta(seconds=1)


class TestValidation:
    """Test post-load hooks."""

    def test_validate_config_hook(self):
        """Test a target's validate_config method runs after loading."""
        with pytest.raises(ValueError, match="workers must be positive"):
            Config(Checked()).load(args=["--workers", "0"], environ={})

    def test_validators_receive_targets(self, app_options):
        """Test registered validators are called with every target."""
        seen = []
        checked = Checked()
        Config(app_options, checked).with_validator(lambda *targets: seen.extend(targets)).load(
            args=[], environ={}
        )
        assert seen == [app_options, checked]

    def test_load_or_exit(self, app_options, capsys, monkeypatch):
        """Test errors are printed and turned into exit status 1."""
        monkeypatch.delenv("RUN_DURATION", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            Config(app_options).load_or_exit(["--run-duration", "abc"])
        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith(
            "err: cannot parse 'abc' for field '--run-duration'"
        )


class TestOptions:
    """Test loader options."""

    def test_from_dict(self):
        """Test nested option dicts are converted."""
        options = LoaderOptions.from_dict(
            {
                "env_enabled": False,
                "flag_options": {"prefix": "app"},
                "show_options": {"width": 80},
                "build_options": {"ignore_types": ["int"]},
            }
        )
        assert options.env_enabled is False
        assert options.flag_options == FlagOptions(prefix="app")
        assert options.show_options.width == 80
        assert options.build_options.ignore_types == {"int"}

    def test_flag_prefix(self, app_options):
        """Test flag options are passed to the flag backend."""
        options = LoaderOptions(flag_options=FlagOptions(prefix="svc"))
        Config(app_options, options=options).load(args=["--svc-run-duration", "9s"], environ={})
        assert app_options.run_duration == timedelta(seconds=9)


class TestHelpers:
    """Test the single-source helpers."""

    def test_load(self, app_options):
        """Test loading from every source with defaults."""
        load(app_options, args=["-u", "flag-user"], environ={"PW": "env-pw"})
        assert app_options.db.username == "flag-user"
        assert app_options.db.password == "env-pw"

    def test_load_env(self, app_options):
        """Test loading from the environment only."""
        load_env(app_options, environ={"HOST": "env-host"})
        assert app_options.db.host == "env-host"

    def test_load_file(self, app_options, config_file):
        """Test loading from a file only."""
        load_file(config_file, app_options)
        assert app_options.run_duration == timedelta(seconds=3)

    def test_load_flags(self, app_options):
        """Test loading from flags only."""
        load_flags(app_options, args=["--duck-names", "Scrooge"])
        assert app_options.duck_names == ["Scrooge"]
