"""Tests for skiff.config: TOML loading, merging and environment handling."""

import pytest

from skiff.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    ConfigError,
    Settings,
    global_config_dir,
    load_config,
    load_settings,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_toml(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def dirs(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    xdg = tmp_path / "xdg"
    environ = {"OPENROUTER_API_KEY": "sk-test", "XDG_CONFIG_HOME": str(xdg)}
    return project, xdg / "skiff" / "config.toml", environ


# ---------------------------------------------------------------------------
# Defaults and environment
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_no_files(self, dirs):
        project, _, environ = dirs
        s = load_settings(project, environ)
        assert s.api_key == "sk-test"
        assert s.base_url == DEFAULT_BASE_URL
        assert s.model == DEFAULT_MODEL
        assert s.max_turns is None
        assert s.command_timeout is None
        assert s.request_timeout is None
        assert s.parallel_tool_calls is False
        assert s.verbose is True

    def test_missing_api_key(self, dirs):
        project, _, environ = dirs
        del environ["OPENROUTER_API_KEY"]
        with pytest.raises(ConfigError, match="OPENROUTER_API_KEY"):
            load_settings(project, environ)

    def test_blank_api_key(self, dirs):
        project, _, environ = dirs
        environ["OPENROUTER_API_KEY"] = "   "
        with pytest.raises(ConfigError):
            load_settings(project, environ)

    def test_base_url_from_env(self, dirs):
        project, _, environ = dirs
        environ["OPENROUTER_BASE_URL"] = "http://proxy.local/v1"
        assert load_settings(project, environ).base_url == "http://proxy.local/v1"

    def test_env_beats_config_files(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", 'base_url = "http://from-file/v1"\n')
        environ["OPENROUTER_BASE_URL"] = "http://from-env/v1"
        assert load_settings(project, environ).base_url == "http://from-env/v1"

    def test_settings_are_frozen(self, dirs):
        project, _, environ = dirs
        s = load_settings(project, environ)
        with pytest.raises(AttributeError):
            s.model = "other"

    def test_api_key_hidden_from_repr(self):
        s = Settings(api_key="sk-secret-value")
        assert "sk-secret-value" not in repr(s)
        assert "api_key" not in s.to_report_dict()


# ---------------------------------------------------------------------------
# File layering
# ---------------------------------------------------------------------------


class TestFiles:
    def test_global_config(self, dirs):
        project, global_path, environ = dirs
        _write_toml(global_path, 'model = "openai/gpt-4o"\nmax_turns = 7\n')
        s = load_settings(project, environ)
        assert s.model == "openai/gpt-4o"
        assert s.max_turns == 7

    def test_project_overrides_global(self, dirs):
        project, global_path, environ = dirs
        _write_toml(global_path, 'model = "global/model"\nquiet = true\n')
        _write_toml(project / "skiff.toml", 'model = "project/model"\n')
        s = load_settings(project, environ)
        assert s.model == "project/model"
        assert s.quiet is True

    def test_load_config_only_returns_set_keys(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", "parallel_tool_calls = true\n")
        assert load_config(project, environ) == {"parallel_tool_calls": True}

    def test_report_path_relative_to_config_file(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", 'report = "reports/run.json"\n')
        s = load_settings(project, environ)
        assert s.report == str(project.resolve() / "reports" / "run.json")

    def test_absolute_report_path_kept(self, dirs, tmp_path):
        project, _, environ = dirs
        target = tmp_path / "abs.json"
        _write_toml(project / "skiff.toml", f'report = "{target}"\n')
        assert load_settings(project, environ).report == str(target)

    def test_float_accepted_for_timeouts(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", "command_timeout = 2.5\nrequest_timeout = 60\n")
        s = load_settings(project, environ)
        assert s.command_timeout == 2.5
        assert s.request_timeout == 60

    def test_global_config_dir_respects_xdg(self, tmp_path):
        assert global_config_dir({"XDG_CONFIG_HOME": str(tmp_path)}) == tmp_path / "skiff"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_invalid_toml(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", "model = \n")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_settings(project, environ)

    def test_wrong_type(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", 'max_turns = "ten"\n')
        with pytest.raises(ConfigError, match="'max_turns' expected int, got str"):
            load_settings(project, environ)

    def test_bool_rejected_for_int(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", "max_output_tokens = true\n")
        with pytest.raises(ConfigError, match="got bool"):
            load_settings(project, environ)

    @pytest.mark.parametrize(
        "line", ["max_turns = 0", "max_output_tokens = -1", "command_timeout = 0"]
    )
    def test_non_positive_rejected(self, dirs, line):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", line + "\n")
        with pytest.raises(ConfigError, match="must be positive"):
            load_settings(project, environ)

    def test_api_key_in_file_rejected(self, dirs):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", 'api_key = "sk-leak"\n')
        with pytest.raises(ConfigError, match="OPENROUTER_API_KEY"):
            load_settings(project, environ)

    def test_unknown_key_warns_and_is_ignored(self, dirs, capsys):
        project, _, environ = dirs
        _write_toml(project / "skiff.toml", 'colour = true\nmodel = "a/b"\n')
        s = load_settings(project, environ)
        assert s.model == "a/b"
        assert "unknown config key 'colour'" in capsys.readouterr().err
