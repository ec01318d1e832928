"""Unit tests for configuration system."""

from datetime import date
from pathlib import Path
from typing import Any

import pytest
import yaml

from ci_housekeeping.config import (
    RebaseConfig,
    TrackerConfig,
    as_bool,
    create_default_config,
    default_style_targets,
    find_config_file,
    load_config,
    load_config_from_dict,
    parse_ymd,
    substitute_env_vars,
)


class TestSubstituteEnvVars:
    """Tests for environment variable substitution."""

    def test_substitute_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting env var in string."""
        monkeypatch.setenv("TEST_VAR", "test_value")

        result = substitute_env_vars("prefix_${TEST_VAR}_suffix")

        assert result == "prefix_test_value_suffix"

    def test_default_used_when_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ${VAR:-default} falls back when VAR is unset."""
        monkeypatch.delenv("UNSET_FOR_TEST", raising=False)

        assert substitute_env_vars("${UNSET_FOR_TEST:-git}") == "git"

    def test_default_used_when_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test empty job parameters count as unset."""
        monkeypatch.setenv("EMPTY_FOR_TEST", "")

        assert substitute_env_vars("${EMPTY_FOR_TEST:-npm}") == "npm"

    def test_empty_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ${VAR:-} gives an empty string."""
        monkeypatch.delenv("UNSET_FOR_TEST", raising=False)

        assert substitute_env_vars("${UNSET_FOR_TEST:-}") == ""

    def test_substitute_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substitution walks dicts and lists."""
        monkeypatch.setenv("ITEM", "value")

        data = {"a": ["static", "${ITEM}"], "b": {"c": "${ITEM}"}}
        result = substitute_env_vars(data)

        assert result == {"a": ["static", "value"], "b": {"c": "value"}}

    def test_missing_env_var_raises(self) -> None:
        """Test that missing env var without default raises ValueError."""
        with pytest.raises(ValueError, match="Environment variable not set"):
            substitute_env_vars("${NONEXISTENT_VAR_FOR_TEST}")

    def test_passthrough_non_string(self) -> None:
        """Test that non-string values pass through unchanged."""
        assert substitute_env_vars(123) == 123
        assert substitute_env_vars(True) is True
        assert substitute_env_vars(None) is None


class TestHelpers:
    """Tests for value parsing helpers."""

    @pytest.mark.parametrize("value", ["", "0", "false", "No", "off", False, None, 0])
    def test_as_bool_false(self, value: Any) -> None:
        assert as_bool(value) is False

    @pytest.mark.parametrize("value", ["1", "true", "yes", "dry", True, 1])
    def test_as_bool_true(self, value: Any) -> None:
        assert as_bool(value) is True

    def test_parse_ymd(self) -> None:
        assert parse_ymd("2026-11-16", "$releasedate") == date(2026, 11, 16)

    @pytest.mark.parametrize("value", ["16-11-2026", "2026/11/16", "2026-1-16", ""])
    def test_parse_ymd_bad_format(self, value: str) -> None:
        with pytest.raises(ValueError, match="Incorrect YYYY-MM-DD format detected"):
            parse_ymd(value, "$releasedate")

    def test_parse_ymd_impossible_date(self) -> None:
        with pytest.raises(ValueError, match="Invalid date"):
            parse_ymd("2026-02-30", "$releasedate")


class TestFindConfigFile:
    """Tests for config file discovery."""

    def test_find_dot_dir_config(self, tmp_path: Path) -> None:
        """Test finding .ci_housekeeping/config.yaml."""
        config_dir = tmp_path / ".ci_housekeeping"
        config_dir.mkdir()
        config_file = config_dir / "config.yaml"
        config_file.write_text("workspace: out")

        assert find_config_file(tmp_path) == config_file

    def test_find_root_config(self, tmp_path: Path) -> None:
        """Test finding ci_housekeeping.yaml."""
        config_file = tmp_path / "ci_housekeeping.yaml"
        config_file.write_text("workspace: out")

        assert find_config_file(tmp_path) == config_file

    def test_dot_dir_takes_priority(self, tmp_path: Path) -> None:
        """Test .ci_housekeeping/config.yaml wins over ci_housekeeping.yaml."""
        (tmp_path / "ci_housekeeping.yaml").write_text("workspace: a")
        config_dir = tmp_path / ".ci_housekeeping"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("workspace: b")

        assert find_config_file(tmp_path) == config_dir / "config.yaml"

    def test_no_config_found(self, tmp_path: Path) -> None:
        assert find_config_file(tmp_path) is None


class TestLoadConfigFromDict:
    """Tests for loading config from dictionary."""

    def test_empty_config_uses_defaults(self) -> None:
        config = load_config_from_dict({})

        assert config.workspace == "."
        assert config.git.cmd == "git"
        assert config.npm.recess_version == "1.1.9"
        assert config.rebase.max_loops == 100
        assert config.rebase.clone_url == "git://git.moodle.org/moodle.git"
        assert config.tracker.current_min == 6
        assert config.tracker.move_max == 3
        assert config.tracker.held_label == "integration_held"

    def test_full_config(self, full_config: dict[str, Any]) -> None:
        config = load_config_from_dict(full_config)

        assert config.git.branch == "main"
        assert config.rebase.integration_remote == "git://git.example.org/integration.git"
        assert config.rebase.max_loops == 10
        assert config.rebase.style_targets == default_style_targets()
        assert config.gc.interval_days == 3
        assert config.tracker.release_date == "2026-11-16"
        assert config.jenkins.token == "t0k3n"
        assert config.ci.timeout == 600

    def test_job_parameters_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test job parameters map onto config through substitution."""
        monkeypatch.setenv("gitdir", "/srv/moodle")
        monkeypatch.setenv("currentmin", "")
        monkeypatch.setenv("dryrun", "1")

        config = load_config_from_dict(
            {
                "git": {"dir": "${gitdir:-}", "branch": "${gitbranch_unset_for_test:-}"},
                "tracker": {"current_min": "${currentmin:-6}", "move_max": "", "dry_run": "${dryrun:-}"},
            }
        )

        assert config.git.dir == "/srv/moodle"
        assert config.git.branch is None
        assert config.tracker.current_min == 6
        assert config.tracker.move_max == 3
        assert config.tracker.dry_run is True

    def test_zero_thresholds_kept(self) -> None:
        config = load_config_from_dict({"tracker": {"current_min": 0, "move_max": "0"}})

        assert config.tracker.current_min == 0
        assert config.tracker.move_max == 0

    def test_custom_style_targets(self) -> None:
        config = load_config_from_dict(
            {"rebase": {"style_targets": [{"less": "theme/x/less/x.less", "css": "theme/x/style/x.css"}]}}
        )

        assert len(config.rebase.style_targets) == 1
        assert config.rebase.style_targets[0].css == "theme/x/style/x.css"


class TestValidation:
    """Tests for config validation."""

    def test_max_loops_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="max_loops"):
            RebaseConfig(max_loops=0)

    def test_negative_current_min(self) -> None:
        with pytest.raises(ValueError, match="current_min"):
            TrackerConfig(current_min=-1)

    def test_negative_move_max(self) -> None:
        with pytest.raises(ValueError, match="move_max"):
            TrackerConfig(move_max=-1)


class TestLoadConfig:
    """Tests for loading config files."""

    def test_explicit_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_explicit_file(self, tmp_path: Path, full_config: dict[str, Any]) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump(full_config))

        config = load_config(config_file)

        assert config.config_path == config_file
        assert config.git.branch == "main"

    def test_no_discovery(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "ci_housekeeping.yaml").write_text("workspace: found")

        assert load_config(auto_discover=False).workspace == "."
        assert load_config().workspace == "found"

    def test_default_config_loads(self, clean_env: None) -> None:
        """Test the init template is valid and loads with no job parameters."""
        data = yaml.safe_load(create_default_config())

        config = load_config_from_dict(data)

        assert config.git.cmd == "git"
        assert config.git.dir is None
        assert config.tracker.release_date is None
        assert config.tracker.dry_run is False
