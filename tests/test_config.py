# tests/test_config.py
"""
Tests for .querylint.yml discovery and parsing.
"""

import os

import pytest

from querylint_config import (
    DEFAULT_METHOD_NAMES, ConfigError, QuerylintConfig, RuleConfig,
    find_config, load_config, parse_config_data,
)


def write_config(directory, text, name=".querylint.yml"):
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:

    def test_defaults_without_file(self, project_dir):
        config = load_config(str(project_dir / "src"))
        assert config.rule == RuleConfig()
        assert config.rule.object_name == "linq"
        assert config.rule.method_names == DEFAULT_METHOD_NAMES
        assert config.severity == "warning"
        assert config.suppression_keyword == "nolint"

    def test_discovered_walking_up(self, project_dir):
        path = write_config(project_dir, "query:\n  object: db\n  methods: [query, run]\nseverity: error\n")
        target = project_dir / "src" / "app.js"
        target.write_text("", encoding="utf-8")

        assert find_config(str(target)) == str(path)
        config = load_config(str(target))
        assert config.rule == RuleConfig(object_name="db", method_names=("query", "run"))
        assert config.severity == "error"
        assert config.source_path == str(path)

    def test_yaml_extension(self, project_dir):
        write_config(project_dir, "severity: info\n", name=".querylint.yaml")
        assert load_config(str(project_dir)).severity == "info"

    def test_explicit_path(self, project_dir, tmp_path_factory):
        other = tmp_path_factory.mktemp("cfg")
        path = write_config(other, "suppression_keyword: guid-ok\n", name="custom.yml")
        config = load_config(str(project_dir), str(path))
        assert config.suppression_keyword == "guid-ok"

    def test_explicit_path_missing(self, project_dir):
        with pytest.raises(ConfigError):
            load_config(str(project_dir), str(project_dir / "nope.yml"))

    def test_invalid_yaml(self, project_dir):
        write_config(project_dir, "query: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(str(project_dir))

    def test_empty_file_gives_defaults(self, project_dir):
        write_config(project_dir, "")
        assert load_config(str(project_dir)).rule == RuleConfig()


class TestParseConfigData:

    def test_single_method_string(self):
        config = parse_config_data({"query": {"methods": "run"}})
        assert config.rule.method_names == ("run",)
        assert config.rule.object_name == "linq"

    def test_warn_alias(self):
        assert parse_config_data({"severity": "WARN"}).severity == "warning"

    @pytest.mark.parametrize("data, key", [
        ({"severity": "fatal"}, "severity"),
        ({"query": "linq"}, "query"),
        ({"query": {"object": ""}}, "query.object"),
        ({"query": {"methods": []}}, "query.methods"),
        ({"exclude_paths": "vendor/"}, "exclude_paths"),
    ])
    def test_invalid_values(self, data, key):
        with pytest.raises(ConfigError) as exc:
            parse_config_data(data, "cfg.yml")
        assert exc.value.key == key
        assert "cfg.yml" in str(exc.value)

    def test_top_level_must_be_mapping(self):
        with pytest.raises(ConfigError):
            parse_config_data(["linq"])


class TestRuleOverrides:

    def test_overrides(self):
        rule = RuleConfig().with_overrides("db", ["query"])
        assert rule == RuleConfig(object_name="db", method_names=("query",))

    def test_no_overrides_keeps_values(self):
        assert RuleConfig().with_overrides(None, None) == RuleConfig()


class TestExclusion:

    def test_directory_component(self):
        config = QuerylintConfig(exclude_paths=["generated/"])
        assert config.should_exclude(os.path.join("src", "generated", "a.js"))
        assert not config.should_exclude(os.path.join("src", "a.js"))

    def test_glob(self):
        config = QuerylintConfig(exclude_paths=["*.spec.js"])
        assert config.should_exclude("src/app.spec.js")
        assert not config.should_exclude("src/app.js")
