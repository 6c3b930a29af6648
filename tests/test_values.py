"""Tests for release value composition."""

import pytest

from app_operator.errors import ParseError, SourceReadError
from app_operator.values import ClusterValues, compose_values, merge_values, parse_values


class TestMergeValues:
    def test_nested_mappings_merge_recursively(self):
        dest = {"b": {"x": 1, "keep": True}}
        merge_values(dest, {"b": {"x": 2}})
        assert dest == {"b": {"x": 2, "keep": True}}

    def test_lists_are_replaced_not_concatenated(self):
        dest = {"hosts": ["a", "b"]}
        merge_values(dest, {"hosts": ["c"]})
        assert dest == {"hosts": ["c"]}

    def test_scalar_replaces_mapping_and_back(self):
        dest = {"a": {"x": 1}, "b": 1}
        merge_values(dest, {"a": "flat", "b": {"y": 2}})
        assert dest == {"a": "flat", "b": {"y": 2}}


class TestComposeValues:
    def test_precedence_files_then_spec_then_config_map(self, tmp_path):
        """Config map wins on b.x, spec keeps b.y, the file keeps a."""
        values_file = tmp_path / "base.yaml"
        values_file.write_text("a: 1\nb:\n  x: 1\n")

        result = compose_values({"b": {"y": 2}}, [str(values_file)], ["b:\n  x: 9\n"])

        assert result == {"a": 1, "b": {"x": 9, "y": 2}}

    def test_later_files_override_earlier_ones(self, tmp_path):
        first = tmp_path / "first.yaml"
        second = tmp_path / "second.yaml"
        first.write_text("image: {tag: '1.0', repo: nginx}\n")
        second.write_text("image: {tag: '2.0'}\n")

        result = compose_values({}, [str(first), str(second)])

        assert result == {"image": {"tag": "2.0", "repo": "nginx"}}

    def test_spec_is_not_mutated(self):
        spec = {"b": {"y": 2}}
        compose_values(spec, [], ["b:\n  x: 9\n"])
        assert spec == {"b": {"y": 2}}

    def test_invalid_yaml_raises_parse_error(self):
        with pytest.raises(ParseError):
            compose_values({}, [], ["a: [unclosed"])

    def test_non_mapping_document_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_values("- just\n- a list\n", "doc")

    def test_empty_document_is_empty_mapping(self):
        assert parse_values("", "doc") == {}

    def test_unreadable_file_raises_source_read_error(self, tmp_path):
        with pytest.raises(SourceReadError):
            compose_values({}, [str(tmp_path / "missing.yaml")])


class TestClusterValues:
    def test_config_map_then_secret(self, store, make_app):
        store.config_maps[("apps", "web")] = {"values.yaml": "tier: cm\ncm: true\n"}
        store.secrets[("apps", "web")] = {"values": "tier: secret\n"}
        app = make_app(spec={"tier": "spec", "spec": True})

        result = ClusterValues(store)(app)

        assert result == {"tier": "secret", "cm": True, "spec": True}

    def test_values_yaml_key_applies_before_values_key(self, store, make_app):
        store.config_maps[("apps", "web")] = {"values": "k: second\n", "values.yaml": "k: first\n"}

        result = ClusterValues(store)(make_app(spec={}))

        assert result == {"k": "second"}

    def test_missing_sources_leave_spec_alone(self, store, make_app):
        app = make_app(spec={"replicas": 3})
        assert ClusterValues(store)(app) == {"replicas": 3}

    def test_value_files_sit_under_spec(self, store, make_app, tmp_path):
        values_file = tmp_path / "defaults.yaml"
        values_file.write_text("replicas: 1\nimage: nginx\n")

        result = ClusterValues(store, [str(values_file)])(make_app(spec={"replicas": 3}))

        assert result == {"replicas": 3, "image": "nginx"}
