"""
Value composition for release rendering.

Precedence, lowest to highest:
  1. value files (in the configured order)
  2. the App resource's own spec
  3. auxiliary documents (config map, then secret) found next to the App
"""
import copy
from typing import Any, Dict, Iterable

import yaml

from .errors import ParseError, SourceReadError

AUX_VALUE_KEYS = ("values.yaml", "values")


def merge_values(dest: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``src`` into ``dest`` in place and return ``dest``.

    Nested mappings on both sides merge recursively; anything else from
    ``src`` replaces the value in ``dest`` outright (lists are not concatenated).
    """
    for key, value in src.items():
        current = dest.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            dest[key] = merge_values(current, value)
        else:
            dest[key] = copy.deepcopy(value)
    return dest


def parse_values(text, source: str) -> Dict[str, Any]:
    """Parse a YAML document into a mapping; empty documents give {}."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"failed to parse {source}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(f"failed to parse {source}: expected a mapping, got {type(data).__name__}")
    return data


def load_value_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise SourceReadError(f"cannot read values file {path}: {e}") from e
    return parse_values(text, path)


def compose_values(spec_values: Dict[str, Any],
                   value_files: Iterable[str] = (),
                   documents: Iterable = ()) -> Dict[str, Any]:
    """Merge value files, spec values and auxiliary YAML documents."""
    base: Dict[str, Any] = {}
    for path in value_files:
        merge_values(base, load_value_file(path))
    merge_values(base, spec_values or {})
    for i, doc in enumerate(documents):
        merge_values(base, parse_values(doc, f"values document #{i + 1}"))
    return base


class ClusterValues:
    """
    Release-values strategy that also reads the App's sibling config map and
    secret (same name and namespace) through the resource store.
    """

    def __init__(self, store, value_files: Iterable[str] = ()):
        self.store = store
        self.value_files = tuple(value_files)

    def documents(self, namespace: str, name: str) -> list:
        docs = []
        cm = self.store.get_config_map_data(namespace, name)
        if cm:
            docs += [cm[k] for k in AUX_VALUE_KEYS if k in cm]
        secret = self.store.get_secret_data(namespace, name)
        if secret:
            docs += [secret[k] for k in AUX_VALUE_KEYS if k in secret]
        return docs

    def __call__(self, resource) -> Dict[str, Any]:
        return compose_values(
            resource.spec,
            self.value_files,
            self.documents(resource.namespace, resource.name),
        )
