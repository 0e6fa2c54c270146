"""
airlift.chart.values — Typed value tree for Helm chart values.

A chart's values.yaml decodes to plain dicts/lists/scalars. The rewrite
and analysis passes work on a tagged tree instead:

    ScalarNode    str / int / float / bool / None, plus the dates and
                  !!binary bytes yaml.safe_load produces
    SequenceNode  ordered items
    MappingNode   string keys → nodes (mutated in place by rewrites)

decode_values() builds the tree, encode_values() turns it back into
plain data for yaml.safe_dump.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Union

import yaml

from airlift.core.errors import RewriteError


# datetime.datetime is a datetime.date
SCALAR_TYPES = (str, int, float, bool, bytes, datetime.date)


@dataclass
class ScalarNode:
    value: Any = None

    def as_str(self) -> str | None:
        """The value if it is a string, else None."""
        return self.value if isinstance(self.value, str) else None


@dataclass
class SequenceNode:
    items: list[Node] = field(default_factory=list)

    def mappings(self) -> Iterator[MappingNode]:
        for item in self.items:
            if isinstance(item, MappingNode):
                yield item


@dataclass
class MappingNode:
    entries: dict[str, Node] = field(default_factory=dict)

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def get(self, key: str) -> Node | None:
        return self.entries.get(key)

    def get_str(self, key: str) -> str | None:
        """String value of a scalar field, None if absent or not a string."""
        node = self.entries.get(key)
        if isinstance(node, ScalarNode):
            return node.as_str()
        return None

    def set_str(self, key: str, value: str) -> None:
        self.entries[key] = ScalarNode(value)

    def children(self) -> Iterator[tuple[str, Node]]:
        return iter(list(self.entries.items()))


Node = Union[ScalarNode, SequenceNode, MappingNode]


def decode_values(data: Any) -> Node:
    """Build a value tree from decoded YAML data.

    >>> decode_values({"image": "nginx"}).get_str("image")
    'nginx'
    """
    if isinstance(data, dict):
        entries = {}
        for key, value in data.items():
            # YAML allows non-string keys (e.g. `1: x`); values keys are strings
            entries[str(key)] = decode_values(value)
        return MappingNode(entries)
    if isinstance(data, list):
        return SequenceNode([decode_values(v) for v in data])
    if data is None or isinstance(data, SCALAR_TYPES):
        return ScalarNode(data)
    raise RewriteError(f"Unsupported value type in chart values: {type(data).__name__}")


def encode_values(node: Node) -> Any:
    """Turn a value tree back into plain dicts/lists/scalars."""
    if isinstance(node, MappingNode):
        return {k: encode_values(v) for k, v in node.entries.items()}
    if isinstance(node, SequenceNode):
        return [encode_values(v) for v in node.items]
    return node.value


def load_values_file(path: str | Path) -> MappingNode:
    """Read a YAML values file into a value tree.

    An empty file decodes to an empty mapping.
    """
    p = Path(path)
    if not p.exists():
        raise RewriteError(f"Values file not found: {p}")
    try:
        with open(p) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RewriteError(f"Failed to parse values file {p}: {e}") from e
    except OSError as e:
        raise RewriteError(f"Failed to read values file {p}: {e}") from e

    if data is None:
        return MappingNode()
    node = decode_values(data)
    if not isinstance(node, MappingNode):
        raise RewriteError(f"Values file {p} is not a mapping")
    return node


def save_values_file(node: MappingNode, path: str | Path) -> None:
    """Write a value tree back as YAML."""
    with open(path, "w") as f:
        yaml.safe_dump(encode_values(node), f,
                       default_flow_style=False, sort_keys=False)
