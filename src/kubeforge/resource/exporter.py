#!/usr/bin/env python3
"""
KUBEFORGE EXPORTER - Stable Serialization
-----------------------------------------
Converts resources into YAML or JSON text. Output is byte-stable: top-level
keys follow the canonical Kubernetes order, nested keys keep their
insertion order, and lists are never reordered.

Author: KubeForge Team
Date: 2026-01-16
"""

import io
import json
from typing import Any, Dict, List, Mapping, Sequence

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from kubeforge.core.models import ResourceFileType


class KubeExporter:
    """
    The Serializer: renders resources as YAML documents or JSON objects.
    """

    def __init__(self):
        self.yaml = YAML(typ='rt')
        # Standard K8s: 2 spaces, but sequences are indented 4 (offset 2)
        # for maximum readability in IDEs.
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.width = 4096
        self.preferred_order = ["apiVersion", "kind", "metadata", "spec", "data", "status"]

    def _get_sorted_map(self, data: Any, top_level: bool = True) -> Any:
        """
        Rebuilds mappings as CommentedMaps. Only the top level is reordered;
        list items keep their position.
        """
        if isinstance(data, Mapping):
            keys = list(data.keys())

            def sort_logic(key):
                if top_level and key in self.preferred_order:
                    return self.preferred_order.index(key)
                # Unknown keys keep their relative original position
                return len(self.preferred_order) + keys.index(key)

            sorted_map = CommentedMap()
            for key in sorted(keys, key=sort_logic):
                sorted_map[key] = self._get_sorted_map(data[key], top_level=False)
            return sorted_map

        if isinstance(data, (list, tuple)):
            return [self._get_sorted_map(item, top_level=False) for item in data]

        return data

    def _ordered_plain(self, data: Any) -> Any:
        """Same ordering as the YAML output, as plain dicts for json."""
        if isinstance(data, Mapping):
            return {k: self._ordered_plain(v) for k, v in data.items()}
        if isinstance(data, (list, tuple)):
            return [self._ordered_plain(item) for item in data]
        return data

    def to_yaml(self, doc: Mapping[str, Any]) -> str:
        stream = io.StringIO()
        self.yaml.dump(self._get_sorted_map(doc), stream)
        return stream.getvalue()

    def to_yaml_stream(self, docs: Sequence[Mapping[str, Any]]) -> str:
        """Multi-document stream with explicit separators."""
        stream = io.StringIO()
        for i, doc in enumerate(docs):
            if i > 0:
                stream.write("---\n")
            self.yaml.dump(self._get_sorted_map(doc), stream)
        return stream.getvalue()

    def to_json(self, doc: Mapping[str, Any]) -> str:
        return json.dumps(self._ordered_plain(self._get_sorted_map(doc)), indent=2) + "\n"

    @staticmethod
    def as_list(docs: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        return {"apiVersion": "v1", "kind": "List", "items": list(docs)}

    def export(self, doc: Mapping[str, Any], file_type: ResourceFileType) -> str:
        if file_type == ResourceFileType.json:
            return self.to_json(doc)
        return self.to_yaml(doc)

    def export_all(self, docs: List[Mapping[str, Any]], file_type: ResourceFileType) -> str:
        """Aggregate encoding: YAML stream, or a single JSON ``List`` object."""
        if file_type == ResourceFileType.json:
            return self.to_json(self.as_list([self._get_sorted_map(d) for d in docs]))
        return self.to_yaml_stream(docs)
