#!/usr/bin/env python3
"""
KUBEFORGE VALIDATOR - The Judge
-------------------------------
The Validator is the final safety gate in the KubeForge pipeline. It reads
every file of a (staged) classifier directory back and checks each object
against the kind-aware schema catalog before the bundle is published.

Kinds missing from the catalog only get the universal identity checks and
an info log. Whether violations are fatal is decided by the caller.

Author: KubeForge Team
Date: 2026-01-16
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubeforge.core.errors import ValidationFailed
from kubeforge.core.models import ResourceClassifier

# Standardized logging for audit trails
logger = logging.getLogger("kubeforge.validator")

DEFAULT_CATALOG = Path(__file__).resolve().parent / "catalog" / "k8s_schemas.json"

DNS_1123_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")

_SCALAR_TYPES = {
    "string": (str,),
    "integer": (int,),
    "boolean": (bool,),
}


def load_catalog(path: Path = DEFAULT_CATALOG) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class ResourceValidator:
    """
    Enforces schema integrity on the written manifests.
    """

    def __init__(self, resource_dir: Path, classifier: ResourceClassifier,
                 log: Optional[logging.Logger] = None,
                 catalog: Optional[Dict[str, Any]] = None, strict: bool = False):
        """
        Args:
            resource_dir: The classifier directory holding one file per resource.
            catalog: Schema map keyed by '<apiVersion>/<kind>'.
            strict: Report fields unknown to the catalog as violations.
        """
        self.resource_dir = Path(resource_dir)
        self.classifier = classifier
        self.log = log or logger
        self.catalog = catalog if catalog is not None else load_catalog()
        self.strict = strict
        # Core fields that must exist in every single K8s resource
        self.required_fields = ["apiVersion", "kind", "metadata"]
        self._yaml = YAML(typ="safe")

    def validate(self) -> int:
        """
        Validates every file in the directory. Returns the number of objects
        checked; raises ValidationFailed listing every violation found.
        """
        violations: List[str] = []
        checked = 0
        for path in sorted(self.resource_dir.glob("*")):
            if not path.is_file() or path.suffix.lower() not in (".yaml", ".yml", ".json"):
                continue
            for doc in self._load(path, violations):
                checked += 1
                violations.extend(f"{path.name}: {v}" for v in self.validate_object(doc))

        if violations:
            raise ValidationFailed(violations)
        self.log.debug(f"Validated {checked} {self.classifier.value} resource(s) in {self.resource_dir}")
        return checked

    def _load(self, path: Path, violations: List[str]) -> List[Any]:
        try:
            text = path.read_text(encoding="utf-8")
            if path.suffix.lower() == ".json":
                return [json.loads(text)]
            return [d for d in self._yaml.load_all(text) if d is not None]
        except (OSError, YAMLError, ValueError) as e:
            violations.append(f"{path.name}: unreadable ({e})")
            return []

    def validate_object(self, doc: Any) -> List[str]:
        """
        The primary integrity check. Returns the violations for one object.
        """
        if not isinstance(doc, dict):
            return ["content is not a mapping"]

        # --- TEST 1: Identity & Metadata Presence ---
        missing = [f for f in self.required_fields if not doc.get(f)]
        if missing:
            return [f"missing required top-level field '{f}'" for f in missing]

        errors: List[str] = []
        metadata = doc["metadata"]
        if not isinstance(metadata, dict):
            return ["'metadata' must be a map/object"]
        name = metadata.get("name")
        if not name and not metadata.get("generateName"):
            errors.append("metadata.name is required but missing")
        elif name and (len(str(name)) > 253 or not DNS_1123_SUBDOMAIN.match(str(name))):
            errors.append(f"metadata.name '{name}' is not a valid DNS-1123 subdomain")

        # --- TEST 2: Catalog Knowledge & Deep Validation ---
        schema_key = f"{doc['apiVersion']}/{doc['kind']}"
        schema = self.catalog.get(schema_key)
        if not schema:
            self.log.info(f"No schema for {schema_key}, skipping deep validation")
            return errors

        errors.extend(self._deep_validate(doc, schema))
        return errors

    def _deep_validate(self, doc: Any, schema: Dict[str, Any], path: str = "") -> List[str]:
        """
        Recursively checks the object against the catalog entry.
        """
        errors = []
        for req in schema.get("required", []):
            if req not in doc:
                errors.append(f"field '{path + req}' is required but missing")

        schema_fields = schema.get("fields", {})
        for key, value in doc.items():
            if not path and key in ("apiVersion", "kind"):
                continue
            field_info = schema_fields.get(key)

            # Unknown Field Detection
            if not field_info:
                if self.strict and schema_fields:
                    errors.append(f"unknown field '{path + key}'")
                continue

            expected_type = field_info.get("type")

            # Type Validation: Object
            if expected_type == "object":
                if not isinstance(value, dict):
                    errors.append(f"'{path + key}' must be a map/object")
                    continue
                errors.extend(self._deep_validate(value, field_info, path=f"{path}{key}."))

            # Type Validation: Array
            elif expected_type == "array":
                if not isinstance(value, list):
                    errors.append(f"'{path + key}' must be a list/sequence")
                    continue
                item_schema = field_info.get("items")
                if item_schema:
                    for i, item in enumerate(value):
                        if not isinstance(item, dict):
                            errors.append(f"'{path}{key}[{i}]' must be a map/object")
                            continue
                        errors.extend(self._deep_validate(item, item_schema, path=f"{path}{key}[{i}]."))

            # Type Validation: Scalars
            elif expected_type in _SCALAR_TYPES:
                accepted = _SCALAR_TYPES[expected_type]
                if isinstance(value, bool) and expected_type != "boolean":
                    errors.append(f"'{path + key}' must be of type {expected_type}")
                elif not isinstance(value, accepted):
                    errors.append(f"'{path + key}' must be of type {expected_type}")

            minimum = field_info.get("minimum")
            if minimum is not None and isinstance(value, int) and not isinstance(value, bool) and value < minimum:
                errors.append(f"'{path + key}' must be >= {minimum}")

        return errors
