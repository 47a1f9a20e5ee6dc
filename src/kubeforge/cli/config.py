#!/usr/bin/env python3
"""
KUBEFORGE CLI CONFIGURATION
---------------------------
Loads the optional ``kubeforge.yaml`` project file and turns it, together
with command-line overrides, into the Project snapshot and the
ResourceSettings of one invocation.

Example::

    project:
      groupId: org.acme
      artifactId: app
      version: 1.0.0
    images:
      - name: acme/app:%l
        build:
          ports: [8080]
    enricher:
      config:
        default-controller:
          replicas: 2
    resourceFileType: yaml

Author: KubeForge Team
Date: 2026-01-16
"""

import time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubeforge.core.engine import ResourceSettings
from kubeforge.core.errors import ConfigError
from kubeforge.core.models import (
    ImageConfiguration,
    MappingConfig,
    PackagingKind,
    ProcessorConfig,
    Project,
    ResourceFileType,
)

DEFAULT_CONFIG_FILE = "kubeforge.yaml"

SETTING_KEYS = {
    "targetDir": "target_dir",
    "resourceDir": "resource_dir",
    "environment": "environment",
    "workDir": "work_dir",
    "profile": "profile",
    "resourceFileType": "resource_file_type",
    "skipResource": "skip_resource",
    "skipResourceValidation": "skip_resource_validation",
    "failOnValidationError": "fail_on_validation_error",
    "useProjectClasspath": "use_project_classpath",
    "interpolateTemplateParameters": "interpolate_template_parameters",
    "mergeWithDekorate": "merge_with_dekorate",
    "namespace": "namespace",
}
SECTION_KEYS = {"project", "images", "enricher", "generator", "mappings", "properties"}
PATH_SETTINGS = {"target_dir", "resource_dir", "work_dir"}
BOOL_SETTINGS = {
    "skip_resource", "skip_resource_validation", "fail_on_validation_error",
    "use_project_classpath", "interpolate_template_parameters", "merge_with_dekorate",
}


def load_config_file(path: Optional[Path], base_dir: Path) -> Dict[str, Any]:
    """Reads the project file. A missing default file is fine; a missing explicit one is not."""
    explicit = path is not None
    config_path = Path(path) if explicit else Path(base_dir) / DEFAULT_CONFIG_FILE
    if not config_path.is_file():
        if explicit:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return {}

    try:
        raw = YAML(typ="safe").load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, YAMLError) as e:
        raise ConfigError(f"Cannot read configuration {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration {config_path} must be a mapping")

    unknown = sorted(set(raw) - SECTION_KEYS - set(SETTING_KEYS))
    if unknown:
        raise ConfigError(f"Unknown configuration key(s) in {config_path}: {', '.join(unknown)}")
    return raw


def _resolve(base_dir: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else Path(base_dir) / path


def build_project(base_dir: Path, raw: Mapping[str, Any],
                  extra_properties: Optional[Mapping[str, str]] = None) -> Project:
    section = raw.get("project") or {}
    base_dir = Path(base_dir).resolve()
    build_dir = _resolve(base_dir, section.get("buildDir", "target"))
    output_dir = _resolve(base_dir, section.get("outputDir", build_dir / "classes"))

    try:
        packaging = PackagingKind(section.get("packaging", PackagingKind.DEPLOYABLE.value))
    except ValueError as e:
        raise ConfigError(f"Unknown packaging '{section.get('packaging')}'") from e

    properties = {str(k): str(v) for k, v in (raw.get("properties") or {}).items()}
    properties.update(extra_properties or {})

    return Project(
        base_dir=base_dir,
        build_dir=build_dir,
        output_dir=output_dir,
        packaging=packaging,
        compile_classpath=tuple(_resolve(base_dir, p) for p in section.get("classpath") or []),
        properties=properties,
        credentials={str(k): dict(v or {}) for k, v in (section.get("credentials") or {}).items()},
        group_id=section.get("groupId"),
        artifact_id=section.get("artifactId"),
        version=None if section.get("version") is None else str(section.get("version")),
        build_started=time.time(),
    )


def build_settings(base_dir: Path, raw: Mapping[str, Any],
                   overrides: Optional[Mapping[str, Any]] = None) -> ResourceSettings:
    """File values first, then command-line ``overrides`` (already snake_case, None = unset)."""
    values: Dict[str, Any] = {}
    for key, attr in SETTING_KEYS.items():
        if key in raw and raw[key] is not None:
            values[attr] = raw[key]
    for attr, value in (overrides or {}).items():
        if value is not None:
            values[attr] = value

    for attr in PATH_SETTINGS & set(values):
        values[attr] = _resolve(base_dir, values[attr])
    for attr in BOOL_SETTINGS & set(values):
        if not isinstance(values[attr], bool):
            raise ConfigError(f"'{attr}' must be true or false")
    if "resource_file_type" in values:
        try:
            values["resource_file_type"] = ResourceFileType(str(values["resource_file_type"]).lower())
        except ValueError as e:
            raise ConfigError(f"resourceFileType must be 'yaml' or 'json', got '{values['resource_file_type']}'") from e

    try:
        images = [ImageConfiguration.from_dict(i) for i in raw.get("images") or []]
        mappings = [MappingConfig.from_dict(m) for m in raw.get("mappings") or []]
    except (AttributeError, KeyError, TypeError) as e:
        raise ConfigError(f"Malformed images or mappings configuration: {e}") from e
    extra_images = (overrides or {}).get("images") or []

    return ResourceSettings(
        enricher=ProcessorConfig.from_dict(raw.get("enricher")),
        generator=ProcessorConfig.from_dict(raw.get("generator")),
        images=images + list(extra_images),
        mappings=mappings,
        **{k: v for k, v in values.items() if k != "images"},
    )
