#!/usr/bin/env python3
"""
KUBEFORGE FRAGMENT READER
-------------------------
Fragments are developer-authored, possibly partial Kubernetes objects kept
in the resource directory as ``<type>-<name>.(yaml|yml|json)``. Missing
``kind``, ``apiVersion`` and ``metadata.name`` are filled from the filename
and the kind table.

When an environment is selected, ``<resourceDir>/<environment>`` is the
effective directory; its fragments override same-keyed fragments of the
parent directory. Nested directories are never scanned.

Author: KubeForge Team
Date: 2026-01-16
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubeforge.core.errors import DuplicateResource, IOFailure, ResourceParseError
from kubeforge.resource.mappings import KindFilenameMapper

logger = logging.getLogger("kubeforge.fragments")

FRAGMENT_SUFFIXES = (".yaml", ".yml", ".json")
IGNORED_FILES = ("profiles.yaml", "profiles.yml")

ResourceFilesProcessor = Callable[[List[Path], Optional[Path]], List[Path]]


@dataclass
class Fragment:
    path: Path
    obj: Dict[str, Any]

    @property
    def key(self) -> Tuple[str, str]:
        metadata = self.obj.get("metadata") or {}
        return str(self.obj.get("kind") or ""), str(metadata.get("name") or "")


def effective_resource_dir(resource_dir: Optional[Path], environment: Optional[str]) -> Optional[Path]:
    if resource_dir is None:
        return None
    return Path(resource_dir) / environment if environment else Path(resource_dir)


def list_fragment_files(directory: Path) -> List[Path]:
    if not directory or not directory.is_dir():
        return []
    return sorted(
        f for f in directory.iterdir()
        if f.is_file() and f.suffix.lower() in FRAGMENT_SUFFIXES and f.name not in IGNORED_FILES
    )


def _identity_from_filename(path: Path, mapper: KindFilenameMapper) -> Tuple[Optional[str], Optional[str]]:
    stem = path.stem
    kind = mapper.kind_for_type(stem)
    if kind:
        return kind, None
    if "-" in stem:
        prefix, rest = stem.split("-", 1)
        kind = mapper.kind_for_type(prefix)
        if kind:
            return kind, rest or None
    return None, None


def parse_fragment(path: Path, mapper: KindFilenameMapper, source: Optional[Path] = None) -> Fragment:
    """Parses one fragment file. ``source`` is the original path when ``path`` is a processed copy."""
    origin = source or path
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise IOFailure(path, e) from e

    try:
        if path.suffix.lower() == ".json":
            obj = json.loads(text) if text.strip() else None
        else:
            obj = YAML(typ="safe").load(text)
    except (YAMLError, ValueError) as e:
        raise ResourceParseError(origin, e) from e

    if obj is None:
        raise ResourceParseError(origin, reason="fragment is empty")
    if not isinstance(obj, dict):
        raise ResourceParseError(origin, reason=f"expected a mapping, found {type(obj).__name__}")

    kind, name = _identity_from_filename(origin, mapper)
    if not obj.get("kind"):
        if not kind:
            raise ResourceParseError(origin, reason="no 'kind' in content and none derivable from the filename")
        obj["kind"] = kind
    if not obj.get("apiVersion"):
        obj["apiVersion"] = mapper.api_version_for(obj["kind"])

    metadata = obj.get("metadata")
    if metadata is None:
        metadata = obj["metadata"] = {}
    elif not isinstance(metadata, dict):
        raise ResourceParseError(origin, reason="'metadata' must be a mapping")
    if not metadata.get("name") and name:
        metadata["name"] = name

    return Fragment(path=origin, obj=obj)


def _read_directory(directory: Path, mapper: KindFilenameMapper,
                    processor: Optional[ResourceFilesProcessor], work_dir: Optional[Path]) -> Dict[Tuple[str, str], Fragment]:
    files = list_fragment_files(directory)
    processed = processor(files, work_dir) if (processor and files) else files

    fragments: Dict[Tuple[str, str], Fragment] = {}
    for source, actual in zip(files, processed):
        fragment = parse_fragment(Path(actual), mapper, source=source)
        if fragment.key in fragments:
            raise DuplicateResource(fragment.key[0], fragment.key[1], [fragments[fragment.key].path, source])
        fragments[fragment.key] = fragment
    return fragments


def read_fragments(resource_dir: Optional[Path], environment: Optional[str], mapper: KindFilenameMapper,
                   processor: Optional[ResourceFilesProcessor] = None,
                   work_dir: Optional[Path] = None) -> List[Fragment]:
    """Returns fragments in stable (kind, name) order."""
    if resource_dir is None:
        return []

    directories: Sequence[Path] = [Path(resource_dir)]
    if environment:
        directories = [Path(resource_dir), effective_resource_dir(resource_dir, environment)]

    merged: Dict[Tuple[str, str], Fragment] = {}
    for directory in directories:
        for key, fragment in _read_directory(directory, mapper, processor, work_dir).items():
            if key in merged:
                logger.info(f"Fragment {fragment.path} overrides {merged[key].path}")
            merged[key] = fragment

    return [merged[key] for key in sorted(merged)]
