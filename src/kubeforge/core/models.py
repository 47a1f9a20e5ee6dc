#!/usr/bin/env python3
"""
KUBEFORGE CORE MODELS
---------------------
Defines the fundamental data structures shared by every stage of the
KubeForge resource pipeline: the project snapshot, image configurations,
processor configurations, profiles and the resource list itself.

Project and user configuration records are built once per invocation and
treated as read-only afterwards.

Author: KubeForge Team
Date: 2026-01-16
"""

import copy
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from kubeforge.core.errors import PipelineCancelled


class PackagingKind(str, Enum):
    LIBRARY = "library"
    DEPLOYABLE = "deployable"
    AGGREGATE = "aggregate"


class ResourceClassifier(str, Enum):
    """Selects the platform-specific output subtree and filter."""
    KUBERNETES = "kubernetes"
    OPENSHIFT = "openshift"


class PlatformMode(str, Enum):
    kubernetes = "kubernetes"
    openshift = "openshift"


class RuntimeMode(str, Enum):
    KUBERNETES = "kubernetes"
    OPENSHIFT = "openshift"


class ResourceFileType(str, Enum):
    yaml = "yaml"
    json = "json"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def artifact_type(self) -> str:
        return self.value


class ResultStatus(str, Enum):
    WRITTEN = "success-written"
    SKIPPED = "success-skipped"
    VALIDATION_WARNED = "validation-warned"


@dataclass(frozen=True)
class Project:
    """
    Immutable snapshot of build-time facts handed over by the build shell.
    """
    base_dir: Path
    build_dir: Path                       # e.g. <base>/target
    output_dir: Path                      # e.g. <base>/target/classes
    packaging: PackagingKind = PackagingKind.DEPLOYABLE
    compile_classpath: Tuple[Path, ...] = ()
    properties: Mapping[str, str] = field(default_factory=dict)
    credentials: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    build_started: Optional[float] = None  # epoch seconds of the invocation start

    @property
    def is_aggregate(self) -> bool:
        return self.packaging == PackagingKind.AGGREGATE


@dataclass
class BuildConfiguration:
    dockerfile: Optional[str] = None
    context_dir: Optional[str] = None
    from_image: Optional[str] = None
    args: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    ports: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@dataclass
class ImageConfiguration:
    """
    A container image the pipeline knows about, either declared by the user
    or proposed by a generator.
    """
    name: str
    alias: Optional[str] = None
    registry: Optional[str] = None
    build: Optional[BuildConfiguration] = None
    run: Dict[str, Any] = field(default_factory=dict)
    external: Dict[str, Any] = field(default_factory=dict)
    build_timestamp: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ImageConfiguration":
        build_raw = raw.get("build")
        build = None
        if build_raw is not None:
            build = BuildConfiguration(
                dockerfile=build_raw.get("dockerfile"),
                context_dir=build_raw.get("contextDir", build_raw.get("context")),
                from_image=build_raw.get("from"),
                args={str(k): str(v) for k, v in (build_raw.get("args") or {}).items()},
                labels={str(k): str(v) for k, v in (build_raw.get("labels") or {}).items()},
                ports=[str(p) for p in (build_raw.get("ports") or [])],
                tags=[str(t) for t in (build_raw.get("tags") or [])],
            )
        return cls(
            name=raw.get("name") or "",
            alias=raw.get("alias"),
            registry=raw.get("registry"),
            build=build,
            run=dict(raw.get("run") or {}),
            external=dict(raw.get("external") or {}),
        )

    def copy(self, **changes: Any) -> "ImageConfiguration":
        clone = copy.deepcopy(self)
        return replace(clone, **changes) if changes else clone


@dataclass
class ProcessorConfig:
    """
    Effective configuration for a family of processors (enrichers or generators).

    ``includes`` is the ordered list of active processor ids, ``excludes``
    removes ids from it and ``config`` holds the per-processor options.
    """
    includes: List[str] = field(default_factory=list)
    excludes: List[str] = field(default_factory=list)
    config: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "ProcessorConfig":
        if not raw:
            return cls()
        return cls(
            includes=[str(i) for i in (raw.get("includes") or [])],
            excludes=[str(e) for e in (raw.get("excludes") or [])],
            config={str(k): copy.deepcopy(dict(v or {})) for k, v in (raw.get("config") or {}).items()},
        )

    def is_empty(self) -> bool:
        return not (self.includes or self.excludes or self.config)

    def active(self, registry_order: Iterable[str] = ()) -> List[str]:
        """Ordered ids that should run. Falls back to the registry order when nothing is included."""
        ordered = self.includes if self.includes else list(registry_order)
        excluded = set(self.excludes)
        seen = set()
        result = []
        for pid in ordered:
            if pid in excluded or pid in seen:
                continue
            seen.add(pid)
            result.append(pid)
        return result

    def options(self, processor_id: str) -> Dict[str, Any]:
        return self.config.get(processor_id, {})

    def get(self, processor_id: str, key: str, default: Any = None) -> Any:
        return self.options(processor_id).get(key, default)


@dataclass
class Profile:
    name: str
    enricher: ProcessorConfig = field(default_factory=ProcessorConfig)
    generator: ProcessorConfig = field(default_factory=ProcessorConfig)
    order: int = 0
    extends: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Profile":
        return cls(
            name=str(raw.get("name") or ""),
            enricher=ProcessorConfig.from_dict(raw.get("enricher")),
            generator=ProcessorConfig.from_dict(raw.get("generator")),
            order=int(raw.get("order") or 0),
            extends=raw.get("extends"),
        )


@dataclass(frozen=True)
class MappingConfig:
    """User override of the kind <-> filename type table."""
    kind: str
    filename_types: Tuple[str, ...]
    api_version: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MappingConfig":
        types = raw.get("filenameTypes") or raw.get("filename_types") or []
        if isinstance(types, str):
            types = [t.strip() for t in types.split(",") if t.strip()]
        return cls(kind=str(raw["kind"]), filename_types=tuple(types), api_version=raw.get("apiVersion"))


class ResourceKey(NamedTuple):
    api_version: str
    kind: str
    name: str


def resource_key(obj: Mapping[str, Any]) -> ResourceKey:
    metadata = obj.get("metadata") or {}
    return ResourceKey(
        api_version=str(obj.get("apiVersion") or ""),
        kind=str(obj.get("kind") or ""),
        name=str(metadata.get("name") or ""),
    )


class ResourceList:
    """
    Ordered sequence of Kubernetes API objects (plain mappings).

    Objects are addressed by (kind, name); ``freeze`` stops further mutation
    of the list itself before it is handed to validation and writing.
    """

    def __init__(self, items: Optional[Iterable[Dict[str, Any]]] = None):
        self._items: List[Dict[str, Any]] = list(items or [])
        self._frozen = False

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    @property
    def items(self) -> List[Dict[str, Any]]:
        return list(self._items)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self):
        if self._frozen:
            raise RuntimeError("ResourceList is frozen")

    def add(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        self._check_mutable()
        self._items.append(obj)
        return obj

    def remove(self, obj: Dict[str, Any]):
        self._check_mutable()
        self._items = [item for item in self._items if item is not obj]

    def retain(self, predicate) -> List[Dict[str, Any]]:
        """Keeps objects matching ``predicate``; returns the dropped ones."""
        self._check_mutable()
        dropped = [item for item in self._items if not predicate(item)]
        self._items = [item for item in self._items if predicate(item)]
        return dropped

    def of_kind(self, *kinds: str) -> List[Dict[str, Any]]:
        return [item for item in self._items if item.get("kind") in kinds]

    def find(self, kind: str, name: str) -> Optional[Dict[str, Any]]:
        for item in self._items:
            key = resource_key(item)
            if key.kind == kind and key.name == name:
                return item
        return None

    def keys(self) -> List[ResourceKey]:
        return [resource_key(item) for item in self._items]

    def sort(self):
        self._check_mutable()
        self._items.sort(key=lambda item: (resource_key(item).kind, resource_key(item).name))

    def freeze(self) -> "ResourceList":
        self.sort()
        self._frozen = True
        return self


@dataclass(frozen=True)
class ArtifactRecord:
    """What the build shell attaches to its artifact repository."""
    type: str
    classifier: str
    path: Path


@dataclass
class PipelineResult:
    status: ResultStatus
    artifact: Optional[ArtifactRecord] = None
    resources: int = 0
    warnings: List[str] = field(default_factory=list)


class CancelToken:
    """Cooperative cancellation signal checked between pipeline phases."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, where: str = ""):
        if self._event.is_set():
            raise PipelineCancelled(where)
