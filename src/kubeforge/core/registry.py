#!/usr/bin/env python3
"""
KUBEFORGE PROCESSOR REGISTRY
----------------------------
Enrichers and generators are looked up by string id in an explicit registry.
Built-in processors come from a manifest declared in code; extra processors
can be contributed by YAML manifests that map ids to ``module:attribute``
references. Chain ordering is data (the ProcessorConfig), never discovery.

Author: KubeForge Team
Date: 2026-01-16
"""

import difflib
import importlib
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubeforge.core.errors import ConfigError, UnknownProcessor

logger = logging.getLogger("kubeforge.registry")

# Relative location of processor manifests inside a classpath directory
PROCESSOR_MANIFEST = "META-INF/kubeforge/processors.yaml"


def load_reference(reference: str) -> Any:
    """Resolves a ``package.module:attribute`` reference."""
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid processor reference '{reference}' (expected 'module:attribute')")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot load processor '{reference}': {e}") from e


class ProcessorRegistry:
    """
    Ordered mapping from processor id to a factory taking a context.
    Registration order doubles as the default chain order.
    """

    def __init__(self, kind: str, entries: Iterable[Tuple[str, Callable[..., Any]]] = ()):
        self.kind = kind
        self._by_id: Dict[str, Callable[..., Any]] = {}
        for pid, factory in entries:
            self.register(pid, factory)

    def register(self, processor_id: str, factory: Callable[..., Any]):
        if processor_id in self._by_id:
            raise ConfigError(f"Duplicate {self.kind} id: {processor_id}")
        self._by_id[processor_id] = factory

    def available(self) -> Tuple[str, ...]:
        return tuple(self._by_id.keys())

    def __contains__(self, processor_id: str) -> bool:
        return processor_id in self._by_id

    def get(self, processor_id: str) -> Callable[..., Any]:
        factory = self._by_id.get((processor_id or "").strip())
        if factory is None:
            raise UnknownProcessor(self.kind, processor_id, self.suggest(processor_id) or self.available())
        return factory

    def create(self, processor_id: str, context: Any) -> Any:
        """Builds the processor and names it after the id it was activated under."""
        processor = self.get(processor_id)(context)
        processor.name = processor_id
        return processor

    def suggest(self, processor_id: str, limit: int = 3) -> List[str]:
        return difflib.get_close_matches((processor_id or "").strip(), list(self._by_id), n=limit)

    def copy(self) -> "ProcessorRegistry":
        return ProcessorRegistry(self.kind, self._by_id.items())

    def load_manifest(self, manifest: Mapping[str, Any], source: str = "<manifest>"):
        entries = manifest.get(f"{self.kind}s") or {}
        if not isinstance(entries, Mapping):
            raise ConfigError(f"'{self.kind}s' in {source} must be a mapping of id to 'module:attribute'")
        for pid, reference in entries.items():
            logger.debug(f"Registering {self.kind} '{pid}' from {source}")
            self.register(str(pid), load_reference(str(reference)))

    def load_classpath(self, classpath: Iterable[Path]):
        """Reads processor manifests shipped in classpath directories."""
        yaml = YAML(typ="safe")
        for entry in classpath:
            manifest_path = Path(entry) / PROCESSOR_MANIFEST
            if not manifest_path.is_file():
                continue
            try:
                manifest = yaml.load(manifest_path.read_text(encoding="utf-8")) or {}
            except (OSError, YAMLError) as e:
                raise ConfigError(f"Cannot read processor manifest {manifest_path}: {e}") from e
            self.load_manifest(manifest, source=str(manifest_path))
