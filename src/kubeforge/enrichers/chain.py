#!/usr/bin/env python3
"""
KUBEFORGE ENRICHER CHAIN
------------------------
Enrichers transform the ResourceList in three phases:

  CREATE  add default resources implied by the images
  ENRICH  mutate existing resources (labels, images, policies...)
  VISIT   tree-wide post-processing such as naming policy

Within a phase enrichers run in the order of the effective enricher
ProcessorConfig. Every phase method defaults to a no-op, so an enricher only
implements the phases it takes part in.

Author: KubeForge Team
Date: 2026-01-16
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from kubeforge.core.errors import EnricherFailure, PipelineCancelled
from kubeforge.core.models import (
    CancelToken,
    ImageConfiguration,
    PlatformMode,
    ProcessorConfig,
    Project,
    ResourceList,
    RuntimeMode,
    resource_key,
)
from kubeforge.core.registry import ProcessorRegistry

logger = logging.getLogger("kubeforge.enrichers")


class Phase(str, Enum):
    CREATE = "create"
    ENRICH = "enrich"
    VISIT = "visit"


PHASES = (Phase.CREATE, Phase.ENRICH, Phase.VISIT)


@dataclass
class EnricherContext:
    project: Project
    images: Tuple[ImageConfiguration, ...] = ()
    config: ProcessorConfig = field(default_factory=ProcessorConfig)
    runtime_mode: RuntimeMode = RuntimeMode.KUBERNETES
    build_timestamp: Optional[str] = None
    logger: logging.Logger = field(default=logger)
    cancel: Optional[CancelToken] = None


class Enricher:
    """
    Base enricher. Subclasses set ``name`` and override the phase methods
    they need. Enrichers must be idempotent within a run and may only delete
    resources they created themselves unless ``may_remove`` is set.
    """
    name = ""
    may_remove = False

    def __init__(self, context: EnricherContext):
        self.context = context

    @property
    def log(self) -> logging.Logger:
        return self.context.logger

    def option(self, key: str, default: Any = None) -> Any:
        return self.context.config.get(self.name, key, default)

    def is_applicable(self, project: Project) -> bool:
        return True

    def create(self, platform: PlatformMode, resources: ResourceList):
        pass

    def enrich(self, platform: PlatformMode, resources: ResourceList):
        pass

    def visit(self, platform: PlatformMode, resources: ResourceList):
        pass


class EnricherChain:
    """
    Builds the active enrichers once and runs them phase by phase.
    Unknown ids in the configuration fail fast at construction.
    """

    def __init__(self, context: EnricherContext, registry: Optional[ProcessorRegistry] = None):
        if registry is None:
            from kubeforge.enrichers.builtin import default_enricher_registry
            registry = default_enricher_registry()
        self.context = context
        self.registry = registry
        self.enrichers: List[Enricher] = [
            self._build(pid) for pid in context.config.active(registry.available())
        ]
        # id(obj) -> enricher that created it during this run
        self._created_by: Dict[int, str] = {}

    def _build(self, pid: str) -> Enricher:
        self.registry.get(pid)
        try:
            return self.registry.create(pid, self.context)
        except Exception as e:
            raise EnricherFailure(pid, e) from e

    @property
    def ids(self) -> List[str]:
        return [e.name for e in self.enrichers]

    def run(self, platform: PlatformMode, resources: ResourceList) -> ResourceList:
        cancel = self.context.cancel
        for phase in PHASES:
            if cancel is not None:
                cancel.check(f"before {phase.value} phase")
            self.run_phase(phase, platform, resources)
        return resources

    def run_phase(self, phase: Phase, platform: PlatformMode, resources: ResourceList):
        for enricher in self.enrichers:
            before = list(resources)
            try:
                if not enricher.is_applicable(self.context.project):
                    continue
                getattr(enricher, phase.value)(platform, resources)
            except PipelineCancelled:
                raise
            except Exception as e:
                raise EnricherFailure(enricher.name, e) from e
            self._track(enricher, before, resources)

    def _track(self, enricher: Enricher, before: List[Dict[str, Any]], resources: ResourceList):
        before_ids = {id(obj) for obj in before}
        for obj in before:
            self._created_by.setdefault(id(obj), "")
        present = set()
        for obj in resources:
            present.add(id(obj))
            if id(obj) not in before_ids:
                self._created_by.setdefault(id(obj), enricher.name)

        if enricher.may_remove:
            return
        for obj in before:
            if id(obj) in present:
                continue
            if self._created_by.get(id(obj)) == enricher.name:
                continue
            key = resource_key(obj)
            raise EnricherFailure(
                enricher.name,
                RuntimeError(f"removed {key.kind}/{key.name} without declaring may_remove"),
            )
