#!/usr/bin/env python3
"""
KUBEFORGE RESOURCE SERVICE
--------------------------
Collects fragments, runs the enricher chain, filters by classifier and
writes the bundle:

    <targetDir>/<classifier>/<type>-<name>.<ext>   one file per resource
    <targetDir>/<classifier>.<ext>                 aggregate of the full list

Writes go to a staging directory next to the bundle and are only renamed
into place once every file is written (and the optional pre-commit check
passed). On any failure the staging directory is removed, so the previous
bundle stays untouched.

Author: KubeForge Team
Date: 2026-01-16
"""

import json
import logging
import os
import re
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from kubeforge.core.errors import DuplicateResource, IOFailure
from kubeforge.core.models import (
    CancelToken,
    MappingConfig,
    PlatformMode,
    Project,
    ResourceClassifier,
    ResourceFileType,
    ResourceList,
    resource_key,
)
from kubeforge.enrichers.chain import EnricherChain
from kubeforge.resource.exporter import KubeExporter
from kubeforge.resource.fragments import ResourceFilesProcessor, read_fragments
from kubeforge.resource.mappings import KindFilenameMapper, excluded_kinds

logger = logging.getLogger("kubeforge.resource")

_TEMPLATE_VARIABLE = re.compile(r"\$\{([A-Za-z0-9_]+)\}")


@dataclass
class ResourceServiceConfig:
    project: Project
    target_dir: Path
    resource_dir: Optional[Path] = None
    environment: Optional[str] = None
    resource_file_type: ResourceFileType = ResourceFileType.yaml
    mappings: List[MappingConfig] = field(default_factory=list)
    resource_files_processor: Optional[ResourceFilesProcessor] = None
    work_dir: Optional[Path] = None
    interpolate_template_parameters: bool = True


def classifier_for(platform: PlatformMode) -> ResourceClassifier:
    if platform == PlatformMode.openshift:
        return ResourceClassifier.OPENSHIFT
    return ResourceClassifier.KUBERNETES


class ResourceService:

    def __init__(self, config: ResourceServiceConfig, exporter: Optional[KubeExporter] = None,
                 cancel: Optional[CancelToken] = None):
        self.config = config
        self.exporter = exporter or KubeExporter()
        self.mapper = KindFilenameMapper(config.mappings)
        self.cancel = cancel
        self._template_parameters: Dict[str, str] = {}

    def _check_cancel(self, where: str):
        if self.cancel is not None:
            self.cancel.check(where)

    # --- Generation ---

    def generate_resources(self, platform: PlatformMode, enricher_chain: EnricherChain,
                           log: Optional[logging.Logger] = None,
                           classifier: Optional[ResourceClassifier] = None) -> ResourceList:
        log = log or logger
        fragments = read_fragments(
            self.config.resource_dir,
            self.config.environment,
            self.mapper,
            processor=self.config.resource_files_processor,
            work_dir=self.config.work_dir,
        )
        log.info(f"Read {len(fragments)} resource fragment(s)")

        resources = ResourceList(fragment.obj for fragment in fragments)
        enricher_chain.run(platform, resources)
        self._template_parameters = self._collect_template_parameters(resources)

        classifier = classifier or classifier_for(platform)
        dropped_kinds = excluded_kinds(classifier)
        for obj in resources.retain(lambda o: o.get("kind") not in dropped_kinds):
            key = resource_key(obj)
            log.debug(f"Dropping {key.kind}/{key.name}: not part of the {classifier.value} bundle")

        return resources.freeze()

    @staticmethod
    def _collect_template_parameters(resources: ResourceList) -> Dict[str, str]:
        parameters = {}
        for template in resources.of_kind("Template"):
            for param in template.get("parameters") or []:
                if param.get("name") and param.get("value") is not None:
                    parameters[str(param["name"])] = str(param["value"])
        return parameters

    def _interpolate(self, text: str, file_type: ResourceFileType = ResourceFileType.yaml) -> str:
        if not self.config.interpolate_template_parameters or not self._template_parameters:
            return text
        parameters = self._template_parameters
        if file_type == ResourceFileType.json:
            # Values land inside JSON string literals
            parameters = {k: json.dumps(v)[1:-1] for k, v in parameters.items()}
        return _TEMPLATE_VARIABLE.sub(lambda m: parameters.get(m.group(1), m.group(0)), text)

    # --- Writing ---

    def write_resources(self, resources: ResourceList, classifier: ResourceClassifier,
                        log: Optional[logging.Logger] = None,
                        before_commit: Optional[Callable[[Path], Any]] = None) -> Path:
        """
        Writes the bundle and returns the path of the aggregate file.
        ``before_commit`` receives the staged classifier directory and may
        raise to abort publication.
        """
        log = log or logger
        file_type = self.config.resource_file_type
        target_dir = Path(self.config.target_dir)
        aggregate_name = f"{classifier.value}.{file_type.extension}"

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{classifier.value}-staging-", dir=target_dir))
        except OSError as e:
            raise IOFailure(target_dir, e) from e

        try:
            staged_dir = staging / classifier.value
            staged_dir.mkdir()
            written: Dict[str, Dict[str, Any]] = {}

            # --- PHASE 1: ONE FILE PER RESOURCE ---
            for obj in resources:
                self._check_cancel("before writing resource file")
                key = resource_key(obj)
                filename = self.mapper.output_filename(key.kind, key.name, file_type.extension)
                if filename in written:
                    raise DuplicateResource(key.kind, key.name, [staged_dir / filename])
                written[filename] = obj
                self._write_file(staged_dir / filename, self._interpolate(self.exporter.export(obj, file_type), file_type))

            # --- PHASE 2: AGGREGATE ---
            self._check_cancel("before writing aggregate")
            aggregate_text = self._interpolate(self.exporter.export_all(list(resources), file_type), file_type)
            self._write_file(staging / aggregate_name, aggregate_text)

            # --- PHASE 3: PRE-COMMIT CHECK ---
            if before_commit is not None:
                before_commit(staged_dir)

            self._check_cancel("before publishing bundle")
            aggregate = self._publish(staging, staged_dir, target_dir / classifier.value,
                                      target_dir / aggregate_name)
            log.info(f"Wrote {len(written)} resource file(s) to {target_dir / classifier.value}")
            return aggregate
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    @staticmethod
    def _write_file(path: Path, content: str):
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise IOFailure(path, e) from e

    @staticmethod
    def _publish(staging: Path, staged_dir: Path, final_dir: Path, aggregate: Path) -> Path:
        backup = None
        try:
            if final_dir.exists():
                backup = final_dir.with_name(f".{final_dir.name}-previous-{uuid.uuid4().hex[:8]}")
                os.replace(final_dir, backup)
            try:
                os.replace(staged_dir, final_dir)
                os.replace(staging / aggregate.name, aggregate)
            except OSError:
                # Put the previous bundle back before surfacing the error
                if final_dir.exists():
                    shutil.rmtree(final_dir, ignore_errors=True)
                if backup is not None:
                    os.replace(backup, final_dir)
                    backup = None
                raise
        except OSError as e:
            raise IOFailure(final_dir, e) from e
        finally:
            if backup is not None:
                shutil.rmtree(backup, ignore_errors=True)
        return aggregate
