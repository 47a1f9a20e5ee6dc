#!/usr/bin/env python3
"""
KUBEFORGE GENERATOR CHAIN
-------------------------
Generators introspect the project and propose container images. They run
in the order given by the effective generator ProcessorConfig; each one
receives the accumulator produced by its predecessors and returns a new one.

Author: KubeForge Team
Date: 2026-01-16
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from kubeforge.core.errors import GeneratorFailure, PipelineCancelled
from kubeforge.core.models import (
    BuildConfiguration,
    CancelToken,
    ImageConfiguration,
    PackagingKind,
    ProcessorConfig,
    Project,
    RuntimeMode,
)
from kubeforge.core.registry import ProcessorRegistry
from kubeforge.core.timestamp import format_timestamp

logger = logging.getLogger("kubeforge.generators")


@dataclass
class GeneratorContext:
    project: Project
    config: ProcessorConfig
    runtime_mode: RuntimeMode = RuntimeMode.KUBERNETES
    strategy: str = "docker"
    use_project_classpath: bool = False
    build_timestamp: Optional[datetime] = None
    logger: logging.Logger = field(default=logger)
    cancel: Optional[CancelToken] = None


class Generator:
    """
    Base generator. Subclasses set ``name`` and override ``customize``;
    ``is_applicable`` gates whether the generator runs for a project.
    """
    name = ""

    def __init__(self, context: GeneratorContext):
        self.context = context

    @property
    def log(self) -> logging.Logger:
        return self.context.logger

    def option(self, key: str, default: Any = None) -> Any:
        return self.context.config.get(self.name, key, default)

    def is_applicable(self, project: Project) -> bool:
        return True

    def customize(self, images: List[ImageConfiguration]) -> List[ImageConfiguration]:
        return images


class DockerfileGenerator(Generator):
    """Adds an image built from the project's Dockerfile when the user declared none."""
    name = "dockerfile"

    def _dockerfile(self):
        return self.context.project.base_dir / self.option("dockerfile", "Dockerfile")

    def is_applicable(self, project: Project) -> bool:
        return project.packaging != PackagingKind.AGGREGATE and self._dockerfile().is_file()

    def customize(self, images: List[ImageConfiguration]) -> List[ImageConfiguration]:
        if images and not self.option("add", False):
            return images

        ports = self.option("ports", [])
        if isinstance(ports, str):
            ports = [p.strip() for p in ports.split(",") if p.strip()]

        project = self.context.project
        image = ImageConfiguration(
            name=self.option("name", "%g/%a:%l"),
            alias=self.option("alias", project.artifact_id or "app"),
            build=BuildConfiguration(
                dockerfile=str(self._dockerfile()),
                context_dir=str(project.base_dir),
                ports=[str(p) for p in ports],
            ),
        )
        self.log.info(f"{self.name}: using Dockerfile {image.build.dockerfile}")
        return images + [image]


class OciLabelsGenerator(Generator):
    """Stamps standard OCI labels on every image that is built locally."""
    name = "oci-labels"

    def customize(self, images: List[ImageConfiguration]) -> List[ImageConfiguration]:
        project = self.context.project
        stamp = self.context.build_timestamp
        result = []
        for image in images:
            if image.build is None:
                result.append(image)
                continue
            labels = dict(image.build.labels)
            if stamp is not None:
                labels.setdefault("org.opencontainers.image.created", format_timestamp(stamp))
            if project.version:
                labels.setdefault("org.opencontainers.image.version", project.version)
            if project.artifact_id:
                labels.setdefault("org.opencontainers.image.title", project.artifact_id)
            build = copy.deepcopy(image.build)
            build.labels = labels
            result.append(image.copy(build=build))
        return result


def default_generator_registry() -> ProcessorRegistry:
    return ProcessorRegistry("generator", [
        (DockerfileGenerator.name, DockerfileGenerator),
        (OciLabelsGenerator.name, OciLabelsGenerator),
    ])


class GeneratorChain:
    """Invokes the active generators in configured order over the image list."""

    def __init__(self, registry: Optional[ProcessorRegistry] = None):
        self.registry = registry or default_generator_registry()

    def generate(self, current_images: List[ImageConfiguration], ctx: GeneratorContext) -> List[ImageConfiguration]:
        # Work on a private copy: a failing generator leaves the caller's list untouched
        images = [image.copy() for image in current_images]

        for pid in ctx.config.active(self.registry.available()):
            if ctx.cancel is not None:
                ctx.cancel.check(f"before generator {pid}")
            # Unknown ids surface as UnknownProcessor, not as a generator failure
            self.registry.get(pid)
            try:
                generator = self.registry.create(pid, ctx)
                if not generator.is_applicable(ctx.project):
                    ctx.logger.debug(f"Generator '{pid}' not applicable, skipping")
                    continue
                images = list(generator.customize(images))
            except PipelineCancelled:
                raise
            except Exception as e:
                raise GeneratorFailure(pid, e) from e
            ctx.logger.debug(f"Generator '{pid}' produced {len(images)} image(s)")

        return images
