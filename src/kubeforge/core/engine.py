#!/usr/bin/env python3
"""
KUBEFORGE ENGINE - The Pipeline Coordinator
-------------------------------------------
The PipelineCoordinator drives one resource-generation invocation:

    profile -> images (generators) -> resources (enrichers) -> validate -> write

It honours the skip / environment / platform switches, performs the Dekorate
handshake, and is the single place where pipeline errors are turned into
results for the surrounding build shell.

Author: KubeForge Team
Date: 2026-01-16
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, MutableMapping, Optional

from kubeforge.core import cluster, interop
from kubeforge.core.errors import IOFailure, KubeForgeError, ValidationFailed
from kubeforge.core.models import (
    ArtifactRecord,
    CancelToken,
    ImageConfiguration,
    MappingConfig,
    PipelineResult,
    PlatformMode,
    ProcessorConfig,
    Project,
    ResourceClassifier,
    ResourceFileType,
    ResultStatus,
    RuntimeMode,
)
from kubeforge.core.registry import ProcessorRegistry
from kubeforge.enrichers.builtin import default_enricher_registry
from kubeforge.enrichers.chain import EnricherChain, EnricherContext
from kubeforge.images.generators import GeneratorChain, default_generator_registry
from kubeforge.images.name import IMAGE_USER_PROPERTY
from kubeforge.images.resolver import ImageResolver
from kubeforge.profiles.store import ENRICHER, GENERATOR, ProfileStore
from kubeforge.resource.fragments import ResourceFilesProcessor, effective_resource_dir
from kubeforge.resource.service import ResourceService, ResourceServiceConfig
from kubeforge.validator.validator import ResourceValidator

logger = logging.getLogger("kubeforge.engine")

EFFECTIVE_PLATFORM_MODE_PROPERTY = "kubeforge.effective.platform.mode"
DEFAULT_TARGET_SUBDIR = "META-INF/jkube"
DEFAULT_RESOURCE_SUBDIR = "src/main/jkube"


@dataclass
class ResourceSettings:
    """User parameters of one invocation."""
    target_dir: Optional[Path] = None          # default <outputDir>/META-INF/jkube
    resource_dir: Optional[Path] = None        # default <baseDir>/src/main/jkube
    environment: Optional[str] = None
    work_dir: Optional[Path] = None            # default <buildDir>/kubeforge
    profile: Optional[str] = None
    enricher: ProcessorConfig = field(default_factory=ProcessorConfig)
    generator: ProcessorConfig = field(default_factory=ProcessorConfig)
    images: List[ImageConfiguration] = field(default_factory=list)
    mappings: List[MappingConfig] = field(default_factory=list)
    resource_file_type: ResourceFileType = ResourceFileType.yaml
    skip_resource: bool = False
    skip_resource_validation: bool = False
    fail_on_validation_error: bool = False
    use_project_classpath: bool = False
    interpolate_template_parameters: bool = True
    merge_with_dekorate: bool = False
    namespace: Optional[str] = None


class PipelineCoordinator:
    """
    Principal orchestrator for Kubernetes manifest generation.
    Subclasses targeting another platform override the three mode attributes.
    """
    runtime_mode = RuntimeMode.KUBERNETES
    platform_mode = PlatformMode.kubernetes
    classifier = ResourceClassifier.KUBERNETES

    def __init__(self, project: Project, settings: ResourceSettings,
                 attach_artifact: Optional[Callable[[ArtifactRecord], None]] = None,
                 resource_files_processor: Optional[ResourceFilesProcessor] = None,
                 cancel: Optional[CancelToken] = None,
                 profile_store: Optional[ProfileStore] = None,
                 generator_registry: Optional[ProcessorRegistry] = None,
                 enricher_registry: Optional[ProcessorRegistry] = None,
                 namespace_lookup: Callable[[], str] = cluster.current_namespace,
                 environ: Optional[MutableMapping[str, str]] = None,
                 log: Optional[logging.Logger] = None):
        self.project = project
        self.settings = settings
        self.attach_artifact = attach_artifact
        self.resource_files_processor = resource_files_processor
        self.cancel = cancel or CancelToken()
        self.profile_store = profile_store or ProfileStore()
        self.generator_registry = generator_registry or default_generator_registry()
        self.enricher_registry = enricher_registry or default_enricher_registry()
        self.namespace_lookup = namespace_lookup
        self.environ = environ
        self.log = log or logger

    # --- Effective locations ---

    @property
    def target_dir(self) -> Path:
        return Path(self.settings.target_dir or Path(self.project.output_dir) / DEFAULT_TARGET_SUBDIR)

    @property
    def resource_dir(self) -> Path:
        return Path(self.settings.resource_dir or Path(self.project.base_dir) / DEFAULT_RESOURCE_SUBDIR)

    @property
    def real_resource_dir(self) -> Path:
        return effective_resource_dir(self.resource_dir, self.settings.environment)

    @property
    def work_dir(self) -> Path:
        return Path(self.settings.work_dir or Path(self.project.build_dir) / "kubeforge")

    def _profile_search_dirs(self) -> List[Path]:
        dirs = [self.real_resource_dir]
        if self.resource_dir not in dirs:
            dirs.append(self.resource_dir)
        return dirs

    # --- Entry point ---

    def execute(self) -> PipelineResult:
        settings = self.settings
        if settings.skip_resource:
            self.log.info("Resource generation skipped")
            return PipelineResult(ResultStatus.SKIPPED)

        if interop.uses_dekorate(self.project.compile_classpath):
            if settings.merge_with_dekorate:
                self.log.info("Dekorate detected, merging KubeForge and Dekorate resources")
                interop.export_dekorate_dirs(merge=True, environ=self.environ)
            else:
                self.log.info("Dekorate detected, delegating resource build")
                interop.export_dekorate_dirs(merge=False, environ=self.environ)
                return PipelineResult(ResultStatus.SKIPPED)

        if self.project.is_aggregate and not self.real_resource_dir.is_dir():
            self.log.info("Aggregate project without resource directory, nothing to generate")
            return PipelineResult(ResultStatus.SKIPPED)

        try:
            return self._run()
        except KubeForgeError as e:
            self.log.error(f"Failed to generate {self.classifier.value} descriptor: {e}")
            raise
        except OSError as e:
            self.log.error(f"Failed to generate {self.classifier.value} descriptor: {e}")
            raise IOFailure(Path(getattr(e, "filename", None) or self.target_dir), e) from e

    def _run(self) -> PipelineResult:
        settings = self.settings
        project = self._late_init()

        # --- PHASE 1: SERVICE HUB ---
        generator_registry = self.generator_registry.copy()
        enricher_registry = self.enricher_registry.copy()
        if settings.use_project_classpath:
            generator_registry.load_classpath(project.compile_classpath)
            enricher_registry.load_classpath(project.compile_classpath)

        profile = self.profile_store.load_profile(settings.profile, self._profile_search_dirs())
        self.log.debug(f"Using profile '{profile.name}'")

        # --- PHASE 2: IMAGES ---
        self.cancel.check("before image resolution")
        resolver = ImageResolver(
            project,
            self.profile_store.blend(profile, settings.generator, GENERATOR),
            runtime_mode=self.runtime_mode,
            namespace=settings.namespace,
            use_project_classpath=settings.use_project_classpath,
            generator_chain=GeneratorChain(generator_registry),
            namespace_lookup=self.namespace_lookup,
            cancel=self.cancel,
        )
        images = resolver.resolve(settings.images, self.log)

        # --- PHASE 3: RESOURCES ---
        self.cancel.check("before resource generation")
        enricher_context = EnricherContext(
            project=project,
            images=images,
            config=self.profile_store.blend(profile, settings.enricher, ENRICHER),
            runtime_mode=self.runtime_mode,
            build_timestamp=images[0].build_timestamp if images else None,
            logger=self.log,
            cancel=self.cancel,
        )
        chain = EnricherChain(enricher_context, enricher_registry)
        service = ResourceService(
            ResourceServiceConfig(
                project=project,
                target_dir=self.target_dir,
                resource_dir=self.resource_dir,
                environment=settings.environment,
                resource_file_type=settings.resource_file_type,
                mappings=list(settings.mappings),
                resource_files_processor=self.resource_files_processor,
                work_dir=self.work_dir,
                interpolate_template_parameters=settings.interpolate_template_parameters,
            ),
            cancel=self.cancel,
        )
        resources = service.generate_resources(self.platform_mode, chain, self.log, classifier=self.classifier)
        if not resources:
            self.log.info("No resources to write")
            return PipelineResult(ResultStatus.SKIPPED)

        # --- PHASE 4: VALIDATE & WRITE ---
        warnings: List[str] = []
        artifact_path = service.write_resources(
            resources, self.classifier, self.log,
            before_commit=lambda staged: self._validate_if_required(staged, warnings),
        )

        # --- PHASE 5: ATTACH ---
        artifact = ArtifactRecord(
            type=settings.resource_file_type.artifact_type,
            classifier=self.classifier.value,
            path=artifact_path,
        )
        if self.attach_artifact is not None:
            self.attach_artifact(artifact)

        status = ResultStatus.VALIDATION_WARNED if warnings else ResultStatus.WRITTEN
        return PipelineResult(status, artifact=artifact, resources=len(resources), warnings=warnings)

    def _late_init(self) -> Project:
        """OpenShift mode records the image user and effective platform in the project properties."""
        if self.runtime_mode != RuntimeMode.OPENSHIFT:
            return self.project
        properties: Dict[str, str] = dict(self.project.properties)
        if IMAGE_USER_PROPERTY not in properties:
            namespace = self.settings.namespace or self.namespace_lookup()
            self.log.info(f"Using container image name of namespace: {namespace}")
            properties[IMAGE_USER_PROPERTY] = namespace
        properties.setdefault(EFFECTIVE_PLATFORM_MODE_PROPERTY, self.runtime_mode.value)
        return replace(self.project, properties=properties)

    def _validate_if_required(self, staged_dir: Path, warnings: List[str]):
        if self.settings.skip_resource_validation:
            return
        try:
            ResourceValidator(staged_dir, self.classifier, self.log).validate()
        except ValidationFailed as e:
            if self.settings.fail_on_validation_error:
                self.log.error(str(e))
                self.log.error("Use --skip-resource-validation to skip the validation")
                raise
            self.log.warning(str(e))
            warnings.extend(e.details)
        except (OSError, ValueError) as e:
            if self.settings.fail_on_validation_error:
                raise ValidationFailed([f"Failed to validate resources: {e}"]) from e
            self.log.warning(f"Failed to validate resources: {e}")
            warnings.append(str(e))


class OpenShiftCoordinator(PipelineCoordinator):
    """Generates the OpenShift flavour of the bundle."""
    runtime_mode = RuntimeMode.OPENSHIFT
    platform_mode = PlatformMode.openshift
    classifier = ResourceClassifier.OPENSHIFT
