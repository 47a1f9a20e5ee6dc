#!/usr/bin/env python3
"""
KUBEFORGE IMAGE RESOLVER
------------------------
Turns the user's image declarations into the frozen list of images the
rest of the pipeline works with:

  1. expand shorthand declarations through the image config handlers,
  2. fetch the shared build timestamp,
  3. let the generator chain add or rewrite images,
  4. expand name placeholders, apply registry / namespace defaults,
  5. reject duplicates and freeze.

Author: KubeForge Team
Date: 2026-01-16
"""

import logging
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from kubeforge.core import cluster
from kubeforge.core.errors import DuplicateImage
from kubeforge.core.models import CancelToken, ImageConfiguration, ProcessorConfig, Project, RuntimeMode
from kubeforge.core.timestamp import format_timestamp, get_build_timestamp
from kubeforge.images.generators import GeneratorChain, GeneratorContext
from kubeforge.images.handlers import DEFAULT_HANDLERS, ImageConfigHandler, expand_image
from kubeforge.images.name import IMAGE_REGISTRY_PROPERTY, IMAGE_USER_PROPERTY, ImageName, format_image_name

logger = logging.getLogger("kubeforge.images")


class ImageResolver:

    def __init__(self, project: Project, generator_config: ProcessorConfig,
                 runtime_mode: RuntimeMode = RuntimeMode.KUBERNETES,
                 namespace: Optional[str] = None,
                 use_project_classpath: bool = False,
                 strategy: str = "docker",
                 generator_chain: Optional[GeneratorChain] = None,
                 handlers: Mapping[str, ImageConfigHandler] = DEFAULT_HANDLERS,
                 namespace_lookup: Callable[[], str] = cluster.current_namespace,
                 cancel: Optional[CancelToken] = None):
        self.project = project
        self.generator_config = generator_config
        self.runtime_mode = runtime_mode
        self.namespace = namespace
        self.use_project_classpath = use_project_classpath
        self.strategy = strategy
        self.generator_chain = generator_chain or GeneratorChain()
        self.handlers = handlers
        self.namespace_lookup = namespace_lookup
        self.cancel = cancel

    def _image_user(self, log: logging.Logger) -> Optional[str]:
        """In OpenShift mode images live in the namespace's image stream."""
        if self.runtime_mode != RuntimeMode.OPENSHIFT:
            return None
        if self.project.properties.get(IMAGE_USER_PROPERTY):
            return self.project.properties[IMAGE_USER_PROPERTY]
        namespace = self.namespace or self.namespace_lookup()
        log.info(f"Using container image name of namespace: {namespace}")
        return namespace

    def resolve(self, user_images: Sequence[ImageConfiguration],
                log: Optional[logging.Logger] = None) -> Tuple[ImageConfiguration, ...]:
        log = log or logger

        # --- STEP 1: HANDLER EXPANSION ---
        expanded: List[ImageConfiguration] = []
        for image in user_images or []:
            expanded.extend(expand_image(image, self.project, self.handlers))

        # --- STEP 2: SHARED BUILD TIMESTAMP ---
        stamp = get_build_timestamp(self.project.build_dir, self.project.build_started)

        # --- STEP 3: GENERATORS ---
        ctx = GeneratorContext(
            project=self.project,
            config=self.generator_config,
            runtime_mode=self.runtime_mode,
            strategy=self.strategy,
            use_project_classpath=self.use_project_classpath,
            build_timestamp=stamp,
            logger=log,
            cancel=self.cancel,
        )
        generated = self.generator_chain.generate(expanded, ctx)

        # --- STEP 4: NORMALIZATION ---
        user = self._image_user(log) if generated else None
        registry = self.project.properties.get(IMAGE_REGISTRY_PROPERTY)
        stamp_text = format_timestamp(stamp)

        resolved = []
        seen = set()
        for image in generated:
            name = format_image_name(image.name, self.project, stamp, user=user)
            parsed = ImageName.parse(name)
            if user and not parsed.user:
                name = parsed.with_user(user).full_name()

            if name in seen:
                raise DuplicateImage(name)
            seen.add(name)

            resolved.append(image.copy(
                name=name,
                registry=image.registry or parsed.registry or registry,
                build_timestamp=stamp_text,
            ))
            log.debug(f"Resolved image {name}")

        return tuple(resolved)
