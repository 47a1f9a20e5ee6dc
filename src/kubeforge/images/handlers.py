#!/usr/bin/env python3
"""
KUBEFORGE IMAGE CONFIG HANDLERS
-------------------------------
Expand shorthand image declarations into full ImageConfigurations.
A handler is picked by the ``external.type`` discriminator; an image
without an ``external`` section is taken as written.

Author: KubeForge Team
Date: 2026-01-16
"""

from typing import Dict, List, Mapping, Optional

from kubeforge.core.errors import ConfigError, UnknownImageSyntax
from kubeforge.core.models import BuildConfiguration, ImageConfiguration, Project


class ImageConfigHandler:
    type = ""

    def resolve(self, image: ImageConfiguration, project: Project) -> List[ImageConfiguration]:
        raise NotImplementedError


class PropertiesHandler(ImageConfigHandler):
    """
    Builds an image from project properties, e.g.::

        kubeforge.container-image.name = acme/app:%l
        kubeforge.container-image.ports = 8080,8443
        kubeforge.container-image.labels.team = payments

    Properties take precedence; the inline configuration fills the gaps.
    """
    type = "properties"
    DEFAULT_PREFIX = "kubeforge.container-image"

    def resolve(self, image: ImageConfiguration, project: Project) -> List[ImageConfiguration]:
        prefix = image.external.get("prefix") or self.DEFAULT_PREFIX
        props = {
            key[len(prefix) + 1:]: value
            for key, value in project.properties.items()
            if key.startswith(prefix + ".")
        }
        inline = image.build or BuildConfiguration()

        name = props.get("name") or image.name
        if not name:
            raise ConfigError(f"No image name found in properties with prefix '{prefix}'")

        build = BuildConfiguration(
            dockerfile=props.get("dockerfile", inline.dockerfile),
            context_dir=props.get("contextDir", inline.context_dir),
            from_image=props.get("from", inline.from_image),
            args={**inline.args, **self._nested(props, "args")},
            labels={**inline.labels, **self._nested(props, "labels")},
            ports=self._list(props.get("ports")) or list(inline.ports),
            tags=self._list(props.get("tags")) or list(inline.tags),
        )
        return [ImageConfiguration(
            name=name,
            alias=props.get("alias", image.alias),
            registry=props.get("registry", image.registry),
            build=build,
            run=dict(image.run),
        )]

    @staticmethod
    def _nested(props: Mapping[str, str], section: str) -> Dict[str, str]:
        return {k[len(section) + 1:]: v for k, v in props.items() if k.startswith(section + ".")}

    @staticmethod
    def _list(value: Optional[str]) -> List[str]:
        return [part.strip() for part in (value or "").split(",") if part.strip()]


DEFAULT_HANDLERS: Dict[str, ImageConfigHandler] = {
    PropertiesHandler.type: PropertiesHandler(),
}


def expand_image(image: ImageConfiguration, project: Project,
                 handlers: Mapping[str, ImageConfigHandler] = DEFAULT_HANDLERS) -> List[ImageConfiguration]:
    if not image.external:
        return [image.copy()]
    discriminator = image.external.get("type")
    handler = handlers.get(discriminator) if discriminator else None
    if handler is None:
        raise UnknownImageSyntax(str(discriminator), image.name)
    return handler.resolve(image, project)
