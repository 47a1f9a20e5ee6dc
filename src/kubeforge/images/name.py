#!/usr/bin/env python3
"""
KUBEFORGE IMAGE NAMES
---------------------
Parsing of ``[registry/][user/]repository[:tag][@digest]`` references and
expansion of the %-placeholders allowed in configured image names.

Author: KubeForge Team
Date: 2026-01-16
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from kubeforge.core.errors import ConfigError
from kubeforge.core.models import Project
from kubeforge.core.timestamp import format_tag

IMAGE_USER_PROPERTY = "kubeforge.image.user"
IMAGE_REGISTRY_PROPERTY = "kubeforge.image.registry"

_PLACEHOLDER = re.compile(r"%([a-z])")
_TAG_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


@dataclass(frozen=True)
class ImageName:
    repository: str
    user: Optional[str] = None
    registry: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def parse(cls, full_name: str) -> "ImageName":
        if not full_name or not full_name.strip():
            raise ConfigError("Image name must not be empty")
        rest = full_name.strip()

        digest = None
        if "@" in rest:
            rest, digest = rest.split("@", 1)

        tag = None
        last_slash = rest.rfind("/")
        colon = rest.rfind(":")
        if colon > last_slash:
            rest, tag = rest[:colon], rest[colon + 1:]

        parts = rest.split("/")
        registry = None
        if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
            registry = parts.pop(0)

        user = None
        if len(parts) > 1:
            user = parts.pop(0)

        repository = "/".join(parts)
        if not repository:
            raise ConfigError(f"Image name '{full_name}' has no repository")
        return cls(repository=repository, user=user, registry=registry, tag=tag, digest=digest)

    @property
    def simple_name(self) -> str:
        return self.repository.split("/")[-1]

    @property
    def tag_or_latest(self) -> str:
        return self.tag or "latest"

    def with_user(self, user: str) -> "ImageName":
        return replace(self, user=user)

    def name_without_tag(self, with_registry: bool = True) -> str:
        parts = []
        if with_registry and self.registry:
            parts.append(self.registry)
        if self.user:
            parts.append(self.user)
        parts.append(self.repository)
        return "/".join(parts)

    def full_name(self, with_registry: bool = True) -> str:
        name = self.name_without_tag(with_registry)
        if self.tag:
            name += f":{self.tag}"
        if self.digest:
            name += f"@{self.digest}"
        return name

    def __str__(self) -> str:
        return self.full_name()


def _sanitize(value: str) -> str:
    return re.sub(r"[^a-z0-9_.\-]", "-", value.lower())


def default_user(project: Project, fallback: Optional[str] = None) -> Optional[str]:
    user = project.properties.get(IMAGE_USER_PROPERTY)
    if user:
        return user
    if fallback:
        return fallback
    if project.group_id:
        # Last component of a dotted group id, e.g. org.acme -> acme
        return _sanitize(project.group_id.split(".")[-1])
    return None


def format_image_name(template: str, project: Project, timestamp: datetime,
                      user: Optional[str] = None) -> str:
    """
    Expands %g (user), %a (artifact), %v (version), %l (latest or version)
    and %t (build timestamp) in an image name.
    """
    def expand(match):
        code = match.group(1)
        if code == "g":
            value = default_user(project, user)
            if not value:
                raise ConfigError(f"Cannot expand %g in image name '{template}': no image user or group id")
            return value
        if code == "a":
            if not project.artifact_id:
                raise ConfigError(f"Cannot expand %a in image name '{template}': no artifact id")
            return _sanitize(project.artifact_id)
        if code == "v":
            return _TAG_CHARS.sub("-", project.version or "latest")
        if code == "l":
            version = project.version or ""
            if not version or version.endswith("SNAPSHOT"):
                return "latest"
            return _TAG_CHARS.sub("-", version)
        if code == "t":
            return format_tag(timestamp)
        return match.group(0)

    return _PLACEHOLDER.sub(expand, template)
