#!/usr/bin/env python3
"""
KUBEFORGE ERRORS
----------------
Typed failures raised by the resource pipeline. The PipelineCoordinator is
the single place that maps these onto results for the build shell.

Author: KubeForge Team
Date: 2026-01-16
"""

from pathlib import Path
from typing import List, Optional, Sequence


class KubeForgeError(Exception):
    """Base class for every pipeline failure."""


class ConfigError(KubeForgeError):
    """Malformed user configuration or profile."""


class ProfileNotFound(ConfigError):
    def __init__(self, name: str, search_dirs: Sequence[Path] = ()):
        self.name = name
        self.search_dirs = list(search_dirs)
        where = ", ".join(str(d) for d in self.search_dirs) or "<built-in>"
        super().__init__(f"No profile '{name}' defined (searched: {where})")


class UnknownImageSyntax(ConfigError):
    def __init__(self, discriminator: str, image: str = ""):
        self.discriminator = discriminator
        self.image = image
        super().__init__(f"Unknown image configuration type '{discriminator}' for image '{image}'")


class UnknownProcessor(ConfigError):
    def __init__(self, kind: str, processor_id: str, available: Sequence[str] = ()):
        self.kind = kind
        self.processor_id = processor_id
        super().__init__(
            f"Unknown {kind} '{processor_id}' (available: {', '.join(available) or '<none>'})"
        )


class ResourceParseError(KubeForgeError):
    def __init__(self, path: Path, cause: Optional[BaseException] = None, reason: str = ""):
        self.path = Path(path)
        self.cause = cause
        detail = reason or (str(cause) if cause else "unparseable content")
        super().__init__(f"Cannot parse resource fragment {self.path}: {detail}")


class GeneratorFailure(KubeForgeError):
    def __init__(self, processor_id: str, cause: BaseException):
        self.processor_id = processor_id
        self.cause = cause
        super().__init__(f"Generator '{processor_id}' failed: {cause}")


class EnricherFailure(KubeForgeError):
    def __init__(self, processor_id: str, cause: BaseException):
        self.processor_id = processor_id
        self.cause = cause
        super().__init__(f"Enricher '{processor_id}' failed: {cause}")


class DuplicateImage(KubeForgeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate image name '{name}' after generation")


class DuplicateResource(KubeForgeError):
    def __init__(self, kind: str, name: str, paths: Sequence[Path] = ()):
        self.kind = kind
        self.name = name
        self.paths = [Path(p) for p in paths]
        files = ", ".join(str(p) for p in self.paths)
        super().__init__(f"Duplicate resource {kind}/{name}" + (f" in {files}" if files else ""))


class ValidationFailed(KubeForgeError):
    def __init__(self, details: List[str]):
        self.details = list(details)
        super().__init__("Resource validation failed:\n  " + "\n  ".join(self.details))


class IOFailure(KubeForgeError):
    def __init__(self, path: Path, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"I/O failure on {self.path}: {cause}")


class PipelineCancelled(KubeForgeError):
    def __init__(self, where: str = ""):
        self.where = where
        super().__init__("Pipeline cancelled" + (f" ({where})" if where else ""))
