#!/usr/bin/env python3
"""
KUBEFORGE PROFILE STORE
-----------------------
Profiles are named bundles of enricher and generator configuration, kept in
``profiles.yaml`` / ``profiles.yml`` files. A project may ship its own
profiles next to its resource fragments; the built-in profiles are always
searched last.

Blending a profile with user configuration is a pure deep merge:
  * the user's include list replaces the profile's when non-empty,
  * excludes from both sides are combined,
  * per-processor options merge recursively, the user winning on equal keys.

Author: KubeForge Team
Date: 2026-01-16
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubeforge.core.errors import ConfigError, ProfileNotFound
from kubeforge.core.models import ProcessorConfig, Profile

logger = logging.getLogger("kubeforge.profiles")

DEFAULT_PROFILE = "default"
PROFILE_FILENAMES = ("profiles.yaml", "profiles.yml")
BUILTIN_PROFILES = Path(__file__).resolve().parent / "profiles-default.yaml"

ENRICHER = "enricher"
GENERATOR = "generator"


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Nested maps merge recursively; scalars and sequences from ``override`` replace."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_processor_configs(base: ProcessorConfig, override: ProcessorConfig) -> ProcessorConfig:
    includes = list(override.includes) if override.includes else list(base.includes)

    excludes = list(base.excludes)
    for pid in override.excludes:
        if pid not in excludes:
            excludes.append(pid)

    config = {}
    for pid in list(base.config) + [k for k in override.config if k not in base.config]:
        config[pid] = deep_merge(base.config.get(pid, {}), override.config.get(pid, {}))

    return ProcessorConfig(includes=includes, excludes=excludes, config=config)


class ProfileStore:
    """Locates profiles by name and blends them with user overrides."""

    def __init__(self, builtin: Path = BUILTIN_PROFILES):
        self.builtin = Path(builtin)
        self._yaml = YAML(typ="safe")
        self._cache: Dict[Path, List[Profile]] = {}

    def _read_file(self, path: Path) -> List[Profile]:
        if path in self._cache:
            return self._cache[path]
        try:
            raw = self._yaml.load(path.read_text(encoding="utf-8")) or []
        except (OSError, YAMLError) as e:
            raise ConfigError(f"Cannot read profiles from {path}: {e}") from e

        if not isinstance(raw, list):
            raise ConfigError(f"Profiles file {path} must contain a list of profiles")

        profiles = []
        for entry in raw:
            if not isinstance(entry, Mapping) or not entry.get("name"):
                raise ConfigError(f"Every profile in {path} needs a 'name'")
            profiles.append(Profile.from_dict(entry))
        self._cache[path] = profiles
        return profiles

    def _candidates(self, search_dirs: Sequence[Path]) -> List[Path]:
        files = []
        for directory in search_dirs:
            if directory is None:
                continue
            for filename in PROFILE_FILENAMES:
                candidate = Path(directory) / filename
                if candidate.is_file():
                    files.append(candidate)
        files.append(self.builtin)
        return files

    def _lookup(self, name: str, search_dirs: Sequence[Path]) -> Optional[Profile]:
        for path in self._candidates(search_dirs):
            matches = [p for p in self._read_file(path) if p.name == name]
            if matches:
                # Same name twice in one file: highest order wins
                chosen = max(matches, key=lambda p: p.order)
                logger.debug(f"Profile '{name}' found in {path}")
                return copy.deepcopy(chosen)
        return None

    def load_profile(self, name: Optional[str], search_dirs: Sequence[Path] = ()) -> Profile:
        """
        Returns the first profile called ``name`` in ``search_dirs`` (in order),
        then the built-in profiles. An empty name selects the built-in default.
        """
        if not name:
            profile = self._lookup(DEFAULT_PROFILE, ())
            if profile is None:
                raise ConfigError(f"Built-in profile '{DEFAULT_PROFILE}' is missing from {self.builtin}")
            return self._resolve_parents(profile, ())

        profile = self._lookup(name, search_dirs)
        if profile is None:
            raise ProfileNotFound(name, [Path(d) for d in search_dirs if d is not None])
        return self._resolve_parents(profile, search_dirs)

    def _resolve_parents(self, profile: Profile, search_dirs: Sequence[Path]) -> Profile:
        chain = [profile]
        seen = {profile.name}
        current = profile
        while current.extends:
            if current.extends in seen:
                raise ConfigError(f"Profile inheritance cycle: {' -> '.join(p.name for p in chain)} -> {current.extends}")
            parent = self._lookup(current.extends, search_dirs)
            if parent is None:
                raise ProfileNotFound(current.extends, [Path(d) for d in search_dirs if d is not None])
            seen.add(parent.name)
            chain.append(parent)
            current = parent

        # Blend from the root ancestor down to the requested profile
        effective = chain[-1]
        for child in reversed(chain[:-1]):
            effective = Profile(
                name=child.name,
                enricher=merge_processor_configs(effective.enricher, child.enricher),
                generator=merge_processor_configs(effective.generator, child.generator),
                order=child.order,
            )
        return effective

    def blend(self, profile: Profile, user_config: Optional[ProcessorConfig], kind: str) -> ProcessorConfig:
        if kind not in (ENRICHER, GENERATOR):
            raise ConfigError(f"Unknown processor kind '{kind}'")
        base = profile.enricher if kind == ENRICHER else profile.generator
        if user_config is None or user_config.is_empty():
            return copy.deepcopy(base)
        return merge_processor_configs(base, user_config)
