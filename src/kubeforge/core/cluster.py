#!/usr/bin/env python3
"""
KUBEFORGE CLUSTER CONTEXT
-------------------------
Reads the active namespace from the local kubeconfig. Used in OpenShift mode
to fill the user segment of image names when no namespace is given.

Author: KubeForge Team
Date: 2026-01-16
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger("kubeforge.cluster")

DEFAULT_NAMESPACE = "default"


def _kubeconfig_path() -> Path:
    env = os.environ.get("KUBECONFIG")
    if env:
        # KUBECONFIG may be a path list; the first entry holds current-context
        return Path(env.split(os.pathsep)[0]).expanduser()
    return Path.home() / ".kube" / "config"


def current_namespace(kubeconfig: Optional[Path] = None) -> str:
    path = Path(kubeconfig) if kubeconfig else _kubeconfig_path()
    if not path.is_file():
        return DEFAULT_NAMESPACE

    try:
        config = YAML(typ="safe").load(path.read_text(encoding="utf-8")) or {}
    except (OSError, YAMLError) as e:
        logger.warning(f"Cannot read kubeconfig {path}: {e}")
        return DEFAULT_NAMESPACE

    current = config.get("current-context")
    for entry in config.get("contexts") or []:
        if entry.get("name") == current:
            return (entry.get("context") or {}).get("namespace") or DEFAULT_NAMESPACE
    return DEFAULT_NAMESPACE
