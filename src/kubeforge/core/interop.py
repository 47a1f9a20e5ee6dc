#!/usr/bin/env python3
"""
KUBEFORGE DEKORATE HANDSHAKE
----------------------------
Dekorate is a competing annotation-driven manifest generator. When it is on
the project classpath the two tools agree on a shared IO directory, exported
as process-wide properties. This module is the only place in KubeForge that
touches process-global state.

Author: KubeForge Team
Date: 2026-01-16
"""

import logging
import os
from pathlib import Path
from typing import Iterable, MutableMapping, Optional

logger = logging.getLogger("kubeforge.interop")

DEFAULT_RESOURCE_LOCATION = "META-INF/jkube"
DEKORATE_INPUT_DIR = "dekorate.input.dir"
DEKORATE_OUTPUT_DIR = "dekorate.output.dir"


def uses_dekorate(classpath: Iterable[Path]) -> bool:
    for entry in classpath:
        name = Path(entry).name.lower()
        if name.startswith("dekorate") or "io.dekorate" in name:
            return True
    return False


def export_dekorate_dirs(merge: bool, environ: Optional[MutableMapping[str, str]] = None):
    """
    Merging mode shares both directories; delegation mode only points
    Dekorate's output at the shared location.
    """
    target = os.environ if environ is None else environ
    if merge:
        target[DEKORATE_INPUT_DIR] = DEFAULT_RESOURCE_LOCATION
    target[DEKORATE_OUTPUT_DIR] = DEFAULT_RESOURCE_LOCATION
    logger.debug(f"Exported Dekorate IO directories (merge={merge})")
