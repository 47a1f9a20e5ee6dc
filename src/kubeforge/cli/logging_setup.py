#!/usr/bin/env python3
"""
KUBEFORGE CLI LOGGING
---------------------
Routes the ``kubeforge`` logger hierarchy to a Rich console handler on
stderr, with an optional plain file handler.

Author: KubeForge Team
Date: 2026-01-16
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None,
                  console: Optional[Console] = None) -> logging.Logger:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("kubeforge")
    logger.setLevel(numeric)

    # Repeated calls replace the previous handlers
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.propagate = False

    handler = RichHandler(console=console or Console(stderr=True), show_time=True,
                          show_path=False, markup=False)
    handler.setLevel(numeric)
    logger.addHandler(handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file))
        file_handler.setLevel(numeric)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    return logger
