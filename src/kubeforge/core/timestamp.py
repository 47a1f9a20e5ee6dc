#!/usr/bin/env python3
"""
KUBEFORGE BUILD TIMESTAMP
-------------------------
Every image resolved in one invocation shares a single build timestamp.
It is cached in <buildDir>/docker/build.timestamp so that a build step run
earlier in the same invocation and the resource step agree on it.

The cache is read-modify-written under an advisory lock so parallel
invocations against the same build directory do not interleave.

Author: KubeForge Team
Date: 2026-01-16
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from kubeforge.core.errors import IOFailure

logger = logging.getLogger("kubeforge.timestamp")

BUILD_TIMESTAMP_FILE = "docker/build.timestamp"


@contextmanager
def _locked(target: Path):
    lock_path = target.with_name(target.name + ".lock")
    lock_fd = open(lock_path, "w")
    try:
        fcntl.flock(lock_fd, fcntl.LOCK_EX)
        yield
    finally:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)
        lock_fd.close()


def _now_millis() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def _read(cache: Path) -> Optional[datetime]:
    try:
        raw = cache.read_text(encoding="utf-8").strip()
        millis = int(raw)
        return datetime.fromtimestamp(millis // 1000, tz=timezone.utc) + timedelta(milliseconds=millis % 1000)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable build timestamp cache {cache}: {e}")
        return None


def get_build_timestamp(build_dir: Path, started_at: Optional[float] = None) -> datetime:
    """
    Returns the shared build timestamp (UTC, millisecond precision).

    The cached value is reused only when the cache file was written after
    ``started_at`` (the start of this invocation). Otherwise a fresh
    timestamp is generated and persisted.
    """
    cache = Path(build_dir) / BUILD_TIMESTAMP_FILE
    started = started_at if started_at is not None else time.time()
    try:
        cache.parent.mkdir(parents=True, exist_ok=True)
        with _locked(cache):
            if cache.exists() and cache.stat().st_mtime >= started:
                cached = _read(cache)
                if cached is not None:
                    logger.debug(f"Reusing build timestamp from {cache}")
                    return cached

            stamp = _now_millis()
            tmp = cache.with_name(cache.name + ".tmp")
            tmp.write_text(str(round(stamp.timestamp() * 1000)), encoding="utf-8")
            os.replace(tmp, cache)
            return stamp
    except OSError as e:
        raise IOFailure(cache, e) from e


def format_timestamp(stamp: datetime) -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2026-01-16T10:20:30.123Z."""
    return stamp.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"


def format_tag(stamp: datetime) -> str:
    """Compact form used for the %t image name placeholder."""
    return stamp.astimezone(timezone.utc).strftime("%y%m%d-%H%M%S-") + f"{stamp.microsecond // 1000:04d}"
