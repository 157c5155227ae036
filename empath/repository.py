"""Locate the repository root that partitions the event log."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from .errors import RepositoryResolutionError
from .utils import normalize_path

logger = logging.getLogger(__name__)


class RepositoryResolver(Protocol):
    def resolve(self, start_directory: Path) -> Path:
        """Return the canonical root of the repository containing ``start_directory``."""
        ...


def _canonical_root(root: str | Path) -> Path:
    try:
        return normalize_path(root)
    except (OSError, RuntimeError, ValueError) as exc:
        raise RepositoryResolutionError(f"Cannot resolve repository root '{root}': {exc}") from exc


class GitRepositoryResolver:
    def __init__(self, git: str = "git"):
        self.git = git

    def resolve(self, start_directory: Path) -> Path:
        cmd = [self.git, "-C", str(start_directory), "rev-parse", "--show-toplevel"]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise RepositoryResolutionError(f"Failed to run {self.git}: {exc}") from exc
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise RepositoryResolutionError(f"Failed to get Git repo for '{start_directory}': {detail}")

        toplevel = result.stdout.strip()
        if not toplevel:
            raise RepositoryResolutionError(f"Git reported no top-level directory for '{start_directory}'")
        root = _canonical_root(toplevel)
        logger.debug("Resolved repository %s from %s", root, start_directory)
        return root


class FixedRepositoryResolver:
    """Always answers with the same root, wherever the lookup starts."""

    def __init__(self, root: str | Path):
        self.root = root

    def resolve(self, start_directory: Path) -> Path:
        return _canonical_root(self.root)
