"""Applies a selection to a target: materialize a new sparse working copy or
reconcile an existing one.

Materialize paths:
1. Target absent or empty: blobless sparse clone, narrow patterns, checkout
2. Target holds other, unversioned files: adopt in place (init, fetch, checkout)

A failed materialize removes only what it created. Reconcile is not atomic:
a failure part-way may leave the new patterns written.
"""

import logging
import shutil
from pathlib import Path
from typing import Protocol

from skills_installer.core.git import GitCommandError, GitDriver
from skills_installer.core.patterns import render_pattern_file
from skills_installer.errors import ApplyError, PreconditionError
from skills_installer.models import InstallationTarget, Operation

logger = logging.getLogger("skills-installer.applier")

# Phase names reported to the progress sink
INITIALIZING = "initializing"
FETCHING = "fetching"
CONFIGURING = "configuring"
CHECKING_OUT = "checking_out"
PULLING = "pulling"
APPLYING = "applying"
DONE = "done"


class ProgressSink(Protocol):
    def on_phase(self, name: str) -> None: ...


class NullProgress:
    def on_phase(self, name: str) -> None:
        pass


class TransactionApplier:
    """Executes a materialize-or-reconcile decision against the git driver."""

    def __init__(self, driver: GitDriver | None = None, remote: str = "origin"):
        self._driver = driver or GitDriver()
        self._remote = remote

    async def apply(
        self,
        operation: Operation,
        target: InstallationTarget,
        identifiers: list[str],
        remote_url: str,
        progress: ProgressSink | None = None,
    ) -> None:
        """Make the working copy at target include exactly identifiers.

        Raises PreconditionError when the target cannot be used for the
        operation and ApplyError when a git step fails.
        """
        progress = progress or NullProgress()
        patterns = render_pattern_file(target.kind, identifiers)

        if operation is Operation.MATERIALIZE:
            await self._materialize(target, patterns, remote_url, progress)
        else:
            await self._reconcile(target, patterns, progress)
        progress.on_phase(DONE)

    # ─── Materialize ────────────────────────────────────────────────────

    async def _materialize(
        self,
        target: InstallationTarget,
        patterns: str,
        remote_url: str,
        progress: ProgressSink,
    ) -> None:
        path = target.path
        if self._driver.is_repository(path):
            raise PreconditionError(
                f'Directory "{path}" already contains a git repository. '
                "Please remove it first or choose a different path."
            )

        if path.exists() and not path.is_dir():
            raise PreconditionError(f'"{path}" exists and is not a directory.')

        if path.exists() and any(path.iterdir()):
            await self._adopt(target, patterns, remote_url, progress)
            return

        created_root = _first_missing_ancestor(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
            progress.on_phase(INITIALIZING)
            await self._step("clone", self._driver.clone_sparse(remote_url, path))

            progress.on_phase(CONFIGURING)
            await self._step("configure", self._driver.init_sparse(path))
            self._write_patterns(path, patterns)

            progress.on_phase(CHECKING_OUT)
            await self._step("checkout", self._driver.checkout(path))
        except (ApplyError, OSError) as e:
            self._cleanup(path, created_root)
            if isinstance(e, ApplyError):
                raise
            raise ApplyError(f"Installation failed: {e}", step="materialize") from e

        logger.info("Materialized %s (%d patterns)", path, patterns.count("\n"))

    async def _adopt(
        self,
        target: InstallationTarget,
        patterns: str,
        remote_url: str,
        progress: ProgressSink,
    ) -> None:
        """Turn an existing, unversioned directory into the working copy.

        Pre-existing files are never deleted; the checkout is forced so only
        paths matched by the patterns are written.
        """
        path = target.path
        logger.info("Adopting existing directory %s", path)

        progress.on_phase(INITIALIZING)
        await self._step("init", self._driver.init(path))
        await self._step("remote", self._driver.add_remote(path, self._remote, remote_url))

        progress.on_phase(CONFIGURING)
        await self._step("configure", self._driver.enable_sparse(path))
        self._write_patterns(path, patterns)

        progress.on_phase(FETCHING)
        await self._step("fetch", self._driver.fetch(path, self._remote, filter_blobs=True))
        branch = await self._step("default-branch", self._driver.default_branch(path, self._remote))

        progress.on_phase(CHECKING_OUT)
        await self._step("checkout", self._driver.checkout_branch(path, branch, self._remote))

    # ─── Reconcile ──────────────────────────────────────────────────────

    async def _reconcile(
        self,
        target: InstallationTarget,
        patterns: str,
        progress: ProgressSink,
    ) -> None:
        path = target.path
        if not self._driver.is_repository(path):
            raise PreconditionError(f'"{path}" is not a git repository')

        progress.on_phase(PULLING)
        try:
            await self._driver.pull(path)
        except GitCommandError as e:
            # No upstream to pull from is fine; the patterns still apply.
            logger.info("Pull skipped for %s: %s", path, e)

        progress.on_phase(CONFIGURING)
        self._write_patterns(path, patterns)

        progress.on_phase(APPLYING)
        await self._step("apply", self._driver.reapply(path))
        logger.info("Reconciled %s (%d patterns)", path, patterns.count("\n"))

    # ─── Helpers ────────────────────────────────────────────────────────

    @staticmethod
    async def _step(name: str, awaitable):
        try:
            return await awaitable
        except GitCommandError as e:
            raise ApplyError(str(e), step=name) from e

    def _write_patterns(self, path: Path, patterns: str) -> None:
        try:
            self._driver.write_patterns(path, patterns)
        except OSError as e:
            raise ApplyError(f"Cannot write sparse-checkout patterns: {e}", step="configure") from e

    @staticmethod
    def _cleanup(path: Path, created_root: Path | None) -> None:
        """Remove what a failed materialize created: the directories it made
        if the target did not exist before, otherwise only its new contents."""
        try:
            if created_root is not None:
                shutil.rmtree(created_root, ignore_errors=True)
                logger.info("Removed partially created %s", created_root)
                return
            for child in path.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child, ignore_errors=True)
                else:
                    child.unlink(missing_ok=True)
            logger.info("Emptied %s after failed install", path)
        except OSError as e:
            logger.warning("Cleanup of %s failed: %s", path, e)


def _first_missing_ancestor(path: Path) -> Path | None:
    """Topmost directory that mkdir(parents=True) would create, or None."""
    if path.exists():
        return None
    missing = path
    while not missing.parent.exists() and missing.parent != missing:
        missing = missing.parent
    return missing
