"""Thin async wrapper over the git binary for sparse working copies.

Every command runs non-interactively via ``asyncio.create_subprocess_exec``.
A non-zero exit raises GitCommandError carrying stderr.
"""

import asyncio
import logging
import os
import re
import shutil
from pathlib import Path

from skills_installer.config import Settings, settings as default_settings

logger = logging.getLogger("skills-installer.git")

_SYMREF_HEAD = re.compile(r"^ref:\s*refs/heads/(\S+)\s+HEAD$", re.MULTILINE)


class GitCommandError(Exception):
    """A git invocation exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or f"exit code {returncode}"
        super().__init__(f"git {' '.join(args)} failed: {detail}")


class GitDriver:
    """Operations on a partial working copy used by the installer."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or default_settings

    @property
    def executable(self) -> str:
        return self._settings.git_executable

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    async def run(self, args: list[str], cwd: Path) -> str:
        """Run ``git <args>`` in cwd and return stripped stdout."""
        env = {**os.environ}
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["LC_ALL"] = "C"

        logger.debug("Running: git %s (cwd=%s)", " ".join(args), cwd)
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            raise GitCommandError(args, -1, str(e)) from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            error = GitCommandError(args, process.returncode, stderr.decode(errors="replace"))
            logger.debug("%s", error)
            raise error
        return stdout.decode(errors="replace").strip()

    # ─── Local state ────────────────────────────────────────────────────

    @staticmethod
    def is_repository(path: Path) -> bool:
        return (Path(path) / ".git").exists()

    @staticmethod
    def sparse_checkout_file(path: Path) -> Path:
        return Path(path) / ".git" / "info" / "sparse-checkout"

    def read_patterns(self, path: Path) -> str:
        """Return the raw sparse-checkout file, or "" when it does not exist."""
        pattern_file = self.sparse_checkout_file(path)
        if not pattern_file.exists():
            return ""
        return pattern_file.read_text(encoding="utf-8")

    def write_patterns(self, path: Path, text: str) -> None:
        """Replace the sparse-checkout file with text."""
        pattern_file = self.sparse_checkout_file(path)
        pattern_file.parent.mkdir(parents=True, exist_ok=True)
        pattern_file.write_text(text, encoding="utf-8", newline="\n")

    # ─── Materialize ────────────────────────────────────────────────────

    async def clone_sparse(self, url: str, path: Path) -> None:
        """Clone without blobs or checkout so only selected content is downloaded."""
        await self.run(
            ["clone", "--filter=blob:none", "--no-checkout", "--sparse", url, "."],
            cwd=path,
        )

    async def init_sparse(self, path: Path) -> None:
        """Non-cone mode keeps root-level files out of the working tree."""
        await self.run(["sparse-checkout", "init", "--no-cone"], cwd=path)

    async def checkout(self, path: Path) -> None:
        await self.run(["checkout"], cwd=path)

    # ─── Adoption ───────────────────────────────────────────────────────

    async def init(self, path: Path) -> None:
        await self.run(["init", "--quiet"], cwd=path)

    async def add_remote(self, path: Path, name: str, url: str) -> None:
        await self.run(["remote", "add", name, url], cwd=path)

    async def enable_sparse(self, path: Path) -> None:
        """Turn on non-cone sparse checkout in a repository with no commits yet."""
        await self.run(["config", "core.sparseCheckout", "true"], cwd=path)
        await self.run(["config", "core.sparseCheckoutCone", "false"], cwd=path)

    async def fetch(self, path: Path, remote: str = "origin", *, filter_blobs: bool = False) -> None:
        args = ["fetch", "--quiet"]
        if filter_blobs:
            args.append("--filter=blob:none")
        args.append(remote)
        await self.run(args, cwd=path)

    async def default_branch(self, path: Path, remote: str = "origin") -> str:
        """Name of the branch the remote's HEAD points at."""
        output = await self.run(["ls-remote", "--symref", remote, "HEAD"], cwd=path)
        match = _SYMREF_HEAD.search(output)
        if match is None:
            raise GitCommandError(["ls-remote", "--symref", remote, "HEAD"], 0, "remote HEAD not found")
        return match.group(1)

    async def checkout_branch(self, path: Path, branch: str, remote: str = "origin") -> None:
        """Force-checkout a local branch tracking remote/branch."""
        await self.run(
            ["checkout", "--force", "-B", branch, "--track", f"{remote}/{branch}"],
            cwd=path,
        )

    # ─── Reconcile ──────────────────────────────────────────────────────

    async def pull(self, path: Path) -> str:
        return await self.run(["pull", "--quiet"], cwd=path)

    async def reapply(self, path: Path) -> None:
        """Update the working tree to match the current sparse patterns."""
        await self.run(["read-tree", "-mu", "HEAD"], cwd=path)

    # ─── Update detection ───────────────────────────────────────────────

    async def current_branch(self, path: Path) -> str:
        branch = await self.run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path)
        if not branch or branch == "HEAD":
            raise GitCommandError(["rev-parse", "--abbrev-ref", "HEAD"], 0, "detached HEAD")
        return branch

    async def changed_paths(self, path: Path, ref: str, other: str, spec: str) -> list[str]:
        """Files that differ between two refs, restricted to one pathspec."""
        output = await self.run(["diff", "--name-only", ref, other, "--", spec], cwd=path)
        return [line for line in output.splitlines() if line.strip()]
