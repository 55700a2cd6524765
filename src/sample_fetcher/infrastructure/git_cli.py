"""git CLI adapter — implements the VersionControl port.

git is driven exclusively as a subprocess (``asyncio.create_subprocess_exec``,
never a shell).  Every invocation captures stdout/stderr so that failures can
be reported with the tool's own diagnostics.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import re
from pathlib import Path
from typing import Sequence

from sample_fetcher.domain.context import CancellationSignal
from sample_fetcher.domain.entities import ToolVersion, version_gte
from sample_fetcher.domain.exceptions import (
    ToolInvocationError,
    ToolNotFoundError,
    ToolTooOldError,
)

logger = logging.getLogger(__name__)

# sparse-checkout cone mode landed in git 2.25
MIN_GIT_VERSION = ToolVersion(2, 25, 0)

_VERSION_RE = re.compile(r"git version (\d+)\.(\d+)\.(\d+)", re.IGNORECASE)
_TERMINATE_GRACE_SECONDS = 5.0


def parse_git_version(output: str) -> ToolVersion | None:
    """Extract ``major.minor.patch`` from ``git --version`` output.

    Returns ``None`` when the text does not look like a git version banner.
    """
    match = _VERSION_RE.search(output)
    if not match:
        return None
    return ToolVersion(int(match[1]), int(match[2]), int(match[3]))


class GitCli:
    """Concrete ``VersionControl`` backed by the ``git`` executable."""

    def __init__(self, binary: str = "git") -> None:
        self._binary = binary

    async def is_available(self) -> bool:
        """Return *True* if ``git --version`` runs successfully."""
        try:
            await self.run(["--version"])
        except (ToolNotFoundError, ToolInvocationError):
            return False
        return True

    async def ensure_adequate(self) -> ToolVersion | None:
        """Verify git is installed and new enough for cone-mode sparse checkout.

        An unparsable version banner is treated as adequate.
        """
        try:
            output = await self.run(["--version"])
        except (ToolNotFoundError, ToolInvocationError) as exc:
            raise ToolNotFoundError(
                "Git was not found on PATH.",
                "Install Git for your platform and try again, or use --method api.",
            ) from exc

        version = parse_git_version(output.strip())
        if version is None:
            logger.debug("Could not parse git version from %r, assuming adequate", output)
            return None

        if not version_gte(version, MIN_GIT_VERSION):
            raise ToolTooOldError(
                f"Git {version} is too old.",
                f"Please upgrade to >= {MIN_GIT_VERSION.major}.{MIN_GIT_VERSION.minor} "
                "for sparse-checkout cone mode, or use --method api.",
            )
        return version

    async def run(
        self,
        args: Sequence[str],
        cwd: Path | None = None,
        cancel: CancellationSignal | None = None,
    ) -> str:
        """Run ``git <args>`` and return stdout.

        Raises :class:`ToolInvocationError` on a nonzero exit.  When *cancel*
        fires mid-run the child is terminated and the cancellation propagates.
        """
        cmd = [self._binary, *args]
        logger.debug("spawn: %s cwd=%s", " ".join(cmd), cwd or os.getcwd())

        if cancel is not None:
            cancel.raise_if_cancelled()

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ToolNotFoundError(f"Could not run {self._binary}: {exc}") from exc

        communicate = asyncio.ensure_future(proc.communicate())
        try:
            if cancel is None:
                await asyncio.wait({communicate})
            else:
                waiter = asyncio.ensure_future(cancel.wait())
                try:
                    await asyncio.wait(
                        {communicate, waiter}, return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    waiter.cancel()
                if not communicate.done():
                    await _terminate(proc, communicate)
                    cancel.raise_if_cancelled()
        except asyncio.CancelledError:
            await _terminate(proc, communicate)
            raise

        stdout_raw, stderr_raw = communicate.result()
        stdout = stdout_raw.decode("utf-8", errors="replace")
        stderr = stderr_raw.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            output = (stderr or stdout).strip()
            raise ToolInvocationError(
                f"{' '.join(cmd)} failed (exit {proc.returncode}).\n{output}",
                command=cmd,
                returncode=proc.returncode,
                output=output,
            )
        return stdout


async def _terminate(
    proc: asyncio.subprocess.Process, communicate: asyncio.Future
) -> None:
    """Stop *proc*, escalating to SIGKILL if it ignores SIGTERM."""
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()
    try:
        await asyncio.wait_for(asyncio.shield(communicate), _TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await communicate
    logger.debug("Terminated %s (pid %s)", proc, proc.pid)
