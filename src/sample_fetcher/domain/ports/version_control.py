"""Port: version-control tool — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from sample_fetcher.domain.context import CancellationSignal
from sample_fetcher.domain.entities import ToolVersion


class VersionControl(Protocol):
    """Abstract contract for probing and driving the git binary."""

    async def is_available(self) -> bool:
        """Return *True* if the tool can be invoked at all.  Never raises."""
        ...

    async def ensure_adequate(self) -> ToolVersion | None:
        """Raise unless the tool supports cone-mode sparse checkout."""
        ...

    async def run(
        self,
        args: Sequence[str],
        cwd: Path | None = None,
        cancel: CancellationSignal | None = None,
    ) -> str:
        """Run the tool with *args* and return its stdout."""
        ...
