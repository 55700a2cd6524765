"""Project identity rewriter — rename an SPFx project and/or give it a new id.

Touches a fixed set of well-known files.  Files that are missing or not
valid JSON are skipped; nothing here is an error except a malformed id.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any

from sample_fetcher.domain.entities import IdentityChange
from sample_fetcher.domain.exceptions import ConfigurationError, InvalidIdentifierError

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"
YO_RC = ".yo-rc.json"
PACKAGE_SOLUTION = Path("config") / "package-solution.json"
DEPLOY_AZURE_STORAGE = Path("config") / "deploy-azure-storage.json"
README = "README.md"

GENERATOR_KEY = "@microsoft/generator-sharepoint"

_GUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_guid(value: str) -> bool:
    """Return *True* for a GUID in canonical 8-4-4-4-12 hex form."""
    return bool(_GUID_RE.match(value))


def resolve_solution_id(value: str | bool | None) -> str | None:
    """Turn a ``--newid`` flag value into a concrete id.

    ``None``/``False`` → no change; ``True`` (flag without a value) → a fresh
    UUID; a string → validated and returned as given.
    """
    if value is None or value is False:
        return None
    if value is True:
        return str(uuid.uuid4())

    candidate = value.strip()
    if not is_guid(candidate):
        raise InvalidIdentifierError(
            f"New id must be a GUID. Received: {candidate}",
            "Omit the value to generate one automatically.",
        )
    return candidate


def rewrite_identity(
    project_dir: Path,
    rename: str | None = None,
    new_id: str | None = None,
) -> IdentityChange:
    """Apply *rename* and/or *new_id* across the project's metadata files.

    *new_id* must already be resolved (see :func:`resolve_solution_id`).
    """
    if not project_dir.is_dir():
        raise ConfigurationError(f"Path not found: {project_dir}")
    if new_id is not None and not is_guid(new_id):
        raise InvalidIdentifierError(f"New id must be a GUID. Received: {new_id}")

    rename = (rename or "").strip() or None
    written: list[str] = []

    # package.json: its current name drives the substring replacements below
    pkg_path = project_dir / PACKAGE_JSON
    pkg = _read_json(pkg_path)
    previous_name = pkg.get("name") if isinstance(pkg, dict) else None
    if not isinstance(previous_name, str) or not previous_name:
        previous_name = None

    if isinstance(pkg, dict) and rename:
        pkg["name"] = rename
        _write_if_changed(pkg_path, pkg, PACKAGE_JSON, written)

    # .yo-rc.json
    yo_path = project_dir / YO_RC
    yo = _read_json(yo_path)
    generator = yo.get(GENERATOR_KEY) if isinstance(yo, dict) else None
    if isinstance(generator, dict):
        if rename:
            for key in ("libraryName", "solutionName"):
                if isinstance(generator.get(key), str):
                    generator[key] = rename
        if new_id and isinstance(generator.get("libraryId"), str):
            generator["libraryId"] = new_id
        _write_if_changed(yo_path, yo, YO_RC, written)

    # config/package-solution.json
    ps_path = project_dir / PACKAGE_SOLUTION
    ps = _read_json(ps_path)
    solution = ps.get("solution") if isinstance(ps, dict) else None
    if isinstance(solution, dict):
        if rename and previous_name and isinstance(solution.get("name"), str):
            # keeps decorations such as the " Solution" suffix
            solution["name"] = solution["name"].replace(previous_name, rename)
        if new_id and isinstance(solution.get("id"), str):
            solution["id"] = new_id
        _write_if_changed(ps_path, ps, PACKAGE_SOLUTION.as_posix(), written)

    # config/deploy-azure-storage.json
    daz_path = project_dir / DEPLOY_AZURE_STORAGE
    daz = _read_json(daz_path)
    if isinstance(daz, dict) and rename and isinstance(daz.get("container"), str):
        daz["container"] = rename
        _write_if_changed(daz_path, daz, DEPLOY_AZURE_STORAGE.as_posix(), written)

    # README.md
    readme_path = project_dir / README
    if rename and previous_name and readme_path.is_file():
        try:
            existing = readme_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping %s: not UTF-8 text", readme_path)
            existing = ""
        updated = existing.replace(previous_name, rename)
        if updated != existing:
            readme_path.write_text(updated, encoding="utf-8")
            written.append(README)

    logger.info(
        "Rewrote identity of %s (rename=%s, new_id=%s): %s",
        project_dir,
        rename,
        new_id,
        ", ".join(written) or "no files changed",
    )
    return IdentityChange(
        previous_name=previous_name,
        new_name=rename,
        new_id=new_id,
        files_written=written,
    )


def _read_json(path: Path) -> Any:
    """Return the parsed JSON at *path*, or ``None`` when absent/unparsable."""
    try:
        text = path.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError, UnicodeDecodeError):
        return None
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Skipping %s: not valid JSON", path)
        return None


def _write_if_changed(path: Path, data: Any, label: str, written: list[str]) -> None:
    """Serialize *data* to *path* unless the file already holds the same JSON."""
    serialized = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    try:
        current = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        current = None
    if current is not None and _same_json(current, data):
        return
    path.write_text(serialized, encoding="utf-8")
    written.append(label)


def _same_json(text: str, data: Any) -> bool:
    try:
        return json.loads(text) == data
    except json.JSONDecodeError:
        return False
