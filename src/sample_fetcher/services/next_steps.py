"""Next-step hints shown to the user once a sample is on disk."""

from __future__ import annotations

import json
from pathlib import Path

from sample_fetcher.domain.entities import NextSteps, ServeCommand

_DEFAULT_SERVE = ServeCommand("npm", ("run", "serve"))


def detect_serve_command(project_dir: Path) -> ServeCommand:
    """Recommend how to serve the project.

    Explicit ``start``/``serve`` scripts win, then heft or gulp dependencies,
    then a ``gulpfile.js``; otherwise ``npm run serve``.
    """
    try:
        pkg = json.loads((project_dir / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        pkg = None

    if isinstance(pkg, dict):
        scripts = pkg.get("scripts") or {}
        if isinstance(scripts, dict):
            if scripts.get("start"):
                return ServeCommand("npm", ("run", "start"))
            if scripts.get("serve"):
                return ServeCommand("npm", ("run", "serve"))

        deps: dict = {}
        for section in ("dependencies", "devDependencies"):
            if isinstance(pkg.get(section), dict):
                deps.update(pkg[section])
        if "heft" in deps or "@microsoft/heft" in deps:
            return ServeCommand("npm", ("run", "start"))
        if "gulp" in deps or "gulp-cli" in deps:
            return ServeCommand("gulp", ("serve",))

    if (project_dir / "gulpfile.js").is_file():
        return ServeCommand("gulp", ("serve",))
    return _DEFAULT_SERVE


def read_nvmrc(project_dir: Path) -> str | None:
    """Return the first line of ``.nvmrc``, or ``None``."""
    try:
        text = (project_dir / ".nvmrc").read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    lines = text.splitlines()
    first = lines[0].strip() if lines else ""
    return first or None


def build_next_steps(project_path: Path, repo_root: Path | None = None) -> NextSteps:
    """Assemble the commands a user typically runs next."""
    commands = [
        f'cd "{project_path}"',
        "npm i",
        "npm run build",
        str(detect_serve_command(project_path)),
    ]
    contribute: list[str] = []
    if repo_root is not None:
        contribute = [f'cd "{repo_root}"', "git status", "git checkout -b my-change"]
    return NextSteps(
        commands=commands,
        node_version=read_nvmrc(project_path),
        contribute=contribute,
    )
