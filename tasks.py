"""Invoke tasks for developing modelshelf.

Every task shells out to `uv` so the virtual environment, test run, and lint
configuration match what contributors get from `uv sync --extra dev`.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"
SOURCE_PATHS = ("src", "tests")


def _uv(ctx: Context, args: Sequence[str], *, dry_run: bool = False) -> None:
    """Run ``uv`` with ``args``, or print the command when ``dry_run`` is set."""
    command = shlex.join(("uv", *args))
    if dry_run:
        print(f"[dry-run] {command}")
        return
    ctx.run(command, echo=True, pty=True)


@task(help={"dev": "Install the dev extra (pytest, ruff, mypy, invoke)."})
def sync(ctx: Context, dev: bool = True) -> None:
    """Create or refresh the project environment."""
    _uv(ctx, ["sync", *(["--extra", "dev"] if dev else [])])


@task(help={"clean": "Empty dist/ before building."})
def build(ctx: Context, clean: bool = False) -> None:
    """Build the sdist and wheel into dist/."""
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _uv(ctx, ["build"])


@task(
    help={
        "k": "pytest -k expression, e.g. 'restore and hash'.",
        "path": "Test file or directory (defaults to tests/).",
        "options": "Extra flags passed through to pytest.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite.

    Args:
        ctx: Invoke execution context.
        k: Selection expression forwarded as ``-k``.
        path: Target passed to pytest.
        options: Additional pytest arguments, shell-split.
    """
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    args.extend(shlex.split(options))
    args.append(path)
    _uv(ctx, args)


@task(help={"fix": "Let ruff apply safe fixes.", "check_format": "Also run `ruff format --check`."})
def lint(ctx: Context, fix: bool = False, check_format: bool = False) -> None:
    """Lint the sources and tests with ruff."""
    if check_format:
        _uv(ctx, ["run", "ruff", "format", "--check", *SOURCE_PATHS])
    _uv(ctx, ["run", "ruff", "check", *SOURCE_PATHS, *(["--fix"] if fix else [])])


@task
def mypy(ctx: Context) -> None:
    """Type-check the package."""
    _uv(ctx, ["run", "mypy", "src/modelshelf"])


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks, and tests the way CI does."""
    ctx.invoke(lint, check_format=True)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, build, tests, lint, mypy, ci)
