"""Working-tree scanner - regular files in the checkout, sizes, CODEOWNERS."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Iterator

from ..models import WorkTreeFileRecord

METADATA_DIR = ".git"
CODEOWNERS_PATHS = (".github/CODEOWNERS", "CODEOWNERS", "docs/CODEOWNERS")
CODEOWNERS_MAX_LINES = 200


def _excluded_dirs(root: Path, exclude: Iterable[str | Path]) -> set[Path]:
    dirs = {(root / METADATA_DIR).resolve()}
    for p in exclude:
        p = Path(p)
        dirs.add((p if p.is_absolute() else root / p).resolve())
    return dirs


def iter_worktree_files(root: str | Path, exclude: Iterable[str | Path] = ()) -> Iterator[Path]:
    """Yield regular files under root ordered by relative path, skipping .git and excluded dirs."""
    root = Path(root).resolve()
    skip = _excluded_dirs(root, exclude)
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = [d for d in dirnames if (current / d).resolve() not in skip]
        for name in filenames:
            p = current / name
            if p.is_symlink() or not p.is_file():
                continue
            found.append(p)
    yield from sorted(found, key=lambda p: p.relative_to(root).as_posix())


def relative_name(path: Path, root: Path) -> str:
    return "./" + path.relative_to(root).as_posix()


def list_worktree_files(root: str | Path, exclude: Iterable[str | Path] = ()) -> list[WorkTreeFileRecord]:
    root = Path(root).resolve()
    records = []
    for p in iter_worktree_files(root, exclude):
        try:
            size = p.stat().st_size
        except OSError:
            continue
        records.append(WorkTreeFileRecord(size=size, path=relative_name(p, root)))
    return records


def directory_size(path: str | Path, exclude: Iterable[str | Path] = ()) -> int:
    """Total bytes of regular files under path (like du, without block rounding)."""
    path = Path(path)
    if not path.is_dir():
        return 0
    if path.name == METADATA_DIR:
        # The metadata dir itself is the subject here, so walk it directly.
        total = 0
        for dirpath, _dirnames, filenames in os.walk(path):
            for name in filenames:
                p = Path(dirpath) / name
                if not p.is_symlink():
                    try:
                        total += p.stat().st_size
                    except OSError:
                        pass
        return total
    return sum(r.size for r in list_worktree_files(path, exclude))


def read_codeowners(root: str | Path) -> str | None:
    """Concatenated CODEOWNERS content, or None when the repo declares none."""
    root = Path(root)
    chunks = []
    for rel in CODEOWNERS_PATHS:
        p = root / rel
        if p.is_file():
            lines = p.read_text(errors="replace").splitlines()[:CODEOWNERS_MAX_LINES]
            chunks.append(f"# {rel}\n" + "\n".join(lines))
    if not chunks:
        return None
    return "\n".join(chunks)
