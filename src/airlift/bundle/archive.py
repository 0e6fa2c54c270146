"""
airlift.bundle.archive — Deterministic tar+gzip packer/unpacker.

write_archive walks the source tree in sorted order and stores every
entry under its path relative to the source directory. Timestamps and
ownership are normalized, so the same tree always produces the same
bytes.

read_archive is partial-tolerant: entries it cannot represent
(devices, FIFOs, hard links, paths escaping the destination) are
skipped with a warning and the rest of the archive is still extracted.
"""

from __future__ import annotations

import gzip
import os
import shutil
import tarfile
from pathlib import Path

import click

from airlift.core.errors import ArchiveError


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# WRITE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def write_archive(source_dir: str | Path, out_path: str | Path) -> Path:
    """Pack source_dir into a .tar.gz at out_path."""
    source_dir = Path(source_dir)
    out_path = Path(out_path)

    if not source_dir.is_dir():
        raise ArchiveError(f"Source directory not found: {source_dir}")

    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "wb") as raw, \
                gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz, \
                tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for path in _walk_sorted(source_dir):
                _add_entry(tar, path, path.relative_to(source_dir).as_posix())
    except OSError as e:
        raise ArchiveError(f"Failed to write archive {out_path}: {e}") from e

    return out_path


def _walk_sorted(root: Path):
    """Yield every entry below root (not root itself) in stable order.

    Symlinked directories are yielded but not descended into.
    """
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        yield entry
        if entry.is_dir() and not entry.is_symlink():
            yield from _walk_sorted(entry)


def _add_entry(tar: tarfile.TarFile, path: Path, arcname: str) -> None:
    info = tarfile.TarInfo(name=arcname)
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""

    if path.is_symlink():
        info.type = tarfile.SYMTYPE
        info.linkname = os.readlink(path)
        info.mode = 0o777
        tar.addfile(info)
    elif path.is_dir():
        info.type = tarfile.DIRTYPE
        info.mode = path.stat().st_mode & 0o7777
        tar.addfile(info)
    elif path.is_file():
        st = path.stat()
        info.type = tarfile.REGTYPE
        info.mode = st.st_mode & 0o7777
        info.size = st.st_size
        with open(path, "rb") as f:
            tar.addfile(info, f)
    else:
        click.echo(f"Warning: Skipping unsupported file type: {arcname}",
                   err=True)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# READ
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def read_archive(archive_path: str | Path, dest_dir: str | Path) -> list[str]:
    """Extract a .tar.gz (or plain .tar) into dest_dir.

    Returns:
        Names of the entries that were skipped
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)

    if not archive_path.exists():
        raise ArchiveError(f"Archive not found: {archive_path}")

    skipped: list[str] = []
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        root = dest_dir.resolve()
        with tarfile.open(archive_path, "r:*") as tar:
            for member in tar:
                target = _safe_target(root, member.name)
                if target is None:
                    click.echo(
                        f"Warning: Skipping entry outside destination: "
                        f"{member.name}",
                        err=True,
                    )
                    skipped.append(member.name)
                    continue
                if not _extract_member(tar, member, target):
                    skipped.append(member.name)
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveError(
            f"Failed to extract archive {archive_path}: {e}"
        ) from e

    return skipped


def _safe_target(root: Path, name: str) -> Path | None:
    """Map an entry name to a path under root, or None if it escapes.

    The parent directory is resolved so that symlinks extracted by
    earlier entries are followed. The entry itself is not resolved: a
    symlink entry is written as a link, whatever it points to.
    """
    if os.path.isabs(name):
        return None
    rel = Path(name)
    if not rel.parts:
        return root
    parent = (root / rel).parent.resolve(strict=False)
    target = parent / rel.name
    if rel.name == "..":
        target = target.resolve(strict=False)
    if target != root and root not in target.parents:
        return None
    return target


def _extract_member(tar: tarfile.TarFile, member: tarfile.TarInfo,
                    target: Path) -> bool:
    if member.isdir():
        target.mkdir(parents=True, exist_ok=True)
        return True

    if member.isreg():
        target.parent.mkdir(parents=True, exist_ok=True)
        src = tar.extractfile(member)
        if src is None:
            raise ArchiveError(f"Cannot read archive entry: {member.name}")
        if target.is_symlink():
            target.unlink()
        with src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst)
        os.chmod(target, member.mode & 0o7777 or 0o644)
        return True

    if member.issym():
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_symlink() or target.is_file():
            target.unlink()
        os.symlink(member.linkname, target)
        return True

    click.echo(
        f"Warning: Skipping unsupported file type for '{member.name}'",
        err=True,
    )
    return False
