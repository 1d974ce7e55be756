"""Archive detection and extraction for downloaded assets."""

import bz2
import gzip
import logging
import lzma
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import IO, Callable

import filetype
import lz4.frame
import rarfile
import snappy

from .errors import FetchError

_logging = logging.getLogger(__name__)

# Longest suffixes first so "x.tar.gz" is never taken for a plain gzip file.
EXTENSIONS: list[tuple[str, str]] = [
    (".tar.bz2", "tar.bz2"),
    (".tbz2", "tar.bz2"),
    (".tar.gz", "tar.gz"),
    (".tgz", "tar.gz"),
    (".tar.lz4", "tar.lz4"),
    (".tlz4", "tar.lz4"),
    (".tar.sz", "tar.sz"),
    (".tsz", "tar.sz"),
    (".tar.xz", "tar.xz"),
    (".txz", "tar.xz"),
    (".tar", "tar"),
    (".zip", "zip"),
    (".rar", "rar"),
    (".gz", "gz"),
    (".bz2", "bz2"),
    (".lz4", "lz4"),
    (".sz", "sz"),
    (".xz", "xz"),
]

EXECUTABLE_MODE = 0o755


def format_by_extension(path: str | os.PathLike) -> str | None:
    """Return the archive format for ``path`` judging by its name, or None."""
    name = Path(path).name.lower()
    for suffix, fmt in EXTENSIONS:
        if name.endswith(suffix):
            return fmt
    return None


def is_archive(path: str | os.PathLike) -> bool:
    """Sniff the file contents for a known archive signature."""
    try:
        if filetype.is_archive(str(path)):
            return True
    except OSError as e:
        raise FetchError(f"{path}: cannot read file: {e}") from e
    return tarfile.is_tarfile(path)


def format_by_content(path: str | os.PathLike) -> str | None:
    if tarfile.is_tarfile(path):
        return "tar.auto"
    kind = filetype.guess(str(path))
    if kind is None:
        return None
    if kind.extension in ("zip", "rar", "gz", "bz2", "xz", "lz4"):
        return kind.extension
    return None


def _safe_target(dest: Path, name: str) -> Path:
    target = (dest / name).resolve()
    root = dest.resolve()
    if target != root and root not in target.parents:
        raise FetchError(f"{name}: refusing to extract outside of {dest}")
    return target


def _extract_tar(tar: tarfile.TarFile, dest: Path) -> None:
    """Extract members one by one so stream-mode archives work too."""
    kwargs = {"filter": "tar"} if hasattr(tarfile, "tar_filter") else {}
    for member in tar:
        _safe_target(dest, member.name)
        target = dest / member.name
        if member.isdir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        if target.is_symlink() or target.is_file():
            target.unlink()
        tar.extract(member, dest, **kwargs)


def _untar(path: Path, dest: Path, mode: str = "r:*", wrap: Callable[[IO[bytes]], IO[bytes]] | None = None) -> None:
    if wrap is None:
        with tarfile.open(path, mode) as tar:
            _extract_tar(tar, dest)
        return
    with open(path, "rb") as raw, wrap(raw) as stream:
        with tarfile.open(fileobj=stream, mode="r|") as tar:
            _extract_tar(tar, dest)


def _snappy_stream(raw: IO[bytes]) -> IO[bytes]:
    buf = tempfile.TemporaryFile()
    snappy.stream_decompress(raw, buf)
    buf.seek(0)
    return buf


def _unzip(path: Path, dest: Path) -> None:
    with zipfile.ZipFile(path) as zf:
        for info in zf.infolist():
            _safe_target(dest, info.filename)
            target = dest / info.filename
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.is_symlink():
                target.unlink()
            with zf.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            mode = (info.external_attr >> 16) & 0o777
            if mode:
                os.chmod(target, mode)


def _unrar(path: Path, dest: Path) -> None:
    with rarfile.RarFile(path) as rf:
        for info in rf.infolist():
            _safe_target(dest, info.filename)
        rf.extractall(dest)


_SINGLE_OPENERS: dict[str, Callable[[IO[bytes]], IO[bytes]]] = {
    "gz": lambda raw: gzip.GzipFile(fileobj=raw),
    "bz2": lambda raw: bz2.BZ2File(raw),
    "xz": lambda raw: lzma.LZMAFile(raw),
    "lz4": lambda raw: lz4.frame.LZ4FrameFile(raw),
    "sz": _snappy_stream,
}


def _decompress_single(path: Path, dest: Path, fmt: str, name: str | None = None) -> Path:
    """Decompress a single-file stream into ``dest/name``.

    Without a name the file is named after the archive minus its suffix.
    """
    if not name:
        name = path.name
        if "." in name:
            name = name.rsplit(".", 1)[0]
    _safe_target(dest, name)
    target = dest / name
    if target.is_symlink() or target.exists():
        target.unlink()
    with open(path, "rb") as raw, _SINGLE_OPENERS[fmt](raw) as src, open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.chmod(target, EXECUTABLE_MODE)
    return target


def extract(
    path: str | os.PathLike,
    dest: str | os.PathLike,
    fmt: str,
    binary_name: str | None = None,
) -> None:
    """Extract ``path`` of format ``fmt`` into ``dest``, overwriting files.

    A single compressed file is written as ``binary_name`` when one is given.
    """
    path, dest = Path(path), Path(dest)
    _logging.debug(f"unarchive: {path} ({fmt}) -> {dest}")
    try:
        if fmt == "tar.auto":
            _untar(path, dest)
        elif fmt == "tar":
            _untar(path, dest, "r:")
        elif fmt == "tar.gz":
            _untar(path, dest, "r:gz")
        elif fmt == "tar.bz2":
            _untar(path, dest, "r:bz2")
        elif fmt == "tar.xz":
            _untar(path, dest, "r:xz")
        elif fmt == "tar.lz4":
            _untar(path, dest, wrap=lz4.frame.LZ4FrameFile)
        elif fmt == "tar.sz":
            _untar(path, dest, wrap=_snappy_stream)
        elif fmt == "zip":
            _unzip(path, dest)
        elif fmt == "rar":
            _unrar(path, dest)
        elif fmt in _SINGLE_OPENERS:
            _decompress_single(path, dest, fmt, binary_name)
        else:
            raise FetchError(f"{path.name}: unsupported archive format {fmt!r}")
    except FetchError:
        raise
    except (OSError, EOFError, tarfile.TarError, zipfile.BadZipFile, rarfile.Error, lzma.LZMAError, RuntimeError) as e:
        raise FetchError(f"{path.name}: failed to unarchive: {e}") from e


def make_executable(path: str | os.PathLike) -> None:
    os.chmod(path, EXECUTABLE_MODE)


def is_executable(path: str | os.PathLike) -> bool:
    mode = os.stat(path).st_mode
    return bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def unarchive(path: str | os.PathLike, home: str | os.PathLike, binary_name: str) -> None:
    """Unpack a downloaded release asset into ``home``.

    Files without a recognised archive extension are treated as a bare
    executable: renamed to ``home/binary_name`` (unless that already exists)
    and made executable. A successfully extracted archive is deleted.
    """
    path, home = Path(path), Path(home)
    fmt = format_by_extension(path)
    if fmt is None:
        _logging.info(f"{path.name}: format unrecognized by filename, assuming a binary")
        target = home / binary_name
        if not target.exists():
            _logging.debug(f"renamed from {path} to {target}")
            os.replace(path, target)
            make_executable(target)
        return

    extract(path, home, fmt, binary_name)
    _logging.debug(f"removed archive file: {path}")
    path.unlink(missing_ok=True)


def unarchive_sniffed(path: str | os.PathLike) -> bool:
    """Extract ``path`` in place when its contents look like an archive.

    Returns False and leaves the file alone otherwise.
    """
    path = Path(path)
    if not is_archive(path):
        _logging.debug(f"{path}: no need to unarchive")
        return False
    fmt = format_by_extension(path) or format_by_content(path)
    if fmt is None:
        _logging.debug(f"{path}: archive signature without a supported format")
        return False
    extract(path, path.parent, fmt)
    return True


__all__ = [
    "EXTENSIONS",
    "extract",
    "format_by_content",
    "format_by_extension",
    "is_archive",
    "is_executable",
    "make_executable",
    "unarchive",
    "unarchive_sniffed",
]
