"""Archive creation for distributable plugin packages."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Protocol, runtime_checkable
import gzip
import os
import shutil
import tarfile
import tempfile
import zipfile

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".zip", "zip"),
]

_FORMAT_ALIASES: dict[str, str] = {
    "gztar": "gztar",
    "gz": "gztar",
    "tar.gz": "gztar",
    "tgz": "gztar",
    "zip": "zip",
}

FORMAT_SUFFIXES: dict[str, str] = {
    "gztar": ".tar.gz",
    "zip": ".zip",
}


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """A file or directory to place into an archive under ``arcname``."""

    source: Path
    arcname: str


def normalize_format(format_hint: str) -> str:
    normalized = format_hint.strip().lower()
    if normalized in _FORMAT_ALIASES:
        return _FORMAT_ALIASES[normalized]
    raise ValueError(f"Unsupported archive format hint '{format_hint}'")


class ArchiveManager:
    """Create compressed archives from explicit file and directory entries."""

    def __init__(
        self,
        console: ArchiveConsole,
    ) -> None:
        self._console = console

    def create_archive(
        self,
        *,
        entries: Iterable[ArchiveEntry],
        target_path: Path | str,
        format_hint: str | None = None,
    ) -> Path:
        """Create an archive holding *entries* at *target_path*.

        Parameters
        ----------
        entries:
            Files and directories to include. Directories are added
            recursively in sorted order.
        target_path:
            Exact path (including filename) for the archive that should be created.
        format_hint:
            Optional explicit archive format such as ``"zip"`` or ``"tgz"``. When
            omitted, the format is inferred from *target_path*'s suffix. An existing
            archive at *target_path* is replaced.
        """

        target = Path(target_path).expanduser()
        items = list(entries)
        for entry in items:
            if not entry.source.exists():
                raise FileNotFoundError(f"Archive input '{entry.source}' does not exist")

        archive_format = self._resolve_archive_format(target=target, format_hint=format_hint)

        target.parent.mkdir(parents=True, exist_ok=True)
        self._console.info(f"writing {len(items)} entries to {target}")

        if archive_format == "zip":
            return self._make_zip_archive(target_path=target, entries=items)
        if archive_format == "gztar":
            return self._make_gzip_archive(target_path=target, entries=items)
        raise RuntimeError(f"Unsupported archive format '{archive_format}'")

    def _resolve_archive_format(self, *, target: Path, format_hint: str | None) -> str:
        if format_hint:
            return normalize_format(format_hint)

        filename = target.name.lower()
        for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
            if filename.endswith(suffix):
                return fmt

        raise ValueError(
            "Unable to determine archive format from target path. "
            "Provide an explicit format_hint or use a supported suffix."
        )

    @staticmethod
    def _iter_files(entries: Iterable[ArchiveEntry]) -> Iterator[tuple[Path, str]]:
        for entry in entries:
            if entry.source.is_file():
                yield entry.source, entry.arcname
                continue
            for dirpath, dirnames, filenames in os.walk(entry.source, topdown=True):
                dirnames.sort()
                filenames.sort()
                relative_dir = Path(dirpath).relative_to(entry.source)
                for filename in filenames:
                    arcname = Path(entry.arcname) / relative_dir / filename
                    yield Path(dirpath) / filename, arcname.as_posix()

    def _make_zip_archive(self, *, target_path: Path, entries: list[ArchiveEntry]) -> Path:
        with zipfile.ZipFile(
            target_path,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=5,
            strict_timestamps=False,
        ) as archive:
            for file_path, arcname in self._iter_files(entries):
                archive.write(file_path, arcname)

        return target_path

    def _make_gzip_archive(self, *, target_path: Path, entries: list[ArchiveEntry]) -> Path:
        temp_tar = self._create_pax_tar(entries=entries, temp_dir=target_path.parent)

        try:
            with temp_tar.open("rb") as src, gzip.GzipFile(
                filename=str(target_path), mode="wb", compresslevel=9, mtime=0
            ) as dst:
                shutil.copyfileobj(src, dst)
        finally:
            temp_tar.unlink(missing_ok=True)

        return target_path

    def _create_pax_tar(self, *, entries: list[ArchiveEntry], temp_dir: Path) -> Path:
        with tempfile.NamedTemporaryFile(dir=temp_dir, suffix=".tar", delete=False) as temp_handle:
            temp_path = Path(temp_handle.name)

        try:
            with tarfile.open(temp_path, mode="w", format=tarfile.PAX_FORMAT) as tar:
                for file_path, arcname in self._iter_files(entries):
                    tar.add(file_path, arcname=arcname, recursive=False)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

        return temp_path


__all__ = [
    "ArchiveConsole",
    "ArchiveEntry",
    "ArchiveManager",
    "FORMAT_SUFFIXES",
    "normalize_format",
]
