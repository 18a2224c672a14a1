# -*- coding: utf-8 -*-
########################
# durable_store.py
########################
# Purpose:
# - Storage primitives used by ssc_store.py: open for write, flush, exists, remove.
# - Direct write of a finished document, and the durable replace used for files whose
#   name can change between saves (edit files).
#
# Design notes:
# - Storage is a Protocol so tests can record the order of operations.
# - LocalFileStorage writes text with newline="" so \r\n terminators reach disk untouched.
# - LocalFileStorage writes into a ".tmp" sibling and replaces the target on close(), so the
#   target is never truncated. discard() drops the sibling after a failed write.
# - Payload text is checked to encode as UTF-8 before anything is opened.
# - Slow flush means flush + os.fsync. Cache writes skip the fsync.
# - durable_replace ordering is a contract: collision check, write + flush the new path,
#   then remove the old path. The old path is never removed before the new one is in place.
#
########################
# Interfaces:
# Public exceptions:
# - class SscWriteError(Exception)
# - class OpenFailureError(SscWriteError)
# - class WriteFailureError(SscWriteError)
# - class DestinationCollisionError(SscWriteError)
#
# Public protocols:
# - StorageFile: write(text), put_line(text), flush(), close() (commits), discard()
# - Storage: open_for_write(path, *, slow_flush) -> StorageFile, exists(path) -> bool, remove(path) -> None
#
# Public classes:
# - class LocalFileStorage(Storage)
#
# Public functions:
# - temporary_path_for(path) -> pathlib.Path
# - write_blob(storage: Storage, path: pathlib.Path, text: str, *, slow_flush: bool) -> None
# - durable_replace(storage: Storage, *, destination: pathlib.Path, payload: str,
#                   previous_path: Optional[pathlib.Path], previously_saved: bool,
#                   slow_flush: bool = True) -> bool
#
# Inputs:
# - Fully rendered document text from ssc_store.py.
#
# Outputs:
# - Files on disk. Errors raised as SscWriteError subclasses.
#
########################

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Optional, Protocol, Union


logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\r\n"

PathLike = Union[str, Path]


class SscWriteError(Exception):
    """Base error for failed song and edit file writes."""

    def __init__(self, message: str, *, path: Optional[PathLike] = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class OpenFailureError(SscWriteError):
    """Raised when the destination cannot be opened for writing."""


class WriteFailureError(SscWriteError):
    """Raised when a write or flush fails part way through a document."""


class DestinationCollisionError(SscWriteError):
    """Raised when a renamed edit would overwrite a file it does not own."""


class StorageFile(Protocol):
    def write(self, text: str) -> None: ...

    def put_line(self, text: str) -> None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...

    def discard(self) -> None: ...


class Storage(Protocol):
    def open_for_write(self, path: Path, *, slow_flush: bool) -> StorageFile: ...

    def exists(self, path: Path) -> bool: ...

    def remove(self, path: Path) -> None: ...


def temporary_path_for(path: PathLike) -> Path:
    target_path = Path(path)
    return target_path.with_suffix(target_path.suffix + ".tmp")


class LocalFile:
    """Text written to a .tmp sibling; close() moves it over the target."""

    def __init__(self, handle: IO[str], *, target_path: Path, temporary_path: Path, slow_flush: bool) -> None:
        self._handle = handle
        self._target_path = Path(target_path)
        self._temporary_path = Path(temporary_path)
        self._slow_flush = bool(slow_flush)

    def write(self, text: str) -> None:
        self._handle.write(text)

    def put_line(self, text: str) -> None:
        self._handle.write(text + LINE_TERMINATOR)

    def flush(self) -> None:
        self._handle.flush()
        if self._slow_flush:
            os.fsync(self._handle.fileno())

    def close(self) -> None:
        self._handle.close()
        self._temporary_path.replace(self._target_path)

    def discard(self) -> None:
        self._handle.close()
        if self._temporary_path.exists():
            self._temporary_path.unlink()


class LocalFileStorage:
    """Plain filesystem storage. Parent directories are created on open."""

    def open_for_write(self, path: Path, *, slow_flush: bool) -> LocalFile:
        target_path = Path(path)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        temporary_path = temporary_path_for(target_path)
        handle = open(temporary_path, "w", encoding="utf-8", newline="")
        return LocalFile(handle, target_path=target_path, temporary_path=temporary_path, slow_flush=slow_flush)

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def remove(self, path: Path) -> None:
        Path(path).unlink()


def _discard_partial_write(handle: StorageFile, target_path: Path) -> None:
    try:
        handle.discard()
    except OSError as exc:
        logger.warning("Could not discard partial write for %s: %s", target_path, exc)


def write_blob(storage: Storage, path: Path, text: str, *, slow_flush: bool) -> None:
    target_path = Path(path)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise WriteFailureError(f"Error writing file '{target_path}': {exc}", path=target_path) from exc

    try:
        handle = storage.open_for_write(target_path, slow_flush=slow_flush)
    except OSError as exc:
        raise OpenFailureError(
            f"'{target_path}' couldn't be opened for writing: {exc}", path=target_path
        ) from exc

    try:
        handle.put_line(text)
        handle.flush()
    except (OSError, UnicodeError) as exc:
        _discard_partial_write(handle, target_path)
        raise WriteFailureError(f"Error writing file '{target_path}': {exc}", path=target_path) from exc

    try:
        handle.close()
    except OSError as exc:
        _discard_partial_write(handle, target_path)
        raise WriteFailureError(f"Error writing file '{target_path}': {exc}", path=target_path) from exc

    logger.debug("Wrote %d characters to %s (slow_flush=%s)", len(text), target_path, slow_flush)


def durable_replace(
    storage: Storage,
    *,
    destination: Path,
    payload: str,
    previous_path: Optional[PathLike],
    previously_saved: bool,
    slow_flush: bool = True,
) -> bool:
    """Write payload to destination, then drop the entity's old file if it moved.

    Returns True when an old path was removed.

    The collision check only applies when the entity was saved before under a
    different name. A first save onto an existing file overwrites it.
    """
    destination_path = Path(destination)
    old_path = Path(previous_path) if previous_path else None
    name_changing = bool(previously_saved) and old_path is not None and old_path != destination_path

    if name_changing and storage.exists(destination_path):
        raise DestinationCollisionError(
            f"Error renaming file.  Destination file '{destination_path}' already exists.",
            path=destination_path,
        )

    write_blob(storage, destination_path, payload, slow_flush=slow_flush)

    if not name_changing:
        return False

    assert old_path is not None
    try:
        storage.remove(old_path)
    except OSError as exc:
        logger.warning("Saved %s but could not remove previous file %s: %s", destination_path, old_path, exc)
        return False

    logger.info("Removed previous file %s after saving %s", old_path, destination_path)
    return True
