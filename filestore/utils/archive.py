"""Counting, zipping and unzipping built on the file store contract."""

import io
import logging
import posixpath
import re
import tempfile
import zipfile
from typing import Optional

from filestore.storage.base import FileStore
from filestore.storage.exceptions import InvalidInputError, ObjectNotFoundError
from filestore.storage.models import (
    ErrorPolicy,
    GetObjectInput,
    Location,
    ObjectInfo,
    ObjectSource,
    PutObjectInput,
    WalkInput,
)
from filestore.storage.paths import to_key

logger = logging.getLogger(__name__)

_SPOOL_SIZE = 16 * 1024 * 1024


def file_exists(store: FileStore, path: Location) -> bool:
    """Return False only when the store reports the path as not found."""
    try:
        store.get_object_info(path)
    except ObjectNotFoundError:
        return False
    return True


def count_objects(store: FileStore, dir_path: Location, pattern: Optional[str] = None) -> int:
    """
    Count walked entries below dir_path, optionally only those matching a regex.

    Raises:
        InvalidInputError: If the pattern does not compile
    """
    matcher = None
    if pattern:
        try:
            matcher = re.compile(pattern)
        except re.error as e:
            raise InvalidInputError(f"Failed to compile file search pattern: {e}") from e

    count = 0

    def visit(path: str, info: ObjectInfo) -> None:
        nonlocal count
        if matcher is None or matcher.search(path):
            count += 1

    store.walk(WalkInput(path=dir_path, error_policy=ErrorPolicy.ABORT), visit)
    return count


def zip_directory(store: FileStore, dir_path: Location, dest: Location) -> int:
    """
    Zip every file below dir_path into a single archive written to dest.

    Entry names are relative to dir_path.

    Returns:
        Number of files added to the archive
    """
    root = to_key(dir_path.path).rstrip("/")
    dest_key = to_key(dest.path)
    added = 0

    with tempfile.SpooledTemporaryFile(max_size=_SPOOL_SIZE) as spool:
        with zipfile.ZipFile(spool, "w", compression=zipfile.ZIP_DEFLATED) as archive:

            def add(path: str, info: ObjectInfo) -> None:
                nonlocal added
                key = to_key(path)
                if info.is_dir or key == dest_key:
                    return
                name = key[len(root):].lstrip("/") if root else key
                reader = store.get_object(GetObjectInput(path=Location(path=path)))
                try:
                    with archive.open(name, "w") as entry:
                        for block in iter(lambda: reader.read(1024 * 1024), b""):
                            entry.write(block)
                finally:
                    reader.close()
                added += 1

            store.walk(WalkInput(path=dir_path, error_policy=ErrorPolicy.ABORT), add)

        size = spool.tell()
        spool.seek(0)
        store.put_object(
            PutObjectInput(
                source=ObjectSource(reader=spool, content_length=size),
                dest=dest,
            )
        )

    logger.info(f"Zipped {added} files from {dir_path.path} into {dest.path}")
    return added


def unzip_object(store: FileStore, path: Location) -> int:
    """
    Extract a zip archive into the directory that holds it.

    Returns:
        Number of files extracted

    Raises:
        InvalidInputError: If an entry would be written outside that directory
    """
    target_dir = posixpath.dirname(path.path)
    extracted = 0

    with tempfile.SpooledTemporaryFile(max_size=_SPOOL_SIZE) as spool:
        reader = store.get_object(GetObjectInput(path=path))
        try:
            for block in iter(lambda: reader.read(1024 * 1024), b""):
                spool.write(block)
        finally:
            reader.close()
        spool.seek(0)

        with zipfile.ZipFile(spool) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                name = info.filename
                if name.startswith("/") or ".." in name.split("/"):
                    raise InvalidInputError(f"Unsafe zip entry name: {name}")
                data = archive.read(info)
                store.put_object(
                    PutObjectInput(
                        source=ObjectSource(reader=io.BytesIO(data), content_length=len(data)),
                        dest=Location(path=posixpath.join(target_dir, name)),
                    )
                )
                extracted += 1

    logger.info(f"Extracted {extracted} files from {path.path}")
    return extracted
