"""Local filesystem file store implementation."""

import hashlib
import io
import logging
import os
import shutil
import stat
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Dict, List, Optional

from filestore.core.config.models import LocalStoreConfig
from filestore.storage.base import FileStore, check_cancelled
from filestore.storage.exceptions import (
    IntegrityError,
    InvalidInputError,
    ObjectNotFoundError,
    UploadSessionError,
)
from filestore.storage.models import (
    ByteRange,
    CompletedObjectUploadConfig,
    CopyObjectInput,
    DeleteObjectInput,
    ErrorPolicy,
    FileOperationOutput,
    GetObjectInput,
    ListDirInput,
    ListingResult,
    Location,
    ObjectInfo,
    ProgressData,
    PutObjectInput,
    UploadConfig,
    UploadResult,
    VisitFunction,
    WalkInput,
)

logger = logging.getLogger(__name__)

_HASH_BLOCK_SIZE = 1024 * 1024


def file_md5(f: BinaryIO) -> str:
    """Return the hex MD5 of a file object read from its current position."""
    h = hashlib.md5()
    for block in iter(lambda: f.read(_HASH_BLOCK_SIZE), b""):
        h.update(block)
    return h.hexdigest()


def _to_info(path: str, st: os.stat_result) -> ObjectInfo:
    return ObjectInfo(
        name=os.path.basename(path.rstrip(os.sep)) or path,
        size=st.st_size,
        modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        is_dir=stat.S_ISDIR(st.st_mode),
    )


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


@dataclass
class _UploadSession:
    path: str
    lock: threading.Lock


class LocalFileStore(FileStore):
    """File store backed by a mounted filesystem.

    Paths are used as given. Multipart uploads are emulated with positioned
    writes at ``chunk_id * chunk_size``.
    """

    def __init__(self, config: Optional[LocalStoreConfig] = None):
        """
        Initialize local filesystem store.

        Args:
            config: Store configuration. Defaults to 10 MiB chunks and no range cap
        """
        self.config = config or LocalStoreConfig()
        self._sessions: Dict[str, _UploadSession] = {}
        self._path_locks: Dict[str, threading.Lock] = {}
        self._sessions_lock = threading.Lock()

    def resource_name(self) -> str:
        return ""

    def get_object_info(self, path: Location) -> ObjectInfo:
        try:
            st = os.stat(path.path)
        except (FileNotFoundError, NotADirectoryError):
            raise ObjectNotFoundError(path.path)
        return _to_info(path.path, st)

    def list_dir(self, input: ListDirInput) -> List[ListingResult]:
        dir_path = input.path.path
        try:
            with os.scandir(dir_path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except (FileNotFoundError, NotADirectoryError):
            raise ObjectNotFoundError(dir_path)

        if input.filter:
            entries = [e for e in entries if input.filter in e.name]
        if input.size > 0:
            start = input.page * input.size
            entries = entries[start:start + input.size]

        results = []
        for i, entry in enumerate(entries):
            st = entry.stat()
            results.append(
                ListingResult(
                    id=i,
                    name=entry.name,
                    size=str(st.st_size),
                    path=dir_path,
                    type=os.path.splitext(entry.name)[1],
                    is_dir=entry.is_dir(),
                    modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                )
            )
        return results

    def get_object(self, input: GetObjectInput) -> BinaryIO:
        """Open a file; range reads are buffered into memory, not streamed."""
        path = input.path.path
        byte_range = ByteRange.parse(input.range) if input.range else None
        if byte_range is not None:
            cap = self.config.max_range_read_size
            if cap is not None and byte_range.length > cap:
                raise InvalidInputError(
                    f"Range of {byte_range.length} bytes exceeds the {cap} byte limit",
                    details={"range": input.range},
                )

        try:
            f = open(path, "rb")
        except (FileNotFoundError, NotADirectoryError):
            raise ObjectNotFoundError(path)

        if byte_range is None:
            return f
        with f:
            f.seek(byte_range.start)
            data = f.read(byte_range.length)
        return io.BytesIO(data)

    def put_object(self, input: PutObjectInput) -> FileOperationOutput:
        """Write a file and return its MD5 as the ETag.

        An explicitly empty data source only creates the parent directory.
        """
        dest = input.dest.path
        source = input.source

        kind = source.validate()
        if kind == "data" and len(source.data) == 0:
            os.makedirs(os.path.dirname(dest) or ".", exist_ok=True)
            return FileOperationOutput()

        if kind == "filepath" and not os.path.isfile(source.filepath.path):
            raise ObjectNotFoundError(source.filepath.path)

        _ensure_parent(dest)
        with source.open() as src, open(dest, "w+b") as f:
            shutil.copyfileobj(src, f)
            f.flush()
            f.seek(0)
            etag = file_md5(f)
        return FileOperationOutput(etag=etag)

    def copy_object(self, input: CopyObjectInput) -> None:
        check_cancelled(input.cancel_event, "copy")
        src, dest = input.src.path, input.dest.path
        try:
            src_file = open(src, "rb")
        except (FileNotFoundError, NotADirectoryError):
            raise ObjectNotFoundError(src)

        _ensure_parent(dest)
        with src_file, open(dest, "wb") as dest_file:
            shutil.copyfileobj(src_file, dest_file)
        if input.progress:
            input.progress(ProgressData(index=0, max=1, value=dest))

    def delete_objects(self, input: DeleteObjectInput) -> List[Exception]:
        errors: List[Exception] = []
        for i, path in enumerate(input.paths.all_paths()):
            check_cancelled(input.cancel_event, "delete")
            try:
                if os.path.isdir(path) and not os.path.islink(path):
                    shutil.rmtree(path)
                else:
                    os.remove(path)
            except FileNotFoundError:
                logger.debug(f"Skipping delete of missing path {path}")
            except OSError as e:
                logger.error(f"Failed to delete {path}: {e}")
                errors.append(e)
            if input.progress:
                input.progress(ProgressData(index=i, max=-1, value=path))
        return errors

    def _lock_for(self, path: str) -> threading.Lock:
        lock = self._path_locks.get(path)
        if lock is None:
            lock = threading.Lock()
            self._path_locks[path] = lock
        return lock

    def _get_session(self, upload_id: str, object_path: str) -> _UploadSession:
        with self._sessions_lock:
            session = self._sessions.get(upload_id)
        if session is None:
            raise UploadSessionError(upload_id)
        if session.path != object_path:
            raise UploadSessionError(
                upload_id, f"Upload {upload_id} belongs to {session.path}, not {object_path}"
            )
        return session

    def _close_session(self, upload_id: str) -> None:
        with self._sessions_lock:
            session = self._sessions.pop(upload_id, None)
            if session is None:
                return
            if not any(s.path == session.path for s in self._sessions.values()):
                self._path_locks.pop(session.path, None)

    def initialize_object_upload(self, config: UploadConfig) -> UploadResult:
        path = config.object_path
        _ensure_parent(path)
        upload_id = str(uuid.uuid4())
        with self._sessions_lock:
            lock = self._lock_for(path)
            self._sessions[upload_id] = _UploadSession(path=path, lock=lock)
        with lock:
            open(path, "wb").close()
        logger.info(f"Initialized upload {upload_id} to {path}")
        return UploadResult(id=upload_id)

    def write_chunk(self, config: UploadConfig) -> UploadResult:
        session = self._get_session(config.upload_id, config.object_path)
        offset = config.chunk_id * self.config.chunk_size
        with session.lock:
            with open(session.path, "r+b") as f:
                f.seek(offset)
                f.write(config.data)
        return UploadResult(
            id=hashlib.md5(config.data).hexdigest(),
            write_size=len(config.data),
        )

    def complete_object_upload(
        self, config: CompletedObjectUploadConfig
    ) -> FileOperationOutput:
        """Close the session and return the MD5 of the assembled file."""
        session = self._get_session(config.upload_id, config.object_path)
        try:
            with session.lock:
                with open(session.path, "rb") as f:
                    md5 = file_md5(f)
        finally:
            self._close_session(config.upload_id)

        if config.expected_md5 and config.expected_md5 != md5:
            raise IntegrityError(session.path, config.expected_md5, md5)
        logger.info(f"Completed upload {config.upload_id} to {session.path}")
        return FileOperationOutput(etag=md5)

    def walk(self, input: WalkInput, visitor: VisitFunction) -> List[Exception]:
        """Visit the root and everything below it in lexical pre-order."""
        root = input.path.path
        if not os.path.lexists(root):
            raise ObjectNotFoundError(root)

        errors: List[Exception] = []
        stack = [root]
        count = 0
        while stack:
            check_cancelled(input.cancel_event, "walk")
            path = stack.pop()
            info = _to_info(path, os.lstat(path))
            try:
                visitor(path, info)
            except Exception as e:
                if input.error_policy == ErrorPolicy.ABORT:
                    raise
                logger.error(f"Visitor function error on {path}: {e}")
                errors.append(e)
            if input.progress:
                input.progress(ProgressData(index=count, max=-1, value=info))
            count += 1
            if info.is_dir:
                try:
                    children = sorted(os.listdir(path), reverse=True)
                except OSError as e:
                    if input.error_policy == ErrorPolicy.ABORT:
                        raise
                    logger.error(f"Unable to list {path}: {e}")
                    errors.append(e)
                    continue
                stack.extend(os.path.join(path, name) for name in children)
        return errors
