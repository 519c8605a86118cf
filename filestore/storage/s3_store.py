"""S3 compatible object store implementation."""

import logging
import math
import os
import posixpath
import threading
from contextlib import contextmanager
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Tuple

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from filestore.core.config.models import DEFAULT_DELIMITER, DEFAULT_MAX_KEYS, S3StoreConfig
from filestore.storage.base import FileStore, check_cancelled
from filestore.storage.exceptions import (
    BatchDeleteError,
    FileStoreError,
    InvalidInputError,
    MultipartCopyError,
    ObjectNotFoundError,
    OperationCancelledError,
    TransientStorageError,
    UploadSessionError,
)
from filestore.storage.models import (
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
    ProgressFunction,
    PutObjectInput,
    UploadConfig,
    UploadResult,
    VisitFunction,
    WalkInput,
)
from filestore.storage.paths import dir_prefix, to_key

logger = logging.getLogger(__name__)

MAX_DELETE_BATCH_SIZE = 1000

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_TRANSIENT_CODES = {
    "500",
    "503",
    "InternalError",
    "RequestTimeout",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
}
_CONNECTION_ERRORS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)


@contextmanager
def _translate_errors(path: str, upload_id: str = "") -> Iterator[None]:
    """Map botocore failures onto the file store error taxonomy."""
    try:
        yield
    except ClientError as e:
        code = str(e.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            raise ObjectNotFoundError(path) from e
        if code == "NoSuchUpload":
            raise UploadSessionError(upload_id) from e
        if code in _TRANSIENT_CODES:
            raise TransientStorageError(
                f"{code} on {path}: {e}", details={"path": path, "code": code}
            ) from e
        raise
    except _CONNECTION_ERRORS as e:
        raise TransientStorageError(f"Connection failure on {path}: {e}", details={"path": path}) from e


def build_copy_source_range(start: int, object_size: int, chunk_size: int) -> str:
    """Build the ``bytes=start-end`` range for one part copy, clipped to the object."""
    end = min(start + chunk_size - 1, object_size - 1)
    return f"bytes={start}-{end}"


class S3FileStore(FileStore):
    """File store backed by an S3 compatible bucket (AWS S3 or MinIO)."""

    def __init__(self, config: S3StoreConfig, client: Any):
        """
        Initialize the S3 store.

        Args:
            config: Store configuration
            client: An authenticated boto3 S3 client
        """
        self.config = config
        self.client = client
        self.delimiter = config.delimiter or DEFAULT_DELIMITER
        self.max_keys = config.max_keys or DEFAULT_MAX_KEYS

    def get_client(self) -> Any:
        return self.client

    def get_config(self) -> S3StoreConfig:
        return self.config

    def resource_name(self) -> str:
        return self.config.bucket

    def _has_children(self, key: str) -> bool:
        with _translate_errors(key):
            resp = self.client.list_objects_v2(
                Bucket=self.config.bucket, Prefix=dir_prefix(key), MaxKeys=1
            )
        return bool(resp.get("Contents"))

    def get_object_info(self, path: Location) -> ObjectInfo:
        """Head an object; a key with descendants but no object is a prefix."""
        key = to_key(path.path)
        if not key:
            return ObjectInfo(name="", is_dir=True)
        if key.endswith(self.delimiter) and self._has_children(key):
            return ObjectInfo(name=key, is_dir=True)

        try:
            with _translate_errors(path.path):
                resp = self.client.head_object(Bucket=self.config.bucket, Key=key)
        except ObjectNotFoundError:
            if self._has_children(key):
                return ObjectInfo(name=key, is_dir=True)
            raise

        return ObjectInfo(
            name=key,
            size=resp.get("ContentLength", 0),
            modified=resp.get("LastModified"),
            etag=resp.get("ETag"),
        )

    def list_dir(self, input: ListDirInput) -> List[ListingResult]:
        params: Dict[str, Any] = {
            "Bucket": self.config.bucket,
            "Prefix": to_key(input.path.path),
            "Delimiter": self.delimiter,
            "MaxKeys": self.max_keys,
        }

        with _translate_errors(input.path.path):
            if not input.filter and input.size <= DEFAULT_MAX_KEYS:
                prefixes, objects = self._get_page(input, params)
            else:
                prefixes, objects = self._get_all_up_to_max(input, params)

        results = []
        for prefix in prefixes:
            name = prefix["Prefix"]
            results.append(
                ListingResult(
                    id=len(results),
                    name=posixpath.basename(name.rstrip(self.delimiter)),
                    path=name,
                    is_dir=True,
                )
            )
        for obj in objects:
            key = obj["Key"]
            results.append(
                ListingResult(
                    id=len(results),
                    name=posixpath.basename(key),
                    size=str(obj.get("Size", 0)),
                    path=posixpath.dirname(key),
                    type=posixpath.splitext(key)[1],
                    is_dir=False,
                    modified=obj.get("LastModified"),
                )
            )
        return results

    def _get_page(
        self, input: ListDirInput, params: Dict[str, Any]
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Fetch exactly one unfiltered page by index using the paginator."""
        max_keys = params.pop("MaxKeys")
        page_size = input.size if input.size > 0 else max_keys
        paginator = self.client.get_paginator("list_objects_v2")
        pages = paginator.paginate(**params, PaginationConfig={"PageSize": page_size})
        for current_page, page in enumerate(pages):
            if current_page == input.page:
                return page.get("CommonPrefixes", []), page.get("Contents", [])
        return [], []

    def _get_all_up_to_max(
        self, input: ListDirInput, params: Dict[str, Any]
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Accumulate filtered pages until the requested count is reached."""
        limit = input.size if input.size > 0 else DEFAULT_MAX_KEYS
        if 0 < input.size < DEFAULT_MAX_KEYS:
            params["MaxKeys"] = input.size

        prefixes: List[Dict[str, Any]] = []
        objects: List[Dict[str, Any]] = []
        while True:
            check_cancelled(input.cancel_event, "list")
            resp = self.client.list_objects_v2(**params)
            for cp in resp.get("CommonPrefixes", []):
                if len(prefixes) + len(objects) >= limit:
                    break
                if input.filter in cp["Prefix"]:
                    prefixes.append(cp)
            for obj in resp.get("Contents", []):
                if len(prefixes) + len(objects) >= limit:
                    break
                if input.filter in obj["Key"]:
                    objects.append(obj)

            token = resp.get("NextContinuationToken")
            if not token or len(prefixes) + len(objects) >= limit:
                break
            params["ContinuationToken"] = token
        return prefixes, objects

    def get_object(self, input: GetObjectInput) -> BinaryIO:
        """Read an object; the range expression is passed through unparsed."""
        params = {"Bucket": self.config.bucket, "Key": to_key(input.path.path)}
        if input.range:
            params["Range"] = input.range
        with _translate_errors(input.path.path):
            resp = self.client.get_object(**params)
        return resp["Body"]

    def put_object(self, input: PutObjectInput) -> FileOperationOutput:
        key = to_key(input.dest.path)
        source = input.source
        kind = source.validate()
        if kind == "filepath" and not os.path.isfile(source.filepath.path):
            raise ObjectNotFoundError(source.filepath.path)

        with source.open() as reader, _translate_errors(input.dest.path):
            if input.multipart:
                transfer_config = (
                    TransferConfig(multipart_chunksize=input.part_size)
                    if input.part_size > 0
                    else TransferConfig()
                )
                self.client.upload_fileobj(
                    reader, self.config.bucket, key, Config=transfer_config
                )
                resp = self.client.head_object(Bucket=self.config.bucket, Key=key)
            else:
                params = {"Bucket": self.config.bucket, "Key": key, "Body": reader}
                if source.content_length is not None:
                    params["ContentLength"] = source.content_length
                resp = self.client.put_object(**params)

        logger.info(f"Uploaded s3://{self.config.bucket}/{key}")
        return FileOperationOutput(etag=resp["ETag"])

    def copy_object(self, input: CopyObjectInput) -> None:
        """Server side copy; objects over the copy threshold are copied in parts."""
        info = self.get_object_info(input.src)
        if info.is_dir:
            raise InvalidInputError(f"Cannot copy a prefix: {input.src.path}")

        src_key = to_key(input.src.path)
        dest_key = to_key(input.dest.path)
        if info.size < self.config.copy_threshold:
            check_cancelled(input.cancel_event, "copy")
            with _translate_errors(input.src.path):
                self.client.copy_object(
                    Bucket=self.config.bucket,
                    CopySource=f"{self.resource_name()}/{src_key}",
                    Key=dest_key,
                )
            if input.progress:
                input.progress(ProgressData(index=0, max=1, value=dest_key))
        else:
            self._copy_parts(src_key, dest_key, info.size, input.progress, input.cancel_event)

    def _copy_parts(
        self,
        src_key: str,
        dest_key: str,
        file_size: int,
        progress: Optional[ProgressFunction] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        source = f"{self.resource_name()}/{src_key}"
        chunk_size = self.config.copy_chunk_size

        with _translate_errors(dest_key):
            create_output = self.client.create_multipart_upload(
                Bucket=self.config.bucket, Key=dest_key
            )
        upload_id = (create_output or {}).get("UploadId")
        if not upload_id:
            raise MultipartCopyError("No upload id found in start upload request")

        num_parts = math.ceil(file_size / chunk_size)
        logger.info(f"Will attempt copy in {num_parts} parts to {dest_key}")

        parts = []
        for part_number, start in enumerate(range(0, file_size, chunk_size), start=1):
            copy_range = build_copy_source_range(start, file_size, chunk_size)
            try:
                check_cancelled(cancel_event, "copy")
                part_resp = self.client.upload_part_copy(
                    Bucket=self.config.bucket,
                    CopySource=source,
                    CopySourceRange=copy_range,
                    Key=dest_key,
                    PartNumber=part_number,
                    UploadId=upload_id,
                )
                etag = part_resp["CopyPartResult"]["ETag"].strip('"')
            except OperationCancelledError:
                self._abort_upload(dest_key, upload_id)
                raise
            except Exception as e:
                self._abort_upload(dest_key, upload_id)
                raise MultipartCopyError(
                    f"Error copying part {part_number}: {e}",
                    details={"upload_id": upload_id, "part_number": part_number},
                ) from e

            parts.append({"ETag": etag, "PartNumber": part_number})
            if progress:
                progress(ProgressData(index=part_number - 1, max=num_parts, value=copy_range))
            if part_number % 50 == 0:
                logger.info(f"Completed part {part_number} of {num_parts} to {dest_key}")

        try:
            self.client.complete_multipart_upload(
                Bucket=self.config.bucket,
                Key=dest_key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except Exception as e:
            self._abort_upload(dest_key, upload_id)
            raise MultipartCopyError(
                f"Error completing copy: {e}", details={"upload_id": upload_id}
            ) from e
        logger.info(f"Finished copy of {src_key} to {dest_key}")

    def _abort_upload(self, key: str, upload_id: str) -> None:
        """Abort a multipart session; failures are logged, never raised."""
        logger.warning(f"Attempting to abort upload {upload_id} to {key}")
        try:
            self.client.abort_multipart_upload(
                Bucket=self.config.bucket, Key=key, UploadId=upload_id
            )
        except (ClientError, *_CONNECTION_ERRORS) as e:
            logger.error(f"Failed to abort upload {upload_id}: {e}")

    def initialize_object_upload(self, config: UploadConfig) -> UploadResult:
        key = to_key(config.object_path)
        with _translate_errors(config.object_path):
            resp = self.client.create_multipart_upload(Bucket=self.config.bucket, Key=key)
        logger.info(f"Initialized upload {resp['UploadId']} to {key}")
        return UploadResult(id=resp["UploadId"])

    def write_chunk(self, config: UploadConfig) -> UploadResult:
        """Upload one part; chunk ids are zero based, part numbers one based."""
        with _translate_errors(config.object_path, config.upload_id):
            resp = self.client.upload_part(
                Body=config.data,
                Bucket=self.config.bucket,
                Key=to_key(config.object_path),
                PartNumber=config.chunk_id + 1,
                UploadId=config.upload_id,
                ContentLength=len(config.data),
            )
        return UploadResult(id=resp["ETag"], write_size=len(config.data))

    def complete_object_upload(
        self, config: CompletedObjectUploadConfig
    ) -> FileOperationOutput:
        parts = [
            {"ETag": etag, "PartNumber": i + 1}
            for i, etag in enumerate(config.chunk_upload_ids)
        ]
        with _translate_errors(config.object_path, config.upload_id):
            resp = self.client.complete_multipart_upload(
                Bucket=self.config.bucket,
                Key=to_key(config.object_path),
                UploadId=config.upload_id,
                MultipartUpload={"Parts": parts},
            )
        logger.info(f"Completed upload {config.upload_id} to {config.object_path}")
        return FileOperationOutput(etag=resp.get("ETag", ""))

    def delete_objects(self, input: DeleteObjectInput) -> List[Exception]:
        """Delete keys and prefixes, flushing keys in batches of at most 1000."""
        errors: List[Exception] = []
        buffer: List[str] = []

        def queue_key(path: str, info: ObjectInfo) -> None:
            buffer.append(info.name)
            if len(buffer) >= MAX_DELETE_BATCH_SIZE:
                errors.extend(self._flush_deletes(buffer))
                buffer.clear()

        for index, path in enumerate(input.paths.all_paths()):
            check_cancelled(input.cancel_event, "delete")
            try:
                info = self.get_object_info(Location(path=path))
            except ObjectNotFoundError:
                logger.debug(f"Skipping delete of missing path {path}")
                continue
            except (FileStoreError, ClientError) as e:
                logger.error(f"Error getting delete object info for {path}: {e}")
                errors.append(e)
                continue

            if info.is_dir:
                try:
                    errors.extend(
                        self._walk(
                            dir_prefix(info.name),
                            queue_key,
                            progress=input.progress,
                            error_policy=ErrorPolicy.ABORT,
                            cancel_event=input.cancel_event,
                            suppress_continuation=True,
                            page_size=MAX_DELETE_BATCH_SIZE,
                        )
                    )
                except OperationCancelledError:
                    raise
                except (FileStoreError, ClientError) as e:
                    logger.error(f"Error expanding prefix {path} for delete: {e}")
                    errors.append(e)
            else:
                buffer.append(info.name)
                if input.progress:
                    input.progress(ProgressData(index=index, max=-1, value=info))

            if buffer:
                errors.extend(self._flush_deletes(buffer))
                buffer.clear()
        return errors

    def _flush_deletes(self, keys: List[str]) -> List[Exception]:
        if not keys:
            return []
        logger.info(f"Deleting batch of {len(keys)} objects from {self.config.bucket}")
        try:
            resp = self.client.delete_objects(
                Bucket=self.config.bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
            )
        except (ClientError, *_CONNECTION_ERRORS) as e:
            logger.error(f"Error in batch delete operation: {e}")
            return [e]

        errors: List[Exception] = []
        for e in resp.get("Errors", []):
            error = BatchDeleteError(
                e.get("Key", ""),
                e.get("Code", "Unknown"),
                e.get("Message", "Unknown delete error"),
            )
            logger.error(f"Error in batch delete operation: {error}")
            errors.append(error)
        return errors

    def walk(self, input: WalkInput, visitor: VisitFunction) -> List[Exception]:
        return self._walk(
            to_key(input.path.path),
            visitor,
            progress=input.progress,
            error_policy=input.error_policy,
            cancel_event=input.cancel_event,
        )

    def _walk(
        self,
        prefix: str,
        visitor: VisitFunction,
        progress: Optional[ProgressFunction] = None,
        error_policy: ErrorPolicy = ErrorPolicy.CONTINUE,
        cancel_event: Optional[threading.Event] = None,
        suppress_continuation: bool = False,
        page_size: Optional[int] = None,
    ) -> List[Exception]:
        """List every object under prefix with no delimiter.

        With suppress_continuation each page is requested from the start of
        the prefix again, so the visitor must remove what it was given.
        """
        params: Dict[str, Any] = {
            "Bucket": self.config.bucket,
            "Prefix": prefix,
            "Delimiter": "",
            "MaxKeys": page_size or self.max_keys,
        }
        errors: List[Exception] = []
        count = 0
        previous_first_key = None
        while True:
            check_cancelled(cancel_event, "walk")
            with _translate_errors(prefix):
                resp = self.client.list_objects_v2(**params)
            contents = resp.get("Contents", [])

            if suppress_continuation and contents:
                first_key = contents[0]["Key"]
                if first_key == previous_first_key:
                    error = FileStoreError(
                        f"Listing under {prefix} did not advance past {first_key}",
                        code="WALK_STALLED",
                    )
                    logger.error(str(error))
                    errors.append(error)
                    break
                previous_first_key = first_key

            for obj in contents:
                info = ObjectInfo(
                    name=obj["Key"],
                    size=obj.get("Size", 0),
                    modified=obj.get("LastModified"),
                    etag=obj.get("ETag"),
                )
                try:
                    visitor("/" + obj["Key"], info)
                except Exception as e:
                    if error_policy == ErrorPolicy.ABORT:
                        raise
                    logger.error(f"Visitor function error on {obj['Key']}: {e}")
                    errors.append(e)
                if progress:
                    progress(ProgressData(index=count, max=-1, value=info))
                count += 1

            if not resp.get("IsTruncated"):
                break
            if not suppress_continuation:
                params["ContinuationToken"] = resp["NextContinuationToken"]
        return errors

    def get_presigned_url(self, path: Location, days: int) -> str:
        """Issue a time limited read URL signed by the backend."""
        with _translate_errors(path.path):
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.config.bucket, "Key": to_key(path.path)},
                ExpiresIn=days * 24 * 60 * 60,
            )

    def set_object_public(self, path: Location) -> str:
        """Apply a public-read ACL and return the object's public URL."""
        key = to_key(path.path)
        with _translate_errors(path.path):
            self.client.put_object_acl(
                Bucket=self.config.bucket, Key=key, ACL="public-read"
            )
        url = f"https://{self.config.bucket}.s3.amazonaws.com/{key}"
        logger.info(f"Set public-read ACL on {url}")
        return url


__all__ = ["S3FileStore", "MAX_DELETE_BATCH_SIZE", "build_copy_source_range"]
