"""Backend independent helpers."""

from filestore.utils.archive import count_objects, file_exists, unzip_object, zip_directory
from filestore.utils.retry import Retryer
from filestore.utils.signing import presign_object, verify_signed_object

__all__ = [
    "Retryer",
    "presign_object",
    "verify_signed_object",
    "file_exists",
    "count_objects",
    "zip_directory",
    "unzip_object",
]
