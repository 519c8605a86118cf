"""Filestore: one file store contract over local disks and S3 compatible buckets."""

__version__ = "0.1.0"
