"""Blob gateway: GridFS-backed object storage with an S3 mirror."""

__version__ = "0.1.0"
