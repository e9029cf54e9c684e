"""Flat-store drivers.

``S3ObjectStore`` lives in :mod:`unifs.fs.drivers.s3` and needs the
``s3`` extra (boto3); it is not imported here.
"""

from unifs.fs.drivers.memory import InMemoryObjectStore
from unifs.fs.drivers.sql import SQLObjectStore

__all__ = [
    "InMemoryObjectStore",
    "SQLObjectStore",
]
