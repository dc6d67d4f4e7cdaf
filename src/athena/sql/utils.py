from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, NamedTuple, Optional, Tuple

from athena.sql.exc import ConfigurationError

logger = logging.getLogger(__name__)

S3_SCHEME = "s3://"


class ResultSetQueue(ABC):
    @abstractmethod
    def next_n_rows(self, num_rows: int):
        pass

    @abstractmethod
    def remaining_rows(self):
        pass

    @abstractmethod
    def close(self):
        pass


class RowQueue(ResultSetQueue):
    """
    In-memory buffer of rows fetched in one go.

    Each row is a list of string fields (None for NULL). The buffer is filled once and
    then drained in order by a single consumer.
    """

    def __init__(self, rows: Optional[List[List[Optional[str]]]] = None):
        self.rows = rows or []
        self.cur_row_index = 0

    @property
    def num_rows(self) -> int:
        return len(self.rows)

    def next_n_rows(self, num_rows: int) -> List[List[Optional[str]]]:
        length = min(num_rows, self.num_rows - self.cur_row_index)
        slice = self.rows[self.cur_row_index : self.cur_row_index + length]
        self.cur_row_index += length
        return slice

    def remaining_rows(self) -> List[List[Optional[str]]]:
        slice = self.rows[self.cur_row_index :]
        self.cur_row_index += len(slice)
        return slice

    def close(self):
        self.rows = []
        self.cur_row_index = 0


class S3Location(NamedTuple):
    """A bucket and a key prefix, parsed from an ``s3://bucket/prefix`` URI."""

    bucket: str
    prefix: str

    @classmethod
    def parse(cls, uri: str) -> "S3Location":
        if not uri or not uri.startswith(S3_SCHEME):
            raise ConfigurationError(
                f"Output location must be an s3:// URI, got {uri!r}",
                {"setting": "output_location", "value": uri},
            )
        bucket, _, prefix = uri[len(S3_SCHEME) :].partition("/")
        if not bucket:
            raise ConfigurationError(
                f"Output location has no bucket: {uri!r}",
                {"setting": "output_location", "value": uri},
            )
        return cls(bucket, prefix.strip("/"))

    def key(self, name: str) -> str:
        """Key of ``name`` relative to this prefix."""
        name = name.lstrip("/")
        return f"{self.prefix}/{name}" if self.prefix else name

    def resolve(self, location: str) -> Tuple[str, str]:
        """
        Return the ``(bucket, key)`` of a manifest entry. Full s3:// URIs are used as they
        are, anything else is a key relative to this prefix.
        """
        if location.startswith(S3_SCHEME):
            bucket, _, key = location[len(S3_SCHEME) :].partition("/")
            return bucket, key
        return self.bucket, self.key(location)
