import csv
import gzip
import io
import logging
import time
import zlib
from dataclasses import dataclass
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from athena.sql.exc import DownloadError
from athena.sql.utils import S3Location

logger = logging.getLogger(__name__)

FIELD_DELIMITER = "\x01"
RECORD_DELIMITER = "\n"


@dataclass
class DownloadedObject:
    """
    Class for a downloaded result object and where it came from.

    Attributes:
        bucket (str): Bucket of the object.
        key (str): Key of the object.
        data (bytes): Object content, decompressed if it was gzip compressed.
    """

    bucket: str
    key: str
    data: bytes


@dataclass
class DownloadableResultSettings:
    """
    Class for settings common to each download.

    Attributes:
        min_download_speed (float): Threshold in MB/s below which to log warning. Default 0.1 MB/s.
    """

    min_download_speed: float = 0.1


class ResultObjectDownloadHandler:
    def __init__(self, s3_client, settings: Optional[DownloadableResultSettings] = None):
        self._s3_client = s3_client
        self.settings = settings or DownloadableResultSettings()

    def run(self, bucket: str, key: str, gzip_compressed: bool = False) -> DownloadedObject:
        """
        Download an object from the object store, decompressing it if requested.

        Raises:
            DownloadError: If the object could not be fetched or decompressed
        """
        logger.debug(
            "ResultObjectDownloadHandler: starting download of s3://%s/%s", bucket, key
        )
        start_time = time.time()

        try:
            response = self._s3_client.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                data = body.read()
            finally:
                body.close()
        except (ClientError, BotoCoreError) as e:
            raise DownloadError(
                str(e),
                {"bucket": bucket, "key": key},
            ) from e

        self._log_download_metrics(bucket, key, len(data), time.time() - start_time)

        if gzip_compressed:
            data = ResultObjectDownloadHandler._decompress_data(data, bucket, key)

        return DownloadedObject(bucket, key, data)

    def _log_download_metrics(
        self, bucket: str, key: str, bytes_downloaded: int, duration_seconds: float
    ):
        """Log download speed metrics at DEBUG/WARN levels."""
        if duration_seconds <= 0:
            return
        speed_mbps = (float(bytes_downloaded) / (1024 * 1024)) / duration_seconds

        logger.debug(
            "Result object download completed: %.4f MB/s, %d bytes in %.3fs from s3://%s/%s",
            speed_mbps,
            bytes_downloaded,
            duration_seconds,
            bucket,
            key,
        )

        # tiny objects always look slow
        if (
            bytes_downloaded > 1024 * 1024
            and speed_mbps < self.settings.min_download_speed
        ):
            logger.warning(
                "Result object download slower than threshold: %.4f MB/s (threshold: %.1f MB/s) from s3://%s/%s",
                speed_mbps,
                self.settings.min_download_speed,
                bucket,
                key,
            )

    @staticmethod
    def _decompress_data(compressed_data: bytes, bucket: str, key: str) -> bytes:
        """Decompress gzip data, including multi-member files."""
        try:
            return gzip.decompress(compressed_data)
        except (OSError, EOFError, zlib.error) as e:
            raise DownloadError(
                f"Failed to decompress s3://{bucket}/{key}: {e}",
                {"bucket": bucket, "key": key},
            ) from e


def _split_lines(text: str) -> List[str]:
    """
    Split on newlines only, dropping one trailing \\r per line. A final newline does
    not start another line.
    """
    if not text:
        return []
    lines = text.split(RECORD_DELIMITER)
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def parse_manifest(data: bytes) -> List[str]:
    """Return the object locations listed in a CTAS manifest, in listing order."""
    return [
        line.strip()
        for line in _split_lines(data.decode("utf-8"))
        if line.strip()
    ]


def parse_delimited_records(data: bytes) -> List[List[str]]:
    """
    Decode TEXTFILE records: one record per line, fields separated by \\x01, with no
    quoting or escaping. An empty line is a record with one empty field.
    """
    text = data.decode("utf-8")
    return [line.split(FIELD_DELIMITER) for line in _split_lines(text)]


def parse_csv_records(data: bytes, skip_header: bool = True) -> List[List[str]]:
    """Decode a query result CSV file. The first row is the header unless told otherwise."""
    reader = csv.reader(io.StringIO(data.decode("utf-8"), newline=""))
    rows = [row for row in reader]
    if skip_header and rows:
        rows = rows[1:]
    return rows


def fetch_csv_result_rows(
    handler: ResultObjectDownloadHandler, location: S3Location, query_execution_id: str
) -> List[List[str]]:
    """Download and decode ``<output location>/<query execution id>.csv``."""
    key = location.key(f"{query_execution_id}.csv")
    downloaded = handler.run(location.bucket, key)
    try:
        return parse_csv_records(downloaded.data)
    except (UnicodeDecodeError, csv.Error) as e:
        raise DownloadError(
            f"Failed to parse s3://{location.bucket}/{key}: {e}",
            {"bucket": location.bucket, "key": key},
        ) from e


def fetch_gzip_result_rows(
    handler: ResultObjectDownloadHandler, location: S3Location, query_execution_id: str
) -> List[List[str]]:
    """
    Read the CTAS manifest of an execution, then download and decode every data object
    it lists. Objects are fetched one after the other and their rows concatenated in
    listing order.
    """
    manifest_key = location.key(f"tables/{query_execution_id}-manifest.csv")
    manifest = handler.run(location.bucket, manifest_key)
    try:
        object_locations = parse_manifest(manifest.data)
    except UnicodeDecodeError as e:
        raise DownloadError(
            f"Failed to parse manifest s3://{location.bucket}/{manifest_key}: {e}",
            {"bucket": location.bucket, "key": manifest_key},
        ) from e

    logger.debug(
        "Manifest s3://%s/%s lists %d data objects",
        location.bucket,
        manifest_key,
        len(object_locations),
    )

    rows: List[List[str]] = []
    for object_location in object_locations:
        bucket, key = location.resolve(object_location)
        downloaded = handler.run(bucket, key, gzip_compressed=True)
        try:
            rows.extend(parse_delimited_records(downloaded.data))
        except UnicodeDecodeError as e:
            raise DownloadError(
                f"Failed to parse s3://{bucket}/{key}: {e}",
                {"bucket": bucket, "key": key},
            ) from e
    return rows
