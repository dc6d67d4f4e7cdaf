import gzip
import itertools
import unittest
from unittest.mock import MagicMock, Mock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

import athena.sql.s3fetch.downloader as downloader
from athena.sql.exc import DownloadError, OperationalError
from athena.sql.utils import S3Location


def create_mock_s3_client(objects):
    """Create a mock S3 client serving ``objects``, a dict of (bucket, key) -> bytes"""

    def get_object(Bucket, Key):
        if (Bucket, Key) not in objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        body = MagicMock()
        body.read.return_value = objects[(Bucket, Key)]
        return {"Body": body}

    s3_client = Mock()
    s3_client.get_object.side_effect = get_object
    return s3_client


class DownloaderTests(unittest.TestCase):
    """
    Unit tests for checking downloader logic.
    """

    def test_run_returns_object_data(self):
        s3_client = create_mock_s3_client({("bucket", "key.csv"): b"data"})
        handler = downloader.ResultObjectDownloadHandler(s3_client)

        result = handler.run("bucket", "key.csv")

        self.assertEqual(result.data, b"data")
        self.assertEqual(result.bucket, "bucket")
        self.assertEqual(result.key, "key.csv")
        s3_client.get_object.assert_called_once_with(Bucket="bucket", Key="key.csv")

    def test_run_closes_body(self):
        body = MagicMock()
        body.read.return_value = b"x"
        s3_client = Mock()
        s3_client.get_object.return_value = {"Body": body}

        downloader.ResultObjectDownloadHandler(s3_client).run("bucket", "key")

        body.close.assert_called_once()

    def test_run_decompresses_gzip(self):
        s3_client = create_mock_s3_client(
            {("bucket", "part.gz"): gzip.compress(b"a\x01b\n")}
        )
        handler = downloader.ResultObjectDownloadHandler(s3_client)

        result = handler.run("bucket", "part.gz", gzip_compressed=True)

        self.assertEqual(result.data, b"a\x01b\n")

    def test_run_missing_object_raises_download_error(self):
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client({}))

        with self.assertRaises(DownloadError) as context:
            handler.run("bucket", "missing")

        self.assertEqual(context.exception.context, {"bucket": "bucket", "key": "missing"})
        self.assertIsInstance(context.exception.__cause__, ClientError)
        self.assertIsInstance(context.exception, OperationalError)

    def test_run_connection_error_raises_download_error(self):
        s3_client = Mock()
        s3_client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")
        handler = downloader.ResultObjectDownloadHandler(s3_client)

        with self.assertRaises(DownloadError):
            handler.run("bucket", "key")

    def test_run_corrupt_gzip_raises_download_error(self):
        s3_client = create_mock_s3_client({("bucket", "part.gz"): b"not gzip"})
        handler = downloader.ResultObjectDownloadHandler(s3_client)

        with self.assertRaises(DownloadError) as context:
            handler.run("bucket", "part.gz", gzip_compressed=True)

        self.assertIn("Failed to decompress", context.exception.message)

    @patch("time.time")
    def test_slow_large_download_logs_warning(self, mock_time):
        mock_time.side_effect = itertools.chain([1000], itertools.repeat(1100))
        s3_client = create_mock_s3_client({("bucket", "big"): b"x" * (2 * 1024 * 1024)})
        handler = downloader.ResultObjectDownloadHandler(s3_client)

        with self.assertLogs("athena.sql.s3fetch.downloader", level="WARNING") as logs:
            handler.run("bucket", "big")

        self.assertIn("slower than threshold", logs.output[0])


class RecordParsingTests(unittest.TestCase):
    def test_delimited_record(self):
        self.assertEqual(
            downloader.parse_delimited_records(b"a\x01b\x01c\n"), [["a", "b", "c"]]
        )

    def test_empty_line_is_one_empty_field(self):
        self.assertEqual(downloader.parse_delimited_records(b"\n"), [[""]])
        self.assertEqual(
            downloader.parse_delimited_records(b"a\n\nb\n"), [["a"], [""], ["b"]]
        )

    def test_trailing_delimiter_yields_empty_field(self):
        self.assertEqual(downloader.parse_delimited_records(b"a\x01\n"), [["a", ""]])

    def test_carriage_return_is_dropped(self):
        self.assertEqual(
            downloader.parse_delimited_records(b"a\x01b\r\nc\x01d\r\n"),
            [["a", "b"], ["c", "d"]],
        )

    def test_missing_final_newline(self):
        self.assertEqual(
            downloader.parse_delimited_records(b"a\nb"), [["a"], ["b"]]
        )

    def test_no_quoting(self):
        self.assertEqual(
            downloader.parse_delimited_records(b'"a,b"\x01c'), [['"a,b"', "c"]]
        )

    def test_empty_object(self):
        self.assertEqual(downloader.parse_delimited_records(b""), [])

    def test_manifest_ignores_blank_lines(self):
        manifest = b"s3://bucket/t1\n\n  \ns3://bucket/t2\n"
        self.assertEqual(
            downloader.parse_manifest(manifest), ["s3://bucket/t1", "s3://bucket/t2"]
        )

    def test_csv_records_skip_header(self):
        data = b'"a","b"\n"1","x,y"\n"2",""\n'
        self.assertEqual(
            downloader.parse_csv_records(data), [["1", "x,y"], ["2", ""]]
        )

    def test_csv_records_keep_header(self):
        self.assertEqual(
            downloader.parse_csv_records(b'"a"\n"1"\n', skip_header=False),
            [["a"], ["1"]],
        )

    def test_csv_records_with_embedded_newline(self):
        data = b'"a"\n"line1\nline2"\n'
        self.assertEqual(downloader.parse_csv_records(data), [["line1\nline2"]])


class FetchResultRowsTests(unittest.TestCase):
    def setUp(self):
        self.location = S3Location.parse("s3://bucket/results/")

    def test_fetch_gzip_result_rows_in_manifest_order(self):
        objects = {
            ("bucket", "results/tables/qid-manifest.csv"): (
                b"s3://bucket/results/tables/qid/t1\ns3://bucket/results/tables/qid/t2\n"
            ),
            ("bucket", "results/tables/qid/t1"): gzip.compress(
                b"1\x01a\n2\x01b\n3\x01c\n"
            ),
            ("bucket", "results/tables/qid/t2"): gzip.compress(b"4\x01d\n5\x01e\n"),
        }
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        rows = downloader.fetch_gzip_result_rows(handler, self.location, "qid")

        self.assertEqual(len(rows), 5)
        self.assertEqual([row[0] for row in rows], ["1", "2", "3", "4", "5"])

    def test_fetch_gzip_result_rows_relative_manifest_entries(self):
        objects = {
            ("bucket", "results/tables/qid-manifest.csv"): b"tables/qid/t1\n",
            ("bucket", "results/tables/qid/t1"): gzip.compress(b"x\n"),
        }
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        rows = downloader.fetch_gzip_result_rows(handler, self.location, "qid")

        self.assertEqual(rows, [["x"]])

    def test_fetch_gzip_result_rows_empty_manifest(self):
        objects = {("bucket", "results/tables/qid-manifest.csv"): b""}
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        self.assertEqual(
            downloader.fetch_gzip_result_rows(handler, self.location, "qid"), []
        )

    def test_fetch_gzip_result_rows_missing_object(self):
        objects = {
            ("bucket", "results/tables/qid-manifest.csv"): b"s3://bucket/gone\n",
        }
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        with self.assertRaises(DownloadError) as context:
            downloader.fetch_gzip_result_rows(handler, self.location, "qid")

        self.assertEqual(context.exception.context["key"], "gone")

    def test_fetch_csv_result_rows(self):
        objects = {("bucket", "results/qid.csv"): b'"n"\n"1"\n"2"\n'}
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        rows = downloader.fetch_csv_result_rows(handler, self.location, "qid")

        self.assertEqual(rows, [["1"], ["2"]])

    def test_fetch_csv_result_rows_invalid_utf8(self):
        objects = {("bucket", "results/qid.csv"): b"\xff\xfe\n"}
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        with self.assertRaises(DownloadError):
            downloader.fetch_csv_result_rows(handler, self.location, "qid")

    def test_fetch_gzip_result_rows_invalid_utf8(self):
        objects = {
            ("bucket", "results/tables/qid-manifest.csv"): b"tables/qid/t1\n",
            ("bucket", "results/tables/qid/t1"): gzip.compress(b"caf\xe9\x01x\n"),
        }
        handler = downloader.ResultObjectDownloadHandler(create_mock_s3_client(objects))

        with self.assertRaises(DownloadError) as context:
            downloader.fetch_gzip_result_rows(handler, self.location, "qid")

        self.assertEqual(
            context.exception.context,
            {"bucket": "bucket", "key": "results/tables/qid/t1"},
        )


class S3LocationTests(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(
            S3Location.parse("s3://bucket/a/b/"), S3Location("bucket", "a/b")
        )
        self.assertEqual(S3Location.parse("s3://bucket"), S3Location("bucket", ""))

    def test_key(self):
        self.assertEqual(S3Location("bucket", "a").key("q.csv"), "a/q.csv")
        self.assertEqual(S3Location("bucket", "").key("q.csv"), "q.csv")

    def test_parse_rejects_other_schemes(self):
        from athena.sql.exc import ConfigurationError

        for uri in ["", "https://bucket/x", "s3://", "bucket/x"]:
            with self.subTest(uri=uri):
                with self.assertRaises(ConfigurationError):
                    S3Location.parse(uri)
