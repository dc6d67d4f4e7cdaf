from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional, TYPE_CHECKING, Tuple

import logging

try:
    import pyarrow
except ImportError:
    pyarrow = None

if TYPE_CHECKING:
    from athena.sql.backend.athena_backend import AthenaBackend
from athena.sql.backend.types import ResultSetState
from athena.sql.context import ResolvedQueryContext
from athena.sql.conversion import SqlType, SqlTypeConverter
from athena.sql.ctas import CtasRewrite
from athena.sql.exc import (
    DataError,
    InterfaceError,
    NotSupportedError,
    ProgrammingError,
)
from athena.sql.s3fetch.downloader import (
    ResultObjectDownloadHandler,
    fetch_csv_result_rows,
    fetch_gzip_result_rows,
)
from athena.sql.s3fetch.fetch_group import run_concurrently
from athena.sql.types import ResultMode, Row
from athena.sql.utils import RowQueue, S3Location

logger = logging.getLogger(__name__)

# Hive writes NULL as \N in TEXTFILE tables
HIVE_NULL = "\\N"


class ResultSet(ABC):
    """
    Abstract base class for the result sets of the three result modes.

    Subclasses provide raw rows of strings; this class converts them to ``Row``
    objects using the column types in ``description`` and tracks the fetch state.
    """

    def __init__(
        self,
        backend: AthenaBackend,
        query_execution_id: str,
        context: ResolvedQueryContext,
        arraysize: int,
        description: Optional[List[Tuple]] = None,
    ):
        """
        Parameters:
            :param backend: The backend used to read the results
            :param query_execution_id: The succeeded execution the results belong to
            :param context: The resolved settings of the statement
            :param arraysize: The default number of rows fetchmany returns (PEP-249)
            :param description: Column description, if already known
        """
        self.backend = backend
        self.query_execution_id = query_execution_id
        self.context = context
        self.arraysize = arraysize
        self.description = description
        self.results = RowQueue()
        self.state = ResultSetState.UNINITIALIZED
        self._next_row_index = 0

    def __iter__(self):
        while True:
            row = self.fetchone()
            if row:
                yield row
            else:
                break

    @property
    def rownumber(self) -> int:
        return self._next_row_index

    @property
    def result_mode(self) -> ResultMode:
        return self.context.result_mode

    @property
    def column_names(self) -> List[str]:
        return [column[0] for column in self.description or []]

    def column_type_name(self, index: int) -> str:
        """Type name of the column at ``index``, as reported by the result's metadata."""
        return self.description[index][1]

    def _check_not_closed(self):
        if self.state == ResultSetState.CLOSED:
            raise InterfaceError(
                "Attempting to fetch from a closed result set",
                {"query-execution-id": self.query_execution_id},
            )

    def _normalize_value(self, value: Optional[str], type_name: str) -> Optional[str]:
        """Map the result mode's representation of NULL to None."""
        return value

    def _convert_rows(self, raw_rows: List[List[Optional[str]]]) -> List[Row]:
        ResultRow = Row(*self.column_names)
        description = self.description or []
        converted = []
        for raw_row in raw_rows:
            if len(raw_row) > len(description):
                raise DataError(
                    f"Result row has {len(raw_row)} fields but the result has "
                    f"{len(description)} columns",
                    {"query-execution-id": self.query_execution_id},
                )
            values = []
            for index, value in enumerate(raw_row):
                _, type_name, _, _, precision, scale, _ = description[index]
                value = self._normalize_value(value, type_name)
                values.append(
                    SqlTypeConverter.convert_value(value, type_name, precision, scale)
                )
            converted.append(ResultRow(*values))
        return converted

    def _convert_rows_to_arrow_table(self, rows: List[Row]) -> "pyarrow.Table":
        if pyarrow is None:
            raise NotSupportedError(
                "pyarrow is required for Arrow results, install athena-sql-connector[pyarrow]"
            )
        names = self.column_names
        columns: List[List[Any]] = [[] for _ in names]
        for row in rows:
            for index, value in enumerate(row):
                columns[index].append(value)
        return pyarrow.Table.from_arrays(
            [pyarrow.array(column) for column in columns], names=names
        )

    @abstractmethod
    def _next_raw_rows(self, size: int) -> List[List[Optional[str]]]:
        """Return up to ``size`` unconverted rows."""
        pass

    @abstractmethod
    def _remaining_raw_rows(self) -> List[List[Optional[str]]]:
        """Return all unconverted rows not yet returned."""
        pass

    def _take(self, size: Optional[int]) -> List[Row]:
        self._check_not_closed()
        if size is None:
            raw_rows = self._remaining_raw_rows()
        else:
            raw_rows = self._next_raw_rows(size)
        self._next_row_index += len(raw_rows)
        if size is None or len(raw_rows) < size:
            self.state = ResultSetState.EXHAUSTED
        return self._convert_rows(raw_rows)

    def fetchone(self) -> Optional[Row]:
        """
        Fetch the next row of a query result set, returning a single sequence,
        or None when no more data is available.
        """
        rows = self._take(1)
        return rows[0] if rows else None

    def fetchmany(self, size: int) -> List[Row]:
        """
        Fetch the next set of rows of a query result, returning a list of rows.

        An empty sequence is returned when no more rows are available.
        """
        if size < 0:
            raise ValueError(f"size argument for fetchmany is {size} but must be >= 0")
        return self._take(size)

    def fetchall(self) -> List[Row]:
        """Fetch all (remaining) rows of a query result, returning them as a list of rows."""
        return self._take(None)

    def fetchmany_arrow(self, size: int) -> "pyarrow.Table":
        """Fetch the next set of rows as an Arrow table."""
        return self._convert_rows_to_arrow_table(self.fetchmany(size))

    def fetchall_arrow(self) -> "pyarrow.Table":
        """Fetch all remaining rows as an Arrow table."""
        return self._convert_rows_to_arrow_table(self.fetchall())

    def close(self) -> None:
        """
        Close the result set and release its buffered rows.

        Closing twice is a no-op. Executions leave nothing to release on the server
        once they succeeded, so no request is issued.
        """
        if self.state == ResultSetState.CLOSED:
            return
        self.results.close()
        self.state = ResultSetState.CLOSED


class ApiResultSet(ResultSet):
    """Reads results page by page through the GetQueryResults API."""

    def __init__(
        self,
        backend: AthenaBackend,
        query_execution_id: str,
        context: ResolvedQueryContext,
        arraysize: int,
        skip_header: bool,
    ):
        """
        Parameters:
            :param skip_header: Drop the first row of the first page. The API repeats
                the column names there for every statement except DDL.
        """
        super().__init__(backend, query_execution_id, context, arraysize)
        self._skip_header = skip_header
        self._next_token: Optional[str] = None
        self.has_more_rows = True

        self.state = ResultSetState.INITIALIZING
        self._fill_results_buffer()
        self.state = ResultSetState.READY

    def _fill_results_buffer(self):
        rows, next_token, description = self.backend.fetch_results(
            self.query_execution_id, next_token=self._next_token
        )
        if self.description is None:
            self.description = description
            if self._skip_header and rows:
                rows = rows[1:]
        self.results = RowQueue(rows)
        self._next_token = next_token
        self.has_more_rows = next_token is not None

    def _next_raw_rows(self, size: int) -> List[List[Optional[str]]]:
        rows = self.results.next_n_rows(size)
        while len(rows) < size and self.has_more_rows:
            self._fill_results_buffer()
            rows += self.results.next_n_rows(size - len(rows))
        return rows

    def _remaining_raw_rows(self) -> List[List[Optional[str]]]:
        rows = self.results.remaining_rows()
        while self.has_more_rows:
            self._fill_results_buffer()
            rows += self.results.remaining_rows()
        return rows


class _MaterializedResultSet(ResultSet):
    """Result set whose rows are all fetched when it is created."""

    def _next_raw_rows(self, size: int) -> List[List[Optional[str]]]:
        return self.results.next_n_rows(size)

    def _remaining_raw_rows(self) -> List[List[Optional[str]]]:
        return self.results.remaining_rows()


class DownloadResultSet(_MaterializedResultSet):
    """
    Reads the CSV result file the query engine writes to the output location.

    The file and the column metadata are fetched concurrently under the statement's
    timeout. CSV does not distinguish NULL from the empty string, so empty fields of
    non-string columns are read as NULL.
    """

    def __init__(
        self,
        backend: AthenaBackend,
        query_execution_id: str,
        context: ResolvedQueryContext,
        arraysize: int,
        output_location: str,
    ):
        super().__init__(backend, query_execution_id, context, arraysize)
        location = S3Location.parse(output_location)
        handler = ResultObjectDownloadHandler(backend.s3_client)

        self.state = ResultSetState.INITIALIZING
        rows, (_, _, description) = run_concurrently(
            [
                lambda: fetch_csv_result_rows(handler, location, query_execution_id),
                lambda: backend.fetch_results(query_execution_id, max_results=1),
            ],
            timeout=context.timeout,
        )
        self.description = description
        self.results = RowQueue(rows)
        self.state = ResultSetState.READY
        logger.debug(
            "Downloaded %d rows of query execution %s", len(rows), query_execution_id
        )

    def _normalize_value(self, value: Optional[str], type_name: str) -> Optional[str]:
        if value == "" and not SqlType.is_string(type_name):
            return None
        return value


class GzipDownloadResultSet(_MaterializedResultSet):
    """
    Reads the gzip compressed TEXTFILE objects of a temporary CTAS table.

    The manifest driven download and the table's catalog metadata are fetched
    concurrently under the statement's timeout. The temporary table is dropped
    before the result set is returned. If materializing fails the table is still
    dropped and the materialization error wins; a failing drop after a successful
    materialization is raised.
    """

    def __init__(
        self,
        backend: AthenaBackend,
        query_execution_id: str,
        context: ResolvedQueryContext,
        arraysize: int,
        output_location: str,
        ctas: CtasRewrite,
    ):
        super().__init__(backend, query_execution_id, context, arraysize)
        self.table_name = ctas.table_name

        self.state = ResultSetState.INITIALIZING
        try:
            location = S3Location.parse(output_location)
            handler = ResultObjectDownloadHandler(backend.s3_client)
            rows, description = run_concurrently(
                [
                    lambda: fetch_gzip_result_rows(handler, location, query_execution_id),
                    lambda: backend.get_table_columns(context.catalog, ctas.table_name),
                ],
                timeout=context.timeout,
            )
        except Exception:
            self._cleanup_after_failure(ctas)
            raise

        ctas.cleanup()

        self.description = description
        self.results = RowQueue(rows)
        self.state = ResultSetState.READY
        logger.debug(
            "Downloaded %d rows of temporary table %s", len(rows), self.table_name
        )

    @staticmethod
    def _cleanup_after_failure(ctas: CtasRewrite):
        try:
            ctas.cleanup()
        except Exception as e:
            logger.warning(
                "Failed to drop temporary table %s after a failed fetch: %s",
                ctas.table_name,
                e,
            )

    def _normalize_value(self, value: Optional[str], type_name: str) -> Optional[str]:
        if value == HIVE_NULL:
            return None
        return value


def create_result_set(
    backend: AthenaBackend,
    query_execution_id: str,
    context: ResolvedQueryContext,
    output_location: str,
    arraysize: int,
    ctas: Optional[CtasRewrite] = None,
) -> ResultSet:
    """Build the result set of a succeeded execution for the statement's result mode."""
    if context.result_mode == ResultMode.GZIP_DOWNLOAD:
        if ctas is None:
            raise ProgrammingError(
                "GZIP_DOWNLOAD results need a temporary table",
                {"query-execution-id": query_execution_id},
            )
        return GzipDownloadResultSet(
            backend, query_execution_id, context, arraysize, output_location, ctas
        )
    if context.result_mode == ResultMode.DOWNLOAD:
        return DownloadResultSet(
            backend, query_execution_id, context, arraysize, output_location
        )
    return ApiResultSet(
        backend,
        query_execution_id,
        context,
        arraysize,
        skip_header=not context.is_ddl,
    )
