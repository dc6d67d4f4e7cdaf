from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from athena.sql.client import Cursor
    from athena.sql.result_set import ResultSet

from athena.sql.backend.types import QueryExecution, QueryState
from athena.sql.context import ResolvedQueryContext
from athena.sql.conversion import SqlType
from athena.sql.ctas import CtasRewrite, should_create_ctas_table, wrap_as_ctas
from athena.sql.exc import (
    ConfigurationError,
    ExecutionFailedError,
    MetadataError,
    QueryCancelledError,
    RequestError,
    SubmissionError,
)
from athena.sql.types import ResultMode

logger = logging.getLogger(__name__)

DEFAULT_CATALOG = "AwsDataCatalog"


class AthenaBackend:
    """
    Runs statements on Athena and reads what they produce.

    This class owns the query lifecycle: submission, polling until a terminal state,
    stopping executions, and the remote reads the result sets are built from
    (result pages, table metadata, workgroup settings). Result objects are read
    from the object store through ``s3_client``.
    """

    # Upper bound for the best-effort stop issued when a wait is interrupted
    STOP_QUERY_TIMEOUT_SECONDS = 10
    # GetQueryResults accepts at most 1000 rows per page
    RESULT_PAGE_SIZE = 1000

    def __init__(
        self,
        athena_client,
        s3_client,
        database: str,
        workgroup: str,
        output_location: str,
        poll_interval: float,
    ):
        self.athena_client = athena_client
        self.s3_client = s3_client
        self.database = database
        self.workgroup = workgroup
        self.output_location = output_location
        self.poll_interval = poll_interval

    def make_request(self, method: str, error_class=RequestError, **kwargs) -> Dict[str, Any]:
        """
        Call an Athena API method, wrapping client errors in ``error_class``.

        The remote error message is used unchanged as the error message and the
        original exception is chained.
        """
        try:
            return getattr(self.athena_client, method)(**kwargs)
        except ClientError as e:
            error = e.response.get("Error", {})
            raise error_class(
                error.get("Message") or str(e),
                {"method": method, "error-code": error.get("Code")},
            ) from e
        except BotoCoreError as e:
            raise error_class(str(e), {"method": method, "error-code": None}) from e

    # == Query lifecycle ==
    def submit_query(
        self,
        query: str,
        database: Optional[str] = None,
        catalog: Optional[str] = None,
        output_location: Optional[str] = None,
        workgroup: Optional[str] = None,
    ) -> str:
        """
        Start a query execution and return its id.

        Raises:
            SubmissionError: If the query engine rejected the query or its context
        """
        execution_context = {"Database": database or self.database}
        if catalog:
            execution_context["Catalog"] = catalog

        request: Dict[str, Any] = {
            "QueryString": query,
            "QueryExecutionContext": execution_context,
            "WorkGroup": workgroup or self.workgroup,
        }
        output_location = output_location or self.output_location
        if output_location:
            request["ResultConfiguration"] = {"OutputLocation": output_location}

        logger.debug("AthenaBackend.submit_query(query=%s)", query)
        response = self.make_request(
            "start_query_execution", error_class=SubmissionError, **request
        )
        query_execution_id = response["QueryExecutionId"]
        logger.debug("Submitted query execution %s", query_execution_id)
        return query_execution_id

    def get_query_execution(self, query_execution_id: str) -> QueryExecution:
        response = self.make_request(
            "get_query_execution", QueryExecutionId=query_execution_id
        )
        return QueryExecution.from_response(response)

    def get_query_state(self, query_execution_id: str) -> QueryState:
        return self.get_query_execution(query_execution_id).state

    def cancel_query(self, query_execution_id: str) -> None:
        logger.debug("Stopping query execution %s", query_execution_id)
        self.make_request("stop_query_execution", QueryExecutionId=query_execution_id)

    def _stop_query_best_effort(self, query_execution_id: str) -> None:
        """Attempt one stop request, bounded in time. Failures are logged and dropped."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="athena-stop")
        try:
            future = executor.submit(self.cancel_query, query_execution_id)
            future.result(timeout=self.STOP_QUERY_TIMEOUT_SECONDS)
        except Exception as e:
            logger.warning(
                "Failed to stop query execution %s: %s", query_execution_id, e
            )
        finally:
            executor.shutdown(wait=False)

    @staticmethod
    def _interrupt_reason(
        deadline: Optional[float], cancel_event: Optional[threading.Event]
    ) -> Optional[str]:
        if cancel_event is not None and cancel_event.is_set():
            return "cancelled"
        if deadline is not None and time.monotonic() >= deadline:
            return "deadline"
        return None

    def wait_until_query_done(
        self,
        query_execution_id: str,
        poll_interval: Optional[float] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> QueryExecution:
        """
        Poll an execution until it reaches a terminal state.

        Args:
            query_execution_id: The execution to wait for
            poll_interval: Seconds between two status checks, the connection setting if None
            deadline: ``time.monotonic()`` value after which the execution is stopped
            cancel_event: Set by another thread to stop the execution

        Returns:
            QueryExecution: The succeeded execution

        Raises:
            ExecutionFailedError: If the execution failed
            QueryCancelledError: If the execution was cancelled remotely, or the deadline
                passed or the cancel event was set while it was still running. In the
                latter two cases one stop request is sent first.
        """
        if poll_interval is None:
            poll_interval = self.poll_interval

        while True:
            execution = self.get_query_execution(query_execution_id)
            logger.debug(
                "Query execution %s is %s", query_execution_id, execution.state.value
            )

            if execution.state == QueryState.SUCCEEDED:
                return execution
            if execution.state == QueryState.FAILED:
                raise ExecutionFailedError(
                    execution.state_change_reason
                    or f"Query execution {query_execution_id} failed",
                    {
                        "query-execution-id": query_execution_id,
                        "state-change-reason": execution.state_change_reason,
                    },
                )
            if execution.state == QueryState.CANCELLED:
                raise QueryCancelledError(
                    f"Query execution {query_execution_id} was cancelled",
                    {"query-execution-id": query_execution_id, "reason": "remote"},
                )

            reason = self._interrupt_reason(deadline, cancel_event)
            if reason is None:
                wait_seconds = poll_interval
                if deadline is not None:
                    wait_seconds = max(0.0, min(wait_seconds, deadline - time.monotonic()))
                if cancel_event is not None:
                    cancel_event.wait(wait_seconds)
                else:
                    time.sleep(wait_seconds)
                reason = self._interrupt_reason(deadline, cancel_event)

            if reason is not None:
                self._stop_query_best_effort(query_execution_id)
                raise QueryCancelledError(
                    f"Query execution {query_execution_id} was stopped ({reason})",
                    {"query-execution-id": query_execution_id, "reason": reason},
                )

    def run_statement(self, query: str, catalog: Optional[str] = None) -> QueryExecution:
        """Submit a statement and wait for it without a deadline."""
        query_execution_id = self.submit_query(query, catalog=catalog)
        return self.wait_until_query_done(query_execution_id)

    # == Result reads ==
    @staticmethod
    def _column_info_to_description(column: Dict[str, Any]) -> Tuple:
        return (
            column["Name"],
            column.get("Type", ""),
            None,
            None,
            column.get("Precision"),
            column.get("Scale"),
            column.get("Nullable", "UNKNOWN") != "NOT_NULL",
        )

    def fetch_results(
        self,
        query_execution_id: str,
        next_token: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> Tuple[List[List[Optional[str]]], Optional[str], List[Tuple]]:
        """
        Read one page of results.

        Returns:
            The rows of the page (None for NULL values), the token of the next page or
            None, and the column description from the result-set metadata
        """
        request: Dict[str, Any] = {
            "QueryExecutionId": query_execution_id,
            "MaxResults": max_results or self.RESULT_PAGE_SIZE,
        }
        if next_token:
            request["NextToken"] = next_token

        response = self.make_request("get_query_results", **request)
        result_set = response["ResultSet"]
        rows = [
            [datum.get("VarCharValue") for datum in row.get("Data", [])]
            for row in result_set.get("Rows", [])
        ]
        description = [
            self._column_info_to_description(column)
            for column in result_set.get("ResultSetMetadata", {}).get("ColumnInfo", [])
        ]
        return rows, response.get("NextToken"), description

    def get_table_columns(self, catalog: Optional[str], table_name: str) -> List[Tuple]:
        """
        Read the columns of a table from the data catalog.

        Returns:
            The column description. Type names use the catalog vocabulary
            (``string``, ``int``, ``decimal(10,2)`` ...).

        Raises:
            MetadataError: If the metadata could not be read
        """
        catalog = catalog or DEFAULT_CATALOG
        try:
            response = self.make_request(
                "get_table_metadata",
                CatalogName=catalog,
                DatabaseName=self.database,
                TableName=table_name,
            )
        except RequestError as e:
            raise MetadataError(
                e.message,
                {"table": table_name, "database": self.database, "catalog": catalog},
            ) from e

        description = []
        for column in response["TableMetadata"].get("Columns", []):
            type_name = column.get("Type") or ""
            precision, scale = SqlType.parameters(type_name)
            description.append(
                (column["Name"], type_name, None, None, precision, scale, True)
            )
        return description

    def resolve_output_location(self) -> str:
        """Return the configured output location, reading it from the workgroup if unset."""
        if self.output_location:
            return self.output_location

        response = self.make_request("get_work_group", WorkGroup=self.workgroup)
        output_location = (
            response.get("WorkGroup", {})
            .get("Configuration", {})
            .get("ResultConfiguration", {})
            .get("OutputLocation")
        )
        if not output_location:
            raise ConfigurationError(
                f"No output location configured and workgroup {self.workgroup} has none",
                {"setting": "output_location", "value": self.output_location},
            )
        logger.debug(
            "Using output location %s of workgroup %s", output_location, self.workgroup
        )
        self.output_location = output_location
        return output_location

    # == Statement execution ==
    def execute_command(
        self,
        operation: str,
        cursor: Cursor,
        context: ResolvedQueryContext,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResultSet:
        """
        Run a statement and return a result set for it.

        SELECT statements fetched in GZIP_DOWNLOAD mode are rewritten into a CTAS
        statement first. The temporary table is dropped once the result set has
        read its data, or after a failed read, but not if the CTAS statement itself
        did not succeed.
        """
        from athena.sql.result_set import create_result_set

        logger.debug(
            "AthenaBackend.execute_command(operation=%s, result_mode=%s)",
            operation,
            context.result_mode.value,
        )

        output_location = self.output_location
        if context.result_mode != ResultMode.API:
            output_location = self.resolve_output_location()

        ctas: Optional[CtasRewrite] = None
        query = operation
        if should_create_ctas_table(context):
            ctas = wrap_as_ctas(
                operation, lambda statement: self.run_statement(statement, context.catalog)
            )
            query = ctas.query

        deadline = None
        if context.query_timeout is not None:
            deadline = time.monotonic() + context.query_timeout

        query_execution_id = self.submit_query(
            query, catalog=context.catalog, output_location=output_location
        )
        cursor.active_query_execution_id = query_execution_id
        self.wait_until_query_done(
            query_execution_id, deadline=deadline, cancel_event=cancel_event
        )

        return create_result_set(
            backend=self,
            query_execution_id=query_execution_id,
            context=context,
            output_location=output_location,
            arraysize=cursor.arraysize,
            ctas=ctas,
        )
