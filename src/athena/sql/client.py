import threading
from typing import List, Optional, Tuple, Union

try:
    import pyarrow
except ImportError:
    pyarrow = None
import logging

import boto3
from botocore.config import Config

from athena.sql import __version__, USER_AGENT_NAME
from athena.sql.exc import (
    InterfaceError,
    NotSupportedError,
    ProgrammingError,
)
from athena.sql.backend.athena_backend import AthenaBackend
from athena.sql.classifier import classify_query
from athena.sql.context import (
    QueryOptions,
    resolve_query_context,
    validate_positive_seconds,
    validate_result_mode,
)
from athena.sql.result_set import ResultSet
from athena.sql.types import ResultMode, Row

logger = logging.getLogger(__name__)

if pyarrow is None:
    logger.warning(
        "[WARN] pyarrow is not installed by default, any arrow specific api "
        "(e.g. fetchmany_arrow) will be disabled. If you need it, please run "
        "pip install pyarrow or pip install athena-sql-connector[pyarrow] to install"
    )

DEFAULT_ARRAY_SIZE = 1000
DEFAULT_DATABASE = "default"
DEFAULT_WORKGROUP = "primary"
DEFAULT_POLL_INTERVAL_SECONDS = 5
DEFAULT_TIMEOUT_SECONDS = 300


class Connection:
    def __init__(
        self,
        database: str = DEFAULT_DATABASE,
        output_location: str = "",
        workgroup: str = DEFAULT_WORKGROUP,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        result_mode: Union[ResultMode, str] = ResultMode.API,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        catalog: str = "",
        query_timeout: Optional[float] = None,
        **kwargs,
    ) -> None:
        """
        Connect to Amazon Athena.

        Parameters:
            :param database: Database statements run in. Defaults to "default".
            :param output_location: `s3://bucket/prefix` the query engine writes results to.
                When empty the location configured on the workgroup is used.
            :param workgroup: Athena workgroup. Defaults to "primary".
            :param poll_interval: Seconds between two status checks of a running query.
            :param result_mode: How results are fetched by default, one of ResultMode or
                "api", "dl", "gzip". Statements other than SELECT always use ResultMode.API.
            :param timeout: Seconds allowed for fetching downloaded results.
            :param catalog: Data catalog statements run in. Empty means the engine's default.
            :param query_timeout: Seconds to wait for an execution before it is stopped.
                None waits until the execution finishes.

        Other Parameters:
            region_name: `str`, optional
                AWS region, passed to boto3.Session
            profile_name: `str`, optional
                Profile of the shared AWS configuration, passed to boto3.Session
            boto3_session: `boto3.Session`, optional
                Session to build the service clients from. Credentials are otherwise
                resolved by boto3's default chain.
            athena_client: optional
                Pre-built Athena client, used instead of creating one
            s3_client: optional
                Pre-built S3 client, used instead of creating one
            _user_agent_entry: `str`, optional
                A custom tag to append to the User-Agent header. This is typically used
                by partners to identify their applications.
        """
        result_mode = validate_result_mode(result_mode)
        poll_interval = validate_positive_seconds(poll_interval, "poll_interval")
        timeout = validate_positive_seconds(timeout, "timeout")
        if query_timeout is not None:
            query_timeout = validate_positive_seconds(query_timeout, "query_timeout")

        if kwargs.get("_user_agent_entry"):
            useragent_header = "{}/{} ({})".format(
                USER_AGENT_NAME, __version__, kwargs.get("_user_agent_entry")
            )
        else:
            useragent_header = "{}/{}".format(USER_AGENT_NAME, __version__)

        athena_client = kwargs.get("athena_client")
        s3_client = kwargs.get("s3_client")
        if athena_client is None or s3_client is None:
            session = kwargs.get("boto3_session") or boto3.Session(
                region_name=kwargs.get("region_name"),
                profile_name=kwargs.get("profile_name"),
            )
            client_config = Config(user_agent_extra=useragent_header)
            if athena_client is None:
                athena_client = session.client("athena", config=client_config)
            if s3_client is None:
                s3_client = session.client("s3", config=client_config)

        self.database = database
        self.workgroup = workgroup
        self.query_defaults = QueryOptions(
            result_mode=result_mode,
            timeout=timeout,
            catalog=catalog,
            query_timeout=query_timeout,
        )
        self.backend = AthenaBackend(
            athena_client=athena_client,
            s3_client=s3_client,
            database=database,
            workgroup=workgroup,
            output_location=output_location,
            poll_interval=poll_interval,
        )
        self._cursors = []  # type: List[Cursor]
        self.open = True

        logger.info(
            "Connected to Athena: database=%s, workgroup=%s, result_mode=%s",
            database,
            workgroup,
            result_mode.value,
        )

    # The ideal return type for this method is perhaps Self, but that was not added until 3.11, and we support pre-3.11 pythons, currently.
    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def output_location(self) -> str:
        return self.backend.output_location

    def cursor(self, arraysize: int = DEFAULT_ARRAY_SIZE) -> "Cursor":
        """
        Args:
            arraysize: The number of rows fetchmany returns when no size is given.

        Return a new Cursor object using the connection.

        Will throw an Error if the connection has been closed.
        """
        if not self.open:
            raise InterfaceError("Cannot create cursor from closed connection")

        cursor = Cursor(self, self.backend, arraysize=arraysize)
        self._cursors.append(cursor)
        return cursor

    def close(self) -> None:
        """Close the connection and mark all associated cursors as closed."""
        for cursor in self._cursors:
            cursor.close()
        self._cursors = []
        self.open = False

    def commit(self) -> None:
        """
        Athena has no transactions, every statement takes effect on its own.

        This method is a no-op (does nothing).
        """
        pass

    def rollback(self) -> None:
        """
        Raises:
            NotSupportedError: Athena has no transactions to roll back
        """
        raise NotSupportedError("Transactions are not supported on Athena")


class Cursor:
    def __init__(
        self,
        connection: Connection,
        backend: AthenaBackend,
        arraysize: int = DEFAULT_ARRAY_SIZE,
    ) -> None:
        """
        These objects represent a database cursor, which is used to manage the context of a fetch
        operation.

        Cursors are not isolated, i.e., any changes done to the database by a cursor are immediately
        visible by other cursors or connections.
        """

        self.connection: Connection = connection

        self.rowcount: int = -1  # Return -1 as this is not supported
        self.active_result_set: Union[ResultSet, None] = None
        self.arraysize: int = arraysize
        # Note that Cursor closed => active result set closed, but not vice versa
        self.open: bool = True
        self.backend: AthenaBackend = backend
        self.active_query_execution_id: Optional[str] = None
        self.lastrowid = None

        self._cancel_event = threading.Event()
        self._executing = False

    def __enter__(self) -> "Cursor":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __iter__(self):
        if self.active_result_set:
            for row in self.active_result_set:
                yield row
        else:
            raise ProgrammingError("There is no active result set")

    def _close_and_clear_active_result_set(self):
        try:
            if self.active_result_set:
                self.active_result_set.close()
        finally:
            self.active_result_set = None

    def _check_not_closed(self):
        if not self.open:
            raise InterfaceError("Attempting operation on closed cursor")

    def _check_active_result_set(self) -> ResultSet:
        self._check_not_closed()
        if not self.active_result_set:
            raise ProgrammingError("There is no active result set")
        return self.active_result_set

    def execute(
        self,
        operation: str,
        parameters=None,
        options: Optional[QueryOptions] = None,
    ) -> "Cursor":
        """
        Execute a query and wait for execution to complete.

        Athena has no parameter binding, so ``parameters`` must be empty. Render values
        into the query text yourself.

        ```python
        cursor.execute(
            "SELECT * FROM events WHERE day = '2024-01-01'",
            options=QueryOptions(result_mode=ResultMode.GZIP_DOWNLOAD, timeout=60),
        )
        ```

        Settings in ``options`` override the connection's defaults for this call.

        :returns self
        """
        logger.debug("Cursor.execute(operation=%s, options=%s)", operation, options)

        if parameters:
            raise NotSupportedError(
                "Athena does not support prepared statements, format the query text instead"
            )

        self._check_not_closed()
        self._close_and_clear_active_result_set()

        context = resolve_query_context(
            self.connection.query_defaults, options, classify_query(operation)
        )

        self.active_query_execution_id = None
        self._cancel_event = threading.Event()
        self._executing = True
        try:
            self.active_result_set = self.backend.execute_command(
                operation=operation,
                cursor=self,
                context=context,
                cancel_event=self._cancel_event,
            )
        finally:
            self._executing = False

        return self

    def executemany(self, operation, seq_of_parameters):
        """
        Raises:
            NotSupportedError: Athena has no parameter binding
        """
        raise NotSupportedError("executemany is not supported on Athena")

    def fetchall(self) -> List[Row]:
        """
        Fetch all (remaining) rows of a query result, returning them as a sequence of sequences.

        A athena.sql.Error (or subclass) exception is raised if the previous call to
        execute did not produce any result set or no call was issued yet.
        """
        return self._check_active_result_set().fetchall()

    def fetchone(self) -> Optional[Row]:
        """
        Fetch the next row of a query result set, returning a single sequence, or ``None`` when
        no more data is available.
        """
        return self._check_active_result_set().fetchone()

    def fetchmany(self, size: Optional[int] = None) -> List[Row]:
        """
        Fetch the next set of rows of a query result, returning a sequence of sequences (e.g. a
        list of tuples).

        An empty sequence is returned when no more rows are available. If ``size`` is not
        given, the cursor's arraysize determines the number of rows to be fetched.
        """
        result_set = self._check_active_result_set()
        return result_set.fetchmany(self.arraysize if size is None else size)

    def fetchall_arrow(self) -> "pyarrow.Table":
        return self._check_active_result_set().fetchall_arrow()

    def fetchmany_arrow(self, size) -> "pyarrow.Table":
        return self._check_active_result_set().fetchmany_arrow(size)

    def cancel(self) -> None:
        """
        Cancel a running query.

        This method can be called from another thread. An execute call waiting on the
        query stops it and raises QueryCancelledError.
        """
        if self._executing:
            self._cancel_event.set()
        elif self.active_query_execution_id is not None:
            self.backend.cancel_query(self.active_query_execution_id)
        else:
            logger.warning(
                "Attempting to cancel a query, but there is no "
                "currently executing query"
            )

    def close(self) -> None:
        """Close cursor"""
        self.open = False
        self.active_query_execution_id = None
        if self.active_result_set:
            self._close_and_clear_active_result_set()

    @property
    def query_id(self) -> Optional[str]:
        """
        This attribute is the query execution id of the last executed query.

        This attribute will be ``None`` if the cursor has not had an operation
        invoked via the execute method yet, or if cursor was closed.
        """
        return self.active_query_execution_id

    @property
    def description(self) -> Optional[List[Tuple]]:
        """
        This read-only attribute is a sequence of 7-item sequences.

        Each of these sequences contains information describing one result column:

        - name
        - type_code
        - display_size (always None)
        - internal_size (always None)
        - precision
        - scale
        - null_ok

        This attribute will be ``None`` if the cursor has not had an operation invoked via
        the execute method yet.

        The ``type_code`` can be interpreted by comparing it to the Type Objects.
        """
        if self.active_result_set:
            return self.active_result_set.description
        else:
            return None

    @property
    def rownumber(self):
        """This read-only attribute should provide the current 0-based index of the cursor in the
        result set.
        """
        return self.active_result_set.rownumber if self.active_result_set else 0

    def setinputsizes(self, sizes):
        """Does nothing by default"""
        pass

    def setoutputsize(self, size, column=None):
        """Does nothing by default"""
        pass
