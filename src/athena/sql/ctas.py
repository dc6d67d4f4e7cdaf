import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable

from athena.sql.context import ResolvedQueryContext
from athena.sql.types import ResultMode

logger = logging.getLogger(__name__)

CTAS_TABLE_PREFIX = "tmp_ctas_"
CTAS_TABLE_PROPERTIES = "format='TEXTFILE'"


def generate_ctas_table_name() -> str:
    return CTAS_TABLE_PREFIX + uuid.uuid4().hex


def should_create_ctas_table(context: ResolvedQueryContext) -> bool:
    """Only SELECT statements fetched in GZIP_DOWNLOAD mode go through a temporary table."""
    return context.is_select and context.result_mode == ResultMode.GZIP_DOWNLOAD


class TableCleanup:
    """
    Drops a temporary CTAS table.

    The DROP statement is issued at most once, no matter how many times the cleanup
    is called. Failures are raised to the caller of the first call and the cleanup
    does not retry them.
    """

    def __init__(self, table_name: str, run_statement: Callable[[str], None]):
        self.table_name = table_name
        self._run_statement = run_statement
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True

        logger.debug("Dropping temporary table %s", self.table_name)
        self._run_statement(f"DROP TABLE {self.table_name}")
        logger.info("Dropped temporary table %s", self.table_name)


@dataclass(frozen=True)
class CtasRewrite:
    """
    Attributes:
        query: The CREATE TABLE AS SELECT statement to submit instead of the original
        table_name: Name of the temporary table the statement creates
        cleanup: Drops the temporary table once its data has been read
    """

    query: str
    table_name: str
    cleanup: TableCleanup


def wrap_as_ctas(query: str, run_statement: Callable[[str], None]) -> CtasRewrite:
    """
    Rewrite a SELECT so that its output lands in a uniquely named TEXTFILE table.

    Athena writes TEXTFILE tables as gzip compressed objects with \\x01 separated
    fields and lists them in a manifest next to the query output.

    Args:
        query: The SELECT statement
        run_statement: Submits a statement and waits for it, used by the cleanup
    """
    table_name = generate_ctas_table_name()
    rewritten = "CREATE TABLE {} WITH ({}) AS {}".format(
        table_name, CTAS_TABLE_PROPERTIES, query
    )
    return CtasRewrite(
        query=rewritten,
        table_name=table_name,
        cleanup=TableCleanup(table_name, run_statement),
    )
