from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class QueryState(Enum):
    """
    Enum representing the state of an Athena query execution.

    Attributes:
        QUEUED: Execution accepted but not yet running
        RUNNING: Execution in progress
        SUCCEEDED: Execution completed successfully
        FAILED: Execution failed, the state change reason says why
        CANCELLED: Execution was stopped before completion
    """

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @classmethod
    def from_athena_state(cls, state: str) -> Optional["QueryState"]:
        """
        Map an Athena QueryExecutionState string to QueryState.

        Args:
            state: The state string, e.g. "RUNNING"

        Returns:
            QueryState: The corresponding state, or None if it is not recognized
        """
        try:
            return cls(state)
        except ValueError:
            return None


class ResultSetState(Enum):
    """Lifecycle of a result set, shared by every result mode."""

    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    EXHAUSTED = "EXHAUSTED"
    CLOSED = "CLOSED"


@dataclass
class QueryExecution:
    """
    A query execution as reported by GetQueryExecution.

    Attributes:
        query_execution_id: Opaque id assigned by the query engine
        query: The submitted query text
        database: Database the query ran in
        catalog: Data catalog the query ran in
        output_location: Where the engine wrote the query output
        state: Current state of the execution
        state_change_reason: Human readable reason, set when the execution failed
    """

    query_execution_id: str
    state: QueryState
    query: Optional[str] = None
    database: Optional[str] = None
    catalog: Optional[str] = None
    output_location: Optional[str] = None
    state_change_reason: Optional[str] = None

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> "QueryExecution":
        """Build a QueryExecution from a GetQueryExecution response."""
        execution = response["QueryExecution"]
        status = execution.get("Status", {})
        raw_state = status.get("State")
        state = QueryState.from_athena_state(raw_state)
        if state is None:
            raise ValueError(f"Unknown query execution state: {raw_state}")

        context = execution.get("QueryExecutionContext", {})
        return cls(
            query_execution_id=execution["QueryExecutionId"],
            state=state,
            query=execution.get("Query"),
            database=context.get("Database"),
            catalog=context.get("Catalog"),
            output_location=execution.get("ResultConfiguration", {}).get(
                "OutputLocation"
            ),
            state_change_reason=status.get("StateChangeReason"),
        )
