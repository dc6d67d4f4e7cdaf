import json
import logging

logger = logging.getLogger(__name__)

### PEP-249 Mandated ###
# https://peps.python.org/pep-0249/#exceptions
class Error(Exception):
    """Base class for DB-API2.0 exceptions.
    `message`: An optional user-friendly error message. It should be short, actionable and stable
    `context`: Optional extra context about the error. MUST be JSON serializable
    """

    def __init__(self, message=None, context=None, *args, **kwargs):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.context = context or {}

    def __str__(self):
        return self.message

    def message_with_context(self):
        return self.message + ": " + json.dumps(self.context, default=str)


class Warning(Exception):
    pass


class InterfaceError(Error):
    pass


class DatabaseError(Error):
    pass


class InternalError(DatabaseError):
    pass


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class IntegrityError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class NotSupportedError(DatabaseError):
    pass


### Custom error classes ###
class ConfigurationError(ProgrammingError):
    """Thrown if a connection or per-call setting has an invalid value, for example an
    unknown result mode.
    Its context will have the following keys:
    "setting": The name of the offending setting
    "value": The rejected value
    """

    pass


class RequestError(OperationalError):
    """Thrown if a call to the query engine or the object store failed.
    Its context will have the following keys:
    "method": The remote API method that failed
    "error-code": The remote error code (if available)
    """

    pass


class SubmissionError(RequestError):
    """Thrown if the query engine rejected the query text or its execution context.
    The message is the remote error message, unchanged.
    """

    pass


class ExecutionFailedError(DatabaseError):
    """Thrown if the query execution moved to the FAILED state, if for example there was a
    syntax error.
    Its context will have the following keys:
    "query-execution-id": The id of the failed execution
    "state-change-reason": The reason reported by the query engine
    """

    pass


class QueryCancelledError(OperationalError):
    """Thrown if the execution was cancelled, either remotely or because the caller
    cancelled it or its deadline passed.
    Its context will have the following keys:
    "query-execution-id": The id of the execution (if available)
    "reason": One of "remote", "cancelled", "deadline"
    """

    pass


class DownloadError(OperationalError):
    """Thrown if a result object could not be fetched, decompressed or decoded.
    Its context will have the following keys:
    "bucket": The bucket of the object
    "key": The key of the object
    """

    pass


class MetadataError(OperationalError):
    """Thrown if column metadata for a result could not be fetched.
    Its context will have the following keys:
    "table": The table whose metadata was requested
    "database": The database of the table
    "catalog": The data catalog of the table
    """

    pass
