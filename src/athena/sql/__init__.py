from athena.sql.exc import *
from athena.sql.conversion import SqlType

# PEP 249 module globals
apilevel = "2.0"
threadsafety = 1  # Threads may share the module, but not connections.
# Bound parameters are rejected by Cursor.execute; format values into the SQL text
paramstyle = "pyformat"


class _DBAPITypeObject(object):
    def __init__(self, *values):
        self.values = values

    def __eq__(self, other):
        if isinstance(other, str):
            other = SqlType.base_type(other)
        return other in self.values

    def __hash__(self):
        return hash(self.values)

    def __repr__(self):
        return "DBAPITypeObject({})".format(self.values)


# Type names of both the result-set metadata and the data catalog
STRING = _DBAPITypeObject("varchar", "char", "string", "json")
BINARY = _DBAPITypeObject("varbinary", "binary")
NUMBER = _DBAPITypeObject(
    "boolean",
    "tinyint",
    "smallint",
    "int",
    "integer",
    "bigint",
    "float",
    "real",
    "double",
    "decimal",
)
DATETIME = _DBAPITypeObject("timestamp", "timestamp with time zone", "time")
DATE = _DBAPITypeObject("date")
ROWID = _DBAPITypeObject()

__version__ = "1.0.0"
USER_AGENT_NAME = "PyAthenaSqlConnector"

from athena.sql.context import QueryOptions
from athena.sql.types import ResultMode, Row


def connect(**kwargs) -> "Connection":
    from .client import Connection

    return Connection(**kwargs)
