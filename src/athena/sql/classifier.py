"""
Leading-keyword classification of query text.

Classification never parses SQL. Each rule is a case-insensitive pattern anchored
at the start of the text; rules are evaluated in order and the first match wins.
Text that matches no rule is UNKNOWN, which callers treat like any other
non-SELECT statement.
"""

import re
from enum import Enum
from typing import Pattern, Sequence, Tuple


class QueryType(Enum):
    UNKNOWN = "UNKNOWN"
    DDL = "DDL"
    SELECT = "SELECT"
    CTAS = "CTAS"


ClassificationRule = Tuple[QueryType, Pattern]

# Order matters. DDL is checked before CTAS, so user written
# "CREATE TABLE ... AS SELECT" text classifies as DDL.
CLASSIFICATION_RULES: Sequence[ClassificationRule] = (
    (
        QueryType.DDL,
        re.compile(r"^(ALTER|CREATE|DESCRIBE|DROP|MSCK|SHOW)", re.IGNORECASE),
    ),
    (QueryType.CTAS, re.compile(r"^CREATE.+AS\s+SELECT", re.IGNORECASE | re.DOTALL)),
    (QueryType.SELECT, re.compile(r"^SELECT", re.IGNORECASE)),
)


def classify_query(
    query: str, rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES
) -> QueryType:
    """Return the type of the first rule matching the start of ``query``."""
    text = query.lstrip()
    for query_type, pattern in rules:
        if pattern.match(text):
            return query_type
    return QueryType.UNKNOWN


def is_ddl_query(query: str) -> bool:
    return classify_query(query) == QueryType.DDL


def is_select_query(query: str) -> bool:
    return classify_query(query) == QueryType.SELECT


def is_ctas_query(query: str) -> bool:
    return classify_query(query) == QueryType.CTAS
