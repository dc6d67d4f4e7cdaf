import logging
from dataclasses import dataclass
from typing import Optional, Union

from athena.sql.classifier import QueryType
from athena.sql.exc import ConfigurationError
from athena.sql.types import ResultMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryOptions:
    """
    Settings for a single call to Cursor.execute.

    Any attribute left as None falls back to the value configured on the connection.

    Attributes:
        result_mode: ResultMode (or its string value) used to fetch the results
        timeout: Seconds allowed for the fetches that materialize a downloaded result
        catalog: Data catalog the query runs in
        query_timeout: Seconds to wait for the execution to finish before it is stopped
    """

    result_mode: Optional[Union[ResultMode, str]] = None
    timeout: Optional[float] = None
    catalog: Optional[str] = None
    query_timeout: Optional[float] = None


@dataclass(frozen=True)
class ResolvedQueryContext:
    """The effective settings for one statement, after defaults and forcing were applied."""

    query_type: QueryType
    result_mode: ResultMode
    timeout: float
    catalog: str
    query_timeout: Optional[float] = None

    @property
    def is_select(self) -> bool:
        return self.query_type == QueryType.SELECT

    @property
    def is_ddl(self) -> bool:
        return self.query_type == QueryType.DDL


def validate_result_mode(
    value: Union[ResultMode, str], setting: str = "result_mode"
) -> ResultMode:
    mode = ResultMode.parse(value)
    if mode is None:
        raise ConfigurationError(
            "Invalid result mode: {!r}. Valid values are {}".format(
                value, ", ".join(repr(m.value) for m in ResultMode)
            ),
            {"setting": setting, "value": value},
        )
    return mode


def validate_positive_seconds(value, setting: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(
            f"{setting} must be a positive number of seconds, got {value!r}",
            {"setting": setting, "value": value},
        )
    return value


def resolve_query_context(
    defaults: QueryOptions,
    options: Optional[QueryOptions],
    query_type: QueryType,
) -> ResolvedQueryContext:
    """
    Merge connection defaults with per-call options.

    Each setting is taken from ``options`` when set there, else from ``defaults``. The
    result mode is validated before forcing, so an invalid override is an error even
    for statements that end up in API mode. Statements that are not SELECT always
    resolve to ResultMode.API because the download modes read a tabular result file.

    Raises:
        ConfigurationError: If the result mode or a timeout is invalid
    """
    options = options or QueryOptions()

    requested_mode = (
        options.result_mode if options.result_mode is not None else defaults.result_mode
    )
    result_mode = validate_result_mode(
        requested_mode if requested_mode is not None else ResultMode.API
    )
    if query_type != QueryType.SELECT and result_mode != ResultMode.API:
        logger.debug(
            "Forcing result mode %s to %s for %s statement",
            result_mode.value,
            ResultMode.API.value,
            query_type.value,
        )
        result_mode = ResultMode.API

    timeout = options.timeout if options.timeout is not None else defaults.timeout
    timeout = validate_positive_seconds(timeout, "timeout")

    catalog = options.catalog if options.catalog is not None else defaults.catalog

    query_timeout = (
        options.query_timeout
        if options.query_timeout is not None
        else defaults.query_timeout
    )
    if query_timeout is not None:
        query_timeout = validate_positive_seconds(query_timeout, "query_timeout")

    return ResolvedQueryContext(
        query_type=query_type,
        result_mode=result_mode,
        timeout=timeout,
        catalog=catalog or "",
        query_timeout=query_timeout,
    )
