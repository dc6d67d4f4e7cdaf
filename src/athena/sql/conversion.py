"""
Type conversion utilities for the Athena SQL Connector.

Every result mode yields rows of strings. This module converts them to Python values
based on the column type name. Two vocabularies reach this module: the result-set
metadata of the query engine (``varchar``, ``integer``, ``varbinary`` ...) and the
data catalog used for CTAS tables (``string``, ``int``, ``decimal(10,2)``,
``binary`` ...). Unknown and complex types are returned unchanged.
"""

import base64
import datetime
import decimal
import logging
import re
from dateutil import parser
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_PARAMETERS_PATTERN = re.compile(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")


def _convert_decimal(
    value: str, precision: Optional[int] = None, scale: Optional[int] = None
) -> decimal.Decimal:
    """
    Convert a string value to a decimal with optional precision and scale.

    Args:
        value: The string value to convert
        precision: Optional precision (total number of significant digits) for the decimal
        scale: Optional scale (number of decimal places) for the decimal

    Returns:
        A decimal.Decimal object with appropriate precision and scale
    """

    result = decimal.Decimal(value)

    quantizer = None
    if scale is not None:
        quantizer = decimal.Decimal(f'0.{"0" * scale}')

    context = None
    if precision is not None:
        context = decimal.Context(prec=precision)

    if quantizer is not None:
        result = result.quantize(quantizer, context=context)

    return result


def _convert_boolean(value: str) -> bool:
    return value.lower() in ("true", "t", "1", "yes", "y")


def _convert_hex_binary(value: str) -> bytes:
    # The query engine renders varbinary as space separated hex octets
    return bytes.fromhex(value)


def _convert_base64_binary(value: str) -> bytes:
    return base64.b64decode(value)


class SqlType:
    """SQL type names used by the query engine and the data catalog."""

    # Numeric types
    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INT = "int"
    INTEGER = "integer"
    BIGINT = "bigint"
    FLOAT = "float"
    REAL = "real"
    DOUBLE = "double"
    DECIMAL = "decimal"

    # Boolean types
    BOOLEAN = "boolean"

    # Date/Time types
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TIMESTAMP_WITH_TIME_ZONE = "timestamp with time zone"

    # String types
    CHAR = "char"
    VARCHAR = "varchar"
    STRING = "string"
    JSON = "json"

    # Binary types
    BINARY = "binary"
    VARBINARY = "varbinary"

    # Complex types
    ARRAY = "array"
    MAP = "map"
    ROW = "row"
    STRUCT = "struct"

    @staticmethod
    def base_type(sql_type: str) -> str:
        """Strip type parameters: ``decimal(10,2)`` -> ``decimal``, ``array<int>`` -> ``array``."""
        sql_type = sql_type.strip().lower()
        for delimiter in ("(", "<"):
            sql_type = sql_type.split(delimiter, 1)[0]
        return sql_type.strip()

    @staticmethod
    def parameters(sql_type: str) -> Tuple[Optional[int], Optional[int]]:
        """Return ``(precision, scale)`` declared in a type name such as ``decimal(10,2)``."""
        match = _PARAMETERS_PATTERN.search(sql_type)
        if not match:
            return None, None
        precision = int(match.group(1))
        scale = int(match.group(2)) if match.group(2) is not None else None
        return precision, scale

    @classmethod
    def is_numeric(cls, sql_type: str) -> bool:
        return cls.base_type(sql_type) in (
            cls.TINYINT,
            cls.SMALLINT,
            cls.INT,
            cls.INTEGER,
            cls.BIGINT,
            cls.FLOAT,
            cls.REAL,
            cls.DOUBLE,
            cls.DECIMAL,
        )

    @classmethod
    def is_string(cls, sql_type: str) -> bool:
        return cls.base_type(sql_type) in (cls.CHAR, cls.VARCHAR, cls.STRING, cls.JSON)

    @classmethod
    def is_datetime(cls, sql_type: str) -> bool:
        return cls.base_type(sql_type) in (
            cls.TIME,
            cls.TIMESTAMP,
            cls.TIMESTAMP_WITH_TIME_ZONE,
        )

    @classmethod
    def is_complex(cls, sql_type: str) -> bool:
        return cls.base_type(sql_type) in (cls.ARRAY, cls.MAP, cls.ROW, cls.STRUCT)


class SqlTypeConverter:
    """Utility class for converting SQL type names and string values to Python values."""

    TYPE_MAPPING: Dict[str, Callable] = {
        # Numeric types
        SqlType.TINYINT: int,
        SqlType.SMALLINT: int,
        SqlType.INT: int,
        SqlType.INTEGER: int,
        SqlType.BIGINT: int,
        SqlType.FLOAT: float,
        SqlType.REAL: float,
        SqlType.DOUBLE: float,
        SqlType.DECIMAL: _convert_decimal,
        # Boolean types
        SqlType.BOOLEAN: _convert_boolean,
        # Date/Time types
        SqlType.DATE: datetime.date.fromisoformat,
        SqlType.TIME: datetime.time.fromisoformat,
        SqlType.TIMESTAMP: parser.parse,
        SqlType.TIMESTAMP_WITH_TIME_ZONE: parser.parse,
        # String types - no conversion needed
        SqlType.CHAR: str,
        SqlType.VARCHAR: str,
        SqlType.STRING: str,
        SqlType.JSON: str,
        # Binary types
        SqlType.VARBINARY: _convert_hex_binary,
        SqlType.BINARY: _convert_base64_binary,
    }

    @staticmethod
    def convert_value(
        value: Optional[str],
        sql_type: str,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
    ) -> Any:
        """
        Convert a string value to the appropriate Python type based on SQL type.

        Args:
            value: The string value to convert
            sql_type: The SQL type name, possibly with parameters (e.g. 'decimal(10,2)')
            precision: Optional precision for decimal types
            scale: Optional scale for decimal types

        Returns:
            The converted value, or the original string if the type is unknown or the
            value does not parse
        """
        if value is None:
            return None
        if not sql_type:
            return value

        base_type = SqlType.base_type(sql_type)
        converter_func = SqlTypeConverter.TYPE_MAPPING.get(base_type)
        if converter_func is None:
            return value

        try:
            if base_type == SqlType.DECIMAL:
                if precision is None and scale is None:
                    precision, scale = SqlType.parameters(sql_type)
                return converter_func(value, precision, scale)
            return converter_func(value)
        except (ValueError, TypeError, OverflowError, decimal.InvalidOperation) as e:
            logger.warning(f"Error converting value '{value}' to {sql_type}: {e}")
            return value
