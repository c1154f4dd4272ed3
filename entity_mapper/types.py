import enum
import typing
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from functools import singledispatch

from entity_mapper.errors import MappingError


class SqlType(enum.IntEnum):
    # JDBC type codes
    NULL = 0
    DECIMAL = 3
    INTEGER = 4
    DOUBLE = 8
    VARCHAR = 12
    BOOLEAN = 16
    VARBINARY = -3
    DATE = 91
    TIME = 92
    TIMESTAMP = 93


class TemporalType(enum.Enum):
    DATE = SqlType.DATE
    TIME = SqlType.TIME
    TIMESTAMP = SqlType.TIMESTAMP


mapping: typing.Dict[typing.Type, SqlType] = {
    int: SqlType.INTEGER,
    bool: SqlType.BOOLEAN,
    float: SqlType.DOUBLE,
    Decimal: SqlType.DECIMAL,
    str: SqlType.VARCHAR,
    uuid.UUID: SqlType.VARCHAR,
    bytes: SqlType.VARBINARY,
    datetime: SqlType.TIMESTAMP,
    date: SqlType.DATE,
    time: SqlType.TIME,
    type(None): SqlType.NULL,
}


def is_supported(value_type: typing.Type) -> bool:
    return value_type in mapping and value_type is not type(None)


def get_sql_type(value_type: typing.Type) -> SqlType:
    try:
        return mapping[value_type]
    except KeyError:
        raise MappingError(f"Unsupported type - {value_type}")


@singledispatch
def to_storage(argument: typing.Any) -> typing.Any:
    return argument


@to_storage.register(uuid.UUID)
def _(argument: uuid.UUID) -> str:
    return str(argument)


# value types the storage hands back in a different shape
from_storage_mapping: typing.Dict[typing.Type, typing.Callable[[typing.Any], typing.Any]] = {uuid.UUID: uuid.UUID}


def from_storage(argument: typing.Any, value_type: typing.Type) -> typing.Any:
    if argument is None or isinstance(argument, value_type):
        return argument
    try:
        return from_storage_mapping[value_type](argument)
    except KeyError:
        return argument


def to_temporal(value: typing.Union[date, datetime, time], temporal_type: TemporalType) -> typing.Any:
    if temporal_type is TemporalType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
    elif temporal_type is TemporalType.TIME:
        if isinstance(value, datetime):
            return value.time()
        if isinstance(value, time):
            return value
    elif temporal_type is TemporalType.TIMESTAMP:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time.min)
    raise TypeError(f"Value {value!r} can not be bound as {temporal_type.name}")
