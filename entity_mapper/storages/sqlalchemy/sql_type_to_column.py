import typing

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, LargeBinary, Numeric, String, Time
from sqlalchemy.engine import Dialect
from sqlalchemy.types import NullType, TypeEngine

from entity_mapper.types import SqlType


mapping: typing.Dict[SqlType, TypeEngine] = {
    SqlType.NULL: NullType(),
    SqlType.INTEGER: Integer(),
    SqlType.BOOLEAN: Boolean(),
    SqlType.DOUBLE: Float(),
    SqlType.DECIMAL: Numeric(asdecimal=True),
    SqlType.VARCHAR: String(255),
    SqlType.VARBINARY: LargeBinary(),
    SqlType.TIMESTAMP: DateTime(),
    SqlType.DATE: Date(),
    SqlType.TIME: Time(),
}

Processor = typing.Optional[typing.Callable[[typing.Any], typing.Any]]


def convert(sql_type: SqlType) -> TypeEngine:
    try:
        return mapping[sql_type]
    except KeyError:
        raise TypeError(f"Unsupported type - {sql_type!r}")


def bind_processor(sql_type: SqlType, dialect: Dialect) -> Processor:
    return convert(sql_type).dialect_impl(dialect).bind_processor(dialect)


def result_processor(sql_type: SqlType, dialect: Dialect) -> Processor:
    return convert(sql_type).dialect_impl(dialect).result_processor(dialect, None)
