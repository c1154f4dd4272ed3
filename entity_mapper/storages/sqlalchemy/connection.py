import itertools
import re
import typing

import structlog
from sqlalchemy.engine import Connection as SaNativeConnection
from sqlalchemy.engine import CursorResult, Dialect

from entity_mapper.connection import Connection, PreparedStatement, ResultCursor, Row
from entity_mapper.storages.sqlalchemy import sql_type_to_column
from entity_mapper.types import SqlType

logger = structlog.get_logger()

# single quoted literals are matched first so the question marks inside them are left alone
_PLACEHOLDER = re.compile(r"'(?:[^']|'')*'|\?")


def to_driver_paramstyle(sql: str, paramstyle: str) -> str:
    if paramstyle == "qmark":
        return sql
    positions = itertools.count(1)

    def replace(match: re.Match) -> str:
        if match.group(0) != "?":
            return match.group(0)
        position = next(positions)
        if paramstyle in ("format", "pyformat"):
            return "%s"
        if paramstyle == "numeric":
            return f":{position}"
        if paramstyle == "named":
            return f":p{position}"
        raise TypeError(f"Unsupported paramstyle - {paramstyle}")

    return _PLACEHOLDER.sub(replace, sql)


class SaRow(Row):
    def __init__(self, values: typing.Sequence[typing.Any], index: typing.Dict[str, int], dialect: Dialect) -> None:
        self._values = values
        self._index = index
        self._dialect = dialect

    def get_object(self, column: str, sql_type: typing.Optional[SqlType] = None) -> typing.Any:
        value = self._values[self._index[column.lower()]]
        if sql_type is None:
            return value
        processor = sql_type_to_column.result_processor(sql_type, self._dialect)
        return processor(value) if processor else value


class SaResultCursor(ResultCursor):
    def __init__(self, result: CursorResult, dialect: Dialect) -> None:
        self._result = result
        self._dialect = dialect
        self._keys = list(result.keys())
        self._index = {key.lower(): position for position, key in enumerate(self._keys)}

    def keys(self) -> typing.List[str]:
        return list(self._keys)

    def __iter__(self) -> typing.Iterator[Row]:
        for values in self._result:
            yield SaRow(values, self._index, self._dialect)

    def close(self) -> None:
        self._result.close()


class SaPreparedStatement(PreparedStatement):
    def __init__(self, connection: "SaConnection", sql: str, return_generated_keys: bool = False) -> None:
        self._connection = connection
        self._sql = sql
        self._return_generated_keys = return_generated_keys
        self._parameters: typing.Dict[int, typing.Any] = {}
        self._generated_keys: typing.List[typing.Any] = []
        self._result: typing.Optional[CursorResult] = None

    @property
    def sql(self) -> str:
        return self._sql

    def set_object(self, position: int, value: typing.Any, sql_type: SqlType) -> None:
        if position < 1:
            raise IndexError(f"Parameter positions start at 1, got {position}")
        processor = sql_type_to_column.bind_processor(sql_type, self._connection.dialect)
        self._parameters[position] = processor(value) if processor else value

    def _driver_parameters(self) -> typing.Optional[typing.Union[typing.Tuple, typing.Dict[str, typing.Any]]]:
        missing = [position for position in range(1, len(self._parameters) + 1) if position not in self._parameters]
        if missing:
            raise ValueError(f"Parameters {missing} are not bound")
        ordered = [self._parameters[position] for position in sorted(self._parameters)]
        if not ordered:
            return None
        if self._connection.dialect.paramstyle == "named":
            return {f"p{position}": value for position, value in enumerate(ordered, start=1)}
        return tuple(ordered)

    def _execute(self) -> CursorResult:
        native = self._connection.native
        sql = to_driver_paramstyle(self._sql, native.dialect.paramstyle)
        logger.debug("executing_statement", sql=self._sql, parameters=len(self._parameters))
        return native.exec_driver_sql(sql, self._driver_parameters())

    def execute_update(self) -> int:
        result = self._execute()
        try:
            if self._return_generated_keys and result.lastrowid is not None:
                self._generated_keys = [result.lastrowid]
            row_count = result.rowcount
        finally:
            result.close()
        self._connection.after_update()
        return row_count

    def execute_query(self) -> ResultCursor:
        self._result = self._execute()
        return SaResultCursor(self._result, self._connection.dialect)

    def generated_keys(self) -> typing.List[typing.Any]:
        return list(self._generated_keys)

    def close(self) -> None:
        if self._result is not None:
            self._result.close()
            self._result = None


class SaConnection(Connection):
    """Connection abstraction over a SQLAlchemy connection.

    Autocommit is emulated: while it is on, every update is committed right after it runs. A fresh connection
    starts with autocommit on, as driver connections usually do.
    """

    def __init__(self, native: SaNativeConnection, autocommit: bool = True) -> None:
        self._native = native
        self._autocommit = autocommit

    @property
    def native(self) -> SaNativeConnection:
        return self._native

    @property
    def dialect(self) -> Dialect:
        return self._native.dialect

    def prepare_statement(self, sql: str, return_generated_keys: bool = False) -> SaPreparedStatement:
        return SaPreparedStatement(self, sql, return_generated_keys)

    @property
    def autocommit(self) -> bool:
        return self._autocommit

    def set_autocommit(self, autocommit: bool) -> None:
        if autocommit and not self._autocommit:
            # switching autocommit on commits whatever is pending
            self._native.commit()
        self._autocommit = autocommit

    def after_update(self) -> None:
        if self._autocommit:
            self._native.commit()

    def commit(self) -> None:
        self._native.commit()

    def rollback(self) -> None:
        self._native.rollback()

    def close(self) -> None:
        self._native.close()
