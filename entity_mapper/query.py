import itertools
import re
import typing

import attr
import structlog

from entity_mapper import types
from entity_mapper.connection import Connection, PreparedStatement, Row
from entity_mapper.descriptors import TypeDescriptor
from entity_mapper.errors import (
    InvalidQueryError,
    MappingError,
    NonUniqueResultError,
    UnsupportedOperationError,
)
from entity_mapper.executions import read_column, statement_errors
from entity_mapper.session import FlushMode
from entity_mapper.types import SqlType, TemporalType

logger = structlog.get_logger()

T = typing.TypeVar("T")

# quoted literals are consumed whole so placeholders inside them stay untouched
_NAMED_PARAMETER = re.compile(r"'(?:[^']|'')*'|(?<![:\w]):([A-Za-z_]\w*)")
_POSITIONAL_PARAMETER = re.compile(r"'(?:[^']|'')*'|(\?)")


def parse_named_parameters(sql: str) -> typing.Tuple[str, typing.Dict[str, typing.List[int]]]:
    """Rewrite ``:name`` placeholders to positional ``?`` ones.

    Returns the rewritten text and the 1-based positions of every name, in order of appearance.

    >>> parse_named_parameters("SELECT a FROM t WHERE x=:foo AND y=:bar")
    ('SELECT a FROM t WHERE x=? AND y=?', {'foo': [1], 'bar': [2]})
    """
    positions: typing.Dict[str, typing.List[int]] = {}
    counter = itertools.count(1)

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name is None:
            return match.group(0)
        positions.setdefault(name, []).append(next(counter))
        return "?"

    return _NAMED_PARAMETER.sub(replace, sql), positions


@attr.s(auto_attribs=True, frozen=True)
class Parameter:
    name: typing.Optional[str]
    position: int
    parameter_type: typing.Optional[typing.Type] = None


@attr.s(auto_attribs=True, frozen=True)
class _Binding:
    value: typing.Any
    sql_type: SqlType


class NativeQuery(typing.Generic[T]):
    """Query written in the database's own SQL, with ``:name`` or positional parameters.

    Every execution prepares a fresh statement. Pagination is applied on the client while walking the cursor.
    """

    def __init__(
        self,
        connection: Connection,
        sql: str,
        descriptor: typing.Optional[TypeDescriptor] = None,
        flush_mode: FlushMode = FlushMode.AUTO,
    ) -> None:
        if not sql or not sql.strip():
            raise InvalidQueryError("Query must not be empty!")
        self._connection = connection
        self._sql, self._names = parse_named_parameters(sql)
        self._descriptor = descriptor
        self._flush_mode = flush_mode
        self._parameters = self._declare_parameters()
        self._bindings: typing.Dict[int, _Binding] = {}
        self._first_result = 0
        self._max_results: typing.Optional[int] = None

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def flush_mode(self) -> FlushMode:
        return self._flush_mode

    @property
    def first_result(self) -> int:
        return self._first_result

    @property
    def max_results(self) -> typing.Optional[int]:
        return self._max_results

    def set_first_result(self, first_result: int) -> "NativeQuery[T]":
        if first_result < 0:
            raise InvalidQueryError(f"First result must not be negative, got {first_result}")
        self._first_result = first_result
        return self

    def set_max_results(self, max_results: int) -> "NativeQuery[T]":
        if max_results < 0:
            raise InvalidQueryError(f"Max results must not be negative, got {max_results}")
        self._max_results = max_results
        return self

    def set_parameter(
        self,
        parameter: typing.Union[str, int, Parameter],
        value: typing.Any,
        temporal_type: typing.Optional[TemporalType] = None,
    ) -> "NativeQuery[T]":
        try:
            if temporal_type is not None:
                value = types.to_temporal(value, temporal_type)
                sql_type = temporal_type.value
            else:
                sql_type = types.get_sql_type(type(value))
        except (MappingError, TypeError) as exc:
            raise InvalidQueryError(f"Unable to bind value {value!r}: {exc}", sql=self._sql) from exc

        binding = _Binding(value, sql_type)
        for position in self._positions(parameter):
            self._bindings[position] = binding
        return self

    def get_parameter(self, parameter: typing.Union[str, int]) -> Parameter:
        positions = self._positions(parameter)
        return self._parameters[positions[0]]

    def get_parameters(self) -> typing.Set[Parameter]:
        return set(self._parameters.values())

    def is_bound(self, parameter: typing.Union[str, int, Parameter]) -> bool:
        return all(position in self._bindings for position in self._positions(parameter))

    def get_parameter_value(self, parameter: typing.Union[str, int, Parameter]) -> typing.Any:
        position = self._positions(parameter)[0]
        try:
            return self._bindings[position].value
        except KeyError:
            raise InvalidQueryError(f"Parameter {parameter!r} is not bound") from None

    def get_result_list(self) -> typing.List[T]:
        descriptor = self._require_descriptor()
        with statement_errors(self._sql):
            with self._connection.prepare_statement(self._sql) as statement:
                self._bind(statement)
                with statement.execute_query() as cursor:
                    rows = itertools.islice(iter(cursor), self._first_result, self._stop())
                    return [self._materialize(descriptor, row) for row in rows]

    def get_single_result(self) -> typing.Optional[T]:
        """Return the only matching row, or None when nothing matches.

        First result and max results do not apply here: every row of the cursor counts.
        """
        descriptor = self._require_descriptor()
        with statement_errors(self._sql):
            with self._connection.prepare_statement(self._sql) as statement:
                self._bind(statement)
                with statement.execute_query() as cursor:
                    rows = iter(cursor)
                    first = next(rows, None)
                    if first is None:
                        return None
                    if next(rows, None) is not None:
                        raise NonUniqueResultError("Query returned more than one result, expected one", sql=self._sql)
                    return self._materialize(descriptor, first)

    def execute_update(self) -> int:
        with statement_errors(self._sql):
            with self._connection.prepare_statement(self._sql) as statement:
                self._bind(statement)
                return statement.execute_update()

    def set_hint(self, name: str, value: typing.Any) -> typing.NoReturn:
        raise UnsupportedOperationError("Query hints are not supported!")

    def set_lock_mode(self, lock_mode: str) -> typing.NoReturn:
        raise UnsupportedOperationError("Locking is not supported!")

    def set_flush_mode(self, flush_mode: FlushMode) -> typing.NoReturn:
        raise UnsupportedOperationError("Per query flush mode is not supported!")

    def _declare_parameters(self) -> typing.Dict[int, Parameter]:
        if self._names:
            return {
                position: Parameter(name, position)
                for name, positions in self._names.items()
                for position in positions
            }
        count = sum(1 for match in _POSITIONAL_PARAMETER.finditer(self._sql) if match.group(1))
        return {position: Parameter(None, position) for position in range(1, count + 1)}

    def _positions(self, parameter: typing.Union[str, int, Parameter]) -> typing.List[int]:
        if isinstance(parameter, Parameter):
            parameter = parameter.name if parameter.name is not None else parameter.position
        if isinstance(parameter, str):
            try:
                return self._names[parameter]
            except KeyError:
                raise InvalidQueryError(f"Parameter {parameter} is not found in query", sql=self._sql) from None
        if parameter not in self._parameters:
            raise InvalidQueryError(f"Parameter at position {parameter} is not found in query", sql=self._sql)
        return [parameter]

    def _bind(self, statement: PreparedStatement) -> None:
        for position, binding in sorted(self._bindings.items()):
            statement.set_object(position, types.to_storage(binding.value), binding.sql_type)

    def _stop(self) -> typing.Optional[int]:
        if self._max_results is None:
            return None
        return self._first_result + self._max_results

    def _require_descriptor(self) -> TypeDescriptor:
        if self._descriptor is None:
            raise InvalidQueryError("Result type is required to read query results", sql=self._sql)
        return self._descriptor

    def _materialize(self, descriptor: TypeDescriptor, row: Row) -> T:
        entity = descriptor.factory()
        for column in descriptor.all_columns:
            try:
                value = read_column(row, column)
            except KeyError:
                logger.debug("result_column_missing", column=column.name, sql=self._sql)
                continue
            column.writer(entity, value)
        return entity
