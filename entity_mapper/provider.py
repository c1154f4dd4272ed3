import typing

from entity_mapper.configuration import PersistenceUnit, find_unit, resolve_class
from entity_mapper.errors import UnsupportedOperationError
from entity_mapper.session_factory import SessionFactory


def create_session_factory(unit_name: str, units: typing.Iterable[PersistenceUnit]) -> SessionFactory:
    unit = find_unit(unit_name, units)
    return SessionFactory.from_properties(unit.properties, [resolve_class(name) for name in unit.classes])


def generate_schema(unit_name: str, units: typing.Iterable[PersistenceUnit]) -> typing.NoReturn:
    raise UnsupportedOperationError("Schema generation is not supported!")
