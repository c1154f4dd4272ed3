import importlib
import typing

import attr
from sqlalchemy.engine import URL, make_url

from entity_mapper.errors import MappingError


CONNECTION_URL = "entity_mapper.connection_url"
USERNAME = "entity_mapper.username"
PASSWORD = "entity_mapper.password"
DRIVER = "entity_mapper.driver"


@attr.s(auto_attribs=True, frozen=True)
class PersistenceUnit:
    """One unit of an already parsed configuration document: connection properties and mapped class names."""

    name: str
    properties: typing.Dict[str, str] = attr.Factory(dict)
    classes: typing.Tuple[str, ...] = attr.ib(converter=tuple, factory=tuple)
    provider: typing.Optional[str] = None

    @classmethod
    def from_mapping(cls, mapping: typing.Mapping[str, typing.Any]) -> "PersistenceUnit":
        try:
            name = mapping["name"]
        except KeyError:
            raise MappingError("Persistence unit must have a name!") from None
        return cls(
            name=name,
            properties={str(key): str(value) for key, value in (mapping.get("properties") or {}).items()},
            classes=mapping.get("classes") or (),
            provider=mapping.get("provider"),
        )


def load_units(document: typing.Mapping[str, typing.Any]) -> typing.List[PersistenceUnit]:
    return [PersistenceUnit.from_mapping(unit) for unit in document.get("units") or ()]


def find_unit(unit_name: str, units: typing.Iterable[PersistenceUnit]) -> PersistenceUnit:
    if not unit_name:
        raise MappingError("Persistence unit must not be empty!")
    for unit in units:
        if unit.name == unit_name:
            return unit
    raise MappingError(f"Persistence unit with name {unit_name} is not found!")


def resolve_class(dotted_name: str) -> typing.Type:
    module_name, _, class_name = dotted_name.rpartition(".")
    if not module_name:
        raise MappingError(f"Class name {dotted_name} must be a dotted path")
    try:
        return getattr(importlib.import_module(module_name), class_name)
    except (ImportError, AttributeError) as exc:
        raise MappingError(f"Unable to resolve class {dotted_name}") from exc


def build_url(properties: typing.Mapping[str, str]) -> URL:
    try:
        url = make_url(properties[CONNECTION_URL])
    except KeyError:
        raise MappingError(f"Property {CONNECTION_URL} is required!") from None

    overrides = {}
    if properties.get(USERNAME):
        overrides["username"] = properties[USERNAME]
    if properties.get(PASSWORD):
        overrides["password"] = properties[PASSWORD]
    if properties.get(DRIVER):
        overrides["drivername"] = properties[DRIVER]
    return url.set(**overrides) if overrides else url
