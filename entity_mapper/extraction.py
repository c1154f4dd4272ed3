import typing

import attr

from entity_mapper import types
from entity_mapper.descriptors import (
    ColumnDescriptor,
    GenerationType,
    IdentityDescriptor,
    Reader,
    TypeDescriptor,
    Writer,
)
from entity_mapper.entity import (
    COLUMN_METADATA,
    GENERATED_VALUE_METADATA,
    Column,
    Entity,
    GeneratedValue,
    Identity,
)
from entity_mapper.errors import MappingError


def _is_generic(field_type: typing.Type) -> bool:
    return typing.get_origin(field_type) is not None


def _get_wrapped_type(wrapped_type: typing.Type) -> typing.Type:
    return typing.get_args(wrapped_type)[0]


def _is_field_nullable(field_type: typing.Type) -> bool:
    args = typing.get_args(field_type)
    return typing.get_origin(field_type) is typing.Union and len(args) == 2 and isinstance(None, args[1])


def _unwrap(field: attr.Attribute) -> typing.Tuple[typing.Type, bool, bool]:
    field_type = field.type
    is_identity = False
    nullable = False

    if Identity.is_identity(field):
        field_type = _get_wrapped_type(field_type)
        is_identity = True
    if _is_generic(field_type):
        if not _is_field_nullable(field_type):
            raise MappingError(f"Unhandled Generic type - {field_type}")
        field_type = _get_wrapped_type(field_type)
        nullable = True

    return field_type, is_identity, nullable


def _resolve_accessors(entity_cls: typing.Type, field: attr.Attribute) -> typing.Tuple[Reader, Writer]:
    getter = getattr(entity_cls, f"get_{field.name}", None)
    setter = getattr(entity_cls, f"set_{field.name}", None)

    if getter is None and setter is None:
        field_name = field.name

        def read(instance: typing.Any) -> typing.Any:
            return getattr(instance, field_name)

        def write(instance: typing.Any, value: typing.Any) -> None:
            setattr(instance, field_name, value)

        return read, write

    if not callable(getter):
        raise MappingError(f"No read accessor get_{field.name} on {entity_cls.__name__}")
    if not callable(setter):
        raise MappingError(f"No write accessor set_{field.name} on {entity_cls.__name__}")

    def read_with_getter(instance: typing.Any) -> typing.Any:
        return getter(instance)

    def write_with_setter(instance: typing.Any, value: typing.Any) -> None:
        setter(instance, value)

    return read_with_getter, write_with_setter


def _table_args(entity_cls: typing.Type) -> typing.Tuple[str, typing.Optional[str], typing.Optional[str]]:
    table_name = getattr(entity_cls, "__tablename__", None) or entity_cls.__name__
    table_args = getattr(entity_cls, "__table_args__", None) or {}
    return table_name, table_args.get("schema"), table_args.get("catalog")


def extract(entity_cls: typing.Type) -> typing.Optional[TypeDescriptor]:
    """Describe how ``entity_cls`` maps onto its table.

    Returns None for classes that are not entities. Raises MappingError when the class is an entity but can not
    be mapped: a field of unsupported type, a half defined accessor pair or no identity field at all.
    """
    if not (isinstance(entity_cls, type) and issubclass(entity_cls, Entity)) or entity_cls is Entity:
        return None

    try:
        # annotations postponed with ``from __future__ import annotations`` arrive as strings
        attr.resolve_types(entity_cls)
    except NameError as exc:
        raise MappingError(f"Unable to resolve field types of {entity_cls.__name__}: {exc}") from exc

    table_name, schema, catalog = _table_args(entity_cls)
    id_columns: typing.List[ColumnDescriptor] = []
    columns: typing.List[ColumnDescriptor] = []
    generation_type = GenerationType.AUTO
    generator = ""

    for field in attr.fields(entity_cls):
        value_type, is_identity, nullable = _unwrap(field)
        if not types.is_supported(value_type):
            raise MappingError(f"Not supported class for mapping: {value_type} ({entity_cls.__name__}.{field.name})")

        reader, writer = _resolve_accessors(entity_cls, field)
        marker: Column = field.metadata.get(COLUMN_METADATA) or Column()
        column = ColumnDescriptor(
            name=marker.name or field.name,
            table_name=table_name,
            sql_type=types.get_sql_type(value_type),
            value_type=value_type,
            field_name=field.name,
            reader=reader,
            writer=writer,
            nullable=nullable if marker.nullable is None else marker.nullable,
            insertable=marker.insertable,
            updatable=marker.updatable,
            length=marker.length,
            scale=marker.scale,
        )
        if is_identity:
            id_columns.append(column)
        else:
            columns.append(column)

        generated: typing.Optional[GeneratedValue] = field.metadata.get(GENERATED_VALUE_METADATA)
        if generated and not is_identity:
            raise MappingError(f"Generated value on {entity_cls.__name__}.{field.name} which is not an Identity field")
        if generated:
            generation_type = generated.strategy
            generator = generated.generator

    if not id_columns:
        raise MappingError(f"Entity {entity_cls.__name__} must have an Identity field!")

    return TypeDescriptor(
        entity=entity_cls,
        table_name=table_name,
        factory=entity_cls,
        identity=IdentityDescriptor(id_columns, generation_type, generator),
        columns=columns,
        schema=schema,
        catalog=catalog,
    )
