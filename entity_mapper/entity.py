import abc
import inspect
import typing

import attr

from entity_mapper.descriptors import GenerationType


COLUMN_METADATA = "entity_mapper.column"
GENERATED_VALUE_METADATA = "entity_mapper.generated_value"

T = typing.TypeVar("T")


class Identity(typing.Generic[T]):
    @classmethod
    def is_identity(cls, field: attr.Attribute) -> bool:
        return getattr(field.type, "__origin__", None) is cls


@attr.s(auto_attribs=True, frozen=True)
class Column:
    name: typing.Optional[str] = None
    nullable: typing.Optional[bool] = None
    insertable: bool = True
    updatable: bool = True
    length: int = 255
    scale: int = 0


@attr.s(auto_attribs=True, frozen=True)
class GeneratedValue:
    strategy: GenerationType = GenerationType.AUTO
    generator: str = ""


def column(
    name: typing.Optional[str] = None,
    nullable: typing.Optional[bool] = None,
    insertable: bool = True,
    updatable: bool = True,
    length: int = 255,
    scale: int = 0,
    default: typing.Any = None,
) -> typing.Any:
    marker = Column(name, nullable, insertable, updatable, length, scale)
    return attr.ib(default=default, metadata={COLUMN_METADATA: marker})


def generated_value(
    strategy: GenerationType = GenerationType.AUTO,
    generator: str = "",
    column: typing.Optional[Column] = None,
    default: typing.Any = None,
) -> typing.Any:
    metadata: typing.Dict[str, typing.Any] = {GENERATED_VALUE_METADATA: GeneratedValue(strategy, generator)}
    if column:
        metadata[COLUMN_METADATA] = column
    return attr.ib(default=default, metadata=metadata)


class EntityMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict, **kwargs: typing.Any) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        if name == "Entity" and not bases:
            return cls
        for field_name, field_type in inspect.get_annotations(cls).items():
            # fields left without a value start out as None, so a blank instance needs no arguments
            if field_name not in namespace and typing.get_origin(field_type) is not typing.ClassVar:
                setattr(cls, field_name, None)
        return attr.s(auto_attribs=True)(cls)


class Entity(metaclass=EntityMeta):
    """Marks a class as mapped onto a table.

    Subclasses become attrs classes whose fields default to None unless given a value. The table is named after
    the class unless ``__tablename__`` is set; ``__table_args__`` may carry ``schema`` and ``catalog``.
    """
