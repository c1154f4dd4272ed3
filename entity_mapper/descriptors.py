import enum
import typing

import attr

from entity_mapper.types import SqlType


Reader = typing.Callable[[typing.Any], typing.Any]
Writer = typing.Callable[[typing.Any, typing.Any], None]


class GenerationType(enum.Enum):
    NONE = "NONE"
    AUTO = "AUTO"
    IDENTITY = "IDENTITY"
    SEQUENCE = "SEQUENCE"


@attr.s(auto_attribs=True, frozen=True)
class ColumnDescriptor:
    name: str = attr.ib(validator=attr.validators.min_len(1))
    table_name: str
    sql_type: SqlType
    value_type: typing.Type
    field_name: str
    reader: Reader = attr.ib(repr=False, eq=False)
    writer: Writer = attr.ib(repr=False, eq=False)
    nullable: bool = True
    insertable: bool = True
    updatable: bool = True
    length: int = 255
    scale: int = 0


@attr.s(auto_attribs=True, frozen=True)
class IdentityDescriptor:
    columns: typing.Tuple[ColumnDescriptor, ...] = attr.ib(
        converter=tuple, validator=attr.validators.min_len(1)
    )
    generation_type: GenerationType = GenerationType.AUTO
    generator: str = ""

    @property
    def is_generated(self) -> bool:
        return self.generation_type is GenerationType.IDENTITY


@attr.s(auto_attribs=True, frozen=True)
class TypeDescriptor:
    entity: typing.Type
    table_name: str = attr.ib(validator=attr.validators.min_len(1))
    factory: typing.Callable[[], typing.Any] = attr.ib(repr=False, eq=False)
    identity: IdentityDescriptor
    columns: typing.Tuple[ColumnDescriptor, ...] = attr.ib(converter=tuple, default=())
    schema: typing.Optional[str] = None
    catalog: typing.Optional[str] = None

    @property
    def qualified_table_name(self) -> str:
        if self.schema:
            return f"{self.schema}.{self.table_name}"
        return self.table_name

    @property
    def id_column(self) -> ColumnDescriptor:
        # composite identities are representable, only the first column takes part in statements
        return self.identity.columns[0]

    @property
    def has_single_id(self) -> bool:
        return len(self.identity.columns) == 1

    @property
    def all_columns(self) -> typing.Tuple[ColumnDescriptor, ...]:
        return self.identity.columns + self.columns

    def primary_key(self, instance: typing.Any) -> typing.Any:
        return self.id_column.reader(instance)
