from __future__ import annotations

import typing

from entity_mapper.descriptors import GenerationType
from entity_mapper.entity import Entity, Identity, generated_value
from entity_mapper.extraction import extract
from entity_mapper.types import SqlType


class Car(Entity):
    __tablename__ = "car"

    id: Identity[int] = generated_value(GenerationType.IDENTITY)
    name: str
    plate: typing.Optional[str]


def test_string_annotations_are_resolved():
    descriptor = extract(Car)

    assert descriptor.id_column.value_type is int
    assert descriptor.identity.generation_type is GenerationType.IDENTITY
    assert [column.name for column in descriptor.columns] == ["name", "plate"]
    assert [column.sql_type for column in descriptor.columns] == [SqlType.VARCHAR, SqlType.VARCHAR]
    assert descriptor.columns[1].nullable


def test_blank_instance_from_string_annotations():
    car = Car()

    assert (car.id, car.name, car.plate) == (None, None, None)
