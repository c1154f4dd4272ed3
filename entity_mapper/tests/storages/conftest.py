from pathlib import Path
from typing import Generator

import pytest
from _pytest.fixtures import SubRequest
from sqlalchemy import Boolean, Column, Date, DateTime, Integer, MetaData, Numeric, String, Table
from sqlalchemy.engine import Engine, create_engine


@pytest.fixture()
def engine(request: SubRequest, tmp_path: Path) -> Generator[Engine, None, None]:
    connection_url = request.config.getoption("--sqlalchemy-url") or f"sqlite:///{tmp_path / 'entity_mapper.db'}"
    engine = create_engine(connection_url)
    yield engine
    engine.dispose()


@pytest.fixture()
def metadata() -> MetaData:
    metadata = MetaData()
    Table("car", metadata, Column("id", Integer, primary_key=True, autoincrement=True), Column("name", String(255)))
    Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=False),
        Column("login", String(255)),
        Column("password", String(255)),
        Column("username", String(255)),
    )
    Table(
        "trip",
        metadata,
        Column("id", String(36), primary_key=True),
        Column("fare", Numeric(10, 2)),
        Column("paid", Boolean),
        Column("started_at", DateTime),
        Column("day", Date),
    )
    return metadata


@pytest.fixture()
def tables(engine: Engine, metadata: MetaData) -> Generator[MetaData, None, None]:
    metadata.drop_all(engine)
    metadata.create_all(engine)
    yield metadata
    metadata.drop_all(engine)
