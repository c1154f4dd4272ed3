from typing import Any, Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from entity_mapper.configuration import build_url
from entity_mapper.storages.sqlalchemy.connection import SaConnection, SaPreparedStatement, SaResultCursor, SaRow


def create_engine_from_properties(properties: Mapping[str, str], **engine_kwargs: Any) -> Engine:
    return create_engine(build_url(properties), **engine_kwargs)


def connect(engine: Engine) -> SaConnection:
    return SaConnection(engine.connect())
