import uuid
from datetime import date

from sqlalchemy import Column, Date, Integer, MetaData, String, Table, create_engine

from entity_mapper import Entity, Identity, Repository, SessionFactory


SubscriberId = uuid.UUID


class Subscriber(Entity):
    __tablename__ = "subscribers"

    id: Identity[SubscriberId]
    name: str
    tier: int
    subscribed_at: date


class SubscriberRepo(Repository[Subscriber, SubscriberId]):
    pass


metadata = MetaData()
Table(
    "subscribers",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255)),
    Column("tier", Integer),
    Column("subscribed_at", Date),
)

engine = create_engine("sqlite://", echo=True)
metadata.create_all(engine)

subscriber_id = uuid.uuid4()
subscriber = Subscriber(subscriber_id, "Seba", 1, date.today())

with SessionFactory(engine, [Subscriber]) as factory, factory.create_session() as session:
    repo = SubscriberRepo(session)

    repo.save(subscriber)

    got_subscriber = repo.get(subscriber_id)

    assert got_subscriber == subscriber, f"\n{got_subscriber}\n{subscriber}"

    got_subscriber.tier = 2
    repo.save(got_subscriber)

    premium = (
        session.create_native_query("SELECT * FROM subscribers WHERE tier >= :tier", Subscriber)
        .set_parameter("tier", 2)
        .get_result_list()
    )
    assert [found.id for found in premium] == [subscriber_id]
