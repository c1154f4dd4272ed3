import pytest

from entity_mapper import (
    Entity,
    EntityExistsError,
    EntityNotFoundError,
    FlushMode,
    GenerationType,
    Identity,
    MappingError,
    SessionClosedError,
    StatementError,
    UnsupportedOperationError,
    generated_value,
)
from entity_mapper.errors import ErrorKind

INSERT = "INSERT INTO car (name) VALUES (?)"
UPDATE = "UPDATE car SET name=? WHERE id=?"
DELETE = "DELETE FROM car WHERE id=?"
SELECT = "SELECT id,name FROM car WHERE id=?"


class Car(Entity):
    __tablename__ = "car"

    id: Identity[int] = generated_value(GenerationType.IDENTITY)
    name: str


class Unmapped(Entity):
    id: Identity[int]


@pytest.fixture()
def entities():
    return [Car]


@pytest.fixture()
def deferred(session):
    session.flush_mode = FlushMode.COMMIT
    return session


def test_persist_runs_insert_immediately_in_auto_mode(session, connection):
    connection.generated_keys = [1]
    car = Car(name="Panda")

    session.persist(car)

    assert connection.executed == [(INSERT, ["Panda"])]
    assert car.id == 1
    assert session.pending == []


def test_writes_are_deferred_until_flush(deferred, connection):
    deferred.persist(Car(1, "Panda"))
    deferred.merge(Car(1, "Fiat"))
    deferred.remove(Car(1, "Fiat"))

    assert connection.executed == []
    assert len(deferred.pending) == 3

    deferred.flush()

    assert connection.executed_sql == [INSERT, UPDATE, DELETE]
    assert deferred.pending == []


def test_duplicate_persist(deferred):
    deferred.persist(Car(1, "Panda"))

    with pytest.raises(EntityExistsError) as error:
        deferred.persist(Car(1, "Other"))

    assert error.value.key == 1
    assert error.value.kind is ErrorKind.SESSION_STATE
    assert len(deferred.pending) == 1


def test_keyless_records_are_queued_but_not_managed(deferred):
    first, second = Car(name="Panda"), Car(name="Fiat")

    deferred.persist(first)
    deferred.persist(second)

    assert len(deferred.pending) == 2
    assert not deferred.contains(first)


def test_merge_returns_previously_managed_instance(deferred):
    original = Car(1, "Panda")
    deferred.persist(original)
    replacement = Car(1, "Fiat")

    assert deferred.merge(replacement) is original
    assert deferred.find(Car, 1) is replacement
    assert deferred.merge(Car(2, "Uno")) is None
    assert [type(entry.execution).__name__ for entry in deferred.pending] == [
        "InsertExecution",
        "UpdateExecution",
        "InsertExecution",
    ]


def test_remove_of_unmanaged_record_still_deletes(deferred, connection):
    deferred.remove(Car(3, "Uno"))
    deferred.flush()

    assert connection.executed == [(DELETE, [3])]


def test_remove_forgets_managed_record(deferred):
    car = Car(1, "Panda")
    deferred.persist(car)

    deferred.remove(car)

    assert not deferred.contains(car)


def test_refresh_requires_managed_record(session):
    with pytest.raises(EntityNotFoundError):
        session.refresh(Car(1, "Panda"))


def test_refresh_reloads_managed_record(deferred, connection):
    connection.results[SELECT] = [{"id": 7, "name": "Fiat"}]
    car = Car(1, "Panda")
    deferred.persist(car)

    deferred.refresh(car)
    deferred.flush()

    assert connection.executed == [(INSERT, ["Panda"]), (SELECT, [1])]
    assert car.id == 7
    assert car.name == "Fiat"


def test_find_selects_and_caches(session, connection):
    connection.results[SELECT] = [{"id": 1, "name": "Panda"}]

    car = session.find(Car, 1)

    assert car == Car(1, "Panda")
    assert session.find(Car, 1) is car
    assert connection.executed == [(SELECT, [1])]


def test_find_does_not_cache_absent_rows(session, connection):
    assert session.find(Car, 1) is None
    assert session.find(Car, 1) is None
    assert connection.executed_sql == [SELECT, SELECT]


def test_find_with_lock_mode(session):
    with pytest.raises(UnsupportedOperationError):
        session.find(Car, 1, lock_mode="PESSIMISTIC_WRITE")


def test_flush_clears_managed_records(deferred):
    car = Car(1, "Panda")
    deferred.persist(car)

    deferred.flush()

    assert not deferred.contains(car)


def test_failed_flush_drops_failing_entry_and_keeps_the_rest(deferred, connection):
    connection.failing.add(UPDATE)
    car = Car(1, "Panda")
    deferred.persist(car)
    deferred.merge(Car(1, "Fiat"))
    deferred.remove(Car(2, "Uno"))

    with pytest.raises(StatementError):
        deferred.flush()

    assert connection.executed_sql == [INSERT]
    assert [type(entry.execution).__name__ for entry in deferred.pending] == ["DeleteExecution"]
    assert deferred.contains(Car(1, "Fiat"))

    connection.failing.clear()
    deferred.flush()
    assert connection.executed_sql == [INSERT, DELETE]


def test_clear_and_detach(deferred):
    car, other = Car(1, "Panda"), Car(2, "Fiat")
    deferred.persist(car)
    deferred.persist(other)

    deferred.detach(car)
    assert car not in deferred
    assert other in deferred

    deferred.clear()
    assert other not in deferred
    assert deferred.pending == []


def test_unregistered_class(session):
    with pytest.raises(MappingError):
        session.persist(Unmapped(1))


def test_close_flushes_and_closes_connection(deferred, connection):
    deferred.persist(Car(1, "Panda"))

    deferred.close()

    assert connection.executed_sql == [INSERT]
    assert connection.closed
    assert not deferred.is_open


def test_close_releases_connection_when_flush_fails(deferred, connection):
    connection.failing.add(INSERT)
    deferred.persist(Car(1, "Panda"))

    with pytest.raises(StatementError):
        deferred.close()

    assert connection.closed
    assert not deferred.is_open


def test_context_manager_releases_connection_when_flush_fails(deferred, connection):
    connection.failing.add(INSERT)

    with pytest.raises(StatementError):
        with deferred:
            deferred.persist(Car(1, "Panda"))

    assert connection.closed
    assert not deferred.is_open


@pytest.mark.parametrize(
    "operation",
    [
        lambda session: session.persist(Car(1, "Panda")),
        lambda session: session.merge(Car(1, "Panda")),
        lambda session: session.remove(Car(1, "Panda")),
        lambda session: session.refresh(Car(1, "Panda")),
        lambda session: session.find(Car, 1),
        lambda session: session.contains(Car(1, "Panda")),
        lambda session: session.detach(Car(1, "Panda")),
        lambda session: session.flush(),
        lambda session: session.create_native_query("SELECT 1"),
        lambda session: session.transaction,
    ],
)
def test_closed_session_rejects_operations(session, operation):
    session.close()

    with pytest.raises(SessionClosedError):
        operation(session)


def test_context_manager_closes(session, connection):
    with session as opened:
        opened.persist(Car(name="Panda"))

    assert connection.closed
    assert not session.is_open


def test_context_manager_discards_pending_work_on_error(deferred, connection):
    with pytest.raises(RuntimeError):
        with deferred:
            deferred.persist(Car(1, "Panda"))
            raise RuntimeError("boom")

    assert connection.executed == []
    assert connection.closed


@pytest.mark.parametrize(
    "operation",
    [
        lambda session: session.lock(Car(1, "Panda"), "READ"),
        lambda session: session.create_query("select c from Car c"),
        lambda session: session.create_named_query("Car.all"),
        lambda session: session.join_transaction(),
    ],
)
def test_unsupported_operations(session, operation):
    with pytest.raises(UnsupportedOperationError) as error:
        operation(session)

    assert error.value.kind is ErrorKind.UNSUPPORTED
    assert isinstance(error.value, NotImplementedError)
