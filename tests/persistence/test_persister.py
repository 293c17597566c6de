import gc

import pytest

from mapperkit.adapters import ConnectionConfig, SQLiteAdapter
from mapperkit.core import Entity, IntegerField, ReferenceField, StringField
from mapperkit.hooks import HookDispatcher, LifecycleEvent
from mapperkit.persistence import (
    EntityStateError,
    InvalidArgumentError,
    NonUniqueResultError,
    NoResultError,
    Persister,
    PersisterConfiguration,
    TableGateway,
)


class Customer(Entity):
    name = StringField(nullable=False)
    age = IntegerField(default=0)


class PostalAddress(Entity):
    street = StringField(nullable=False)
    owner = ReferenceField(Customer, db_column="owner_id", related_name="addresses")


class CourseEnrollment(Entity):
    course_id = IntegerField(primary_key=True)
    student_id = IntegerField(primary_key=True)
    grade = StringField()


class RecordingAdapter(SQLiteAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.statements = []

    def execute(self, sql, params=None):
        self.statements.append(sql)
        return super().execute(sql, params)

    def writes(self):
        return [sql for sql in self.statements if sql.split()[0] in {"INSERT", "UPDATE", "DELETE"}]


def make_persister(tmp_path, **options):
    adapter = RecordingAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'persister.db'}"))
    adapter.execute(
        'CREATE TABLE "customer" (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, age INTEGER)'
    )
    adapter.execute(
        'CREATE TABLE "postal_address" (id INTEGER PRIMARY KEY AUTOINCREMENT, street TEXT NOT NULL, '
        "owner_id INTEGER REFERENCES customer(id))"
    )
    adapter.execute(
        'CREATE TABLE "course_enrollment" (course_id INTEGER, student_id INTEGER, grade TEXT, '
        "PRIMARY KEY (course_id, student_id))"
    )
    options.setdefault("default_gateway", TableGateway)
    return Persister(adapter, PersisterConfiguration(**options))


def seed(persister, *rows):
    for name, age in rows:
        persister.adapter.execute('INSERT INTO "customer" (name, age) VALUES (?, ?)', (name, age))
    persister.adapter.statements.clear()


def test_create_inserts_row_and_manages_entity(tmp_path):
    persister = make_persister(tmp_path)
    customer = Customer(name="Alice", age=30)
    persister.create(customer)

    assert customer.id == 1
    assert persister.is_managed(customer)
    row = persister.adapter.execute('SELECT name, age FROM "customer"').fetchone()
    assert row["name"] == "Alice"
    assert row["age"] == 30


def test_create_rejects_managed_entity(tmp_path):
    persister = make_persister(tmp_path)
    customer = persister.create(Customer(name="Alice"))
    with pytest.raises(EntityStateError):
        persister.create(customer)


def test_create_rejects_second_instance_of_managed_identity(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Alice", 30))
    managed = persister.retrieve(Customer, 1)
    with pytest.raises(EntityStateError):
        persister.create(Customer(id=1, name="Clone"))
    assert persister.adapter.writes() == []
    assert managed.name == "Alice"


def test_retrieve_returns_same_instance_without_requery(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Bob", 25))

    first = persister.retrieve(Customer, 1)
    second = persister.retrieve(Customer, "1")
    assert first is second
    assert first.name == "Bob"
    assert len(persister.adapter.statements) == 1


def test_fetch_one_and_retrieve_share_instances(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Bob", 25))
    retrieved = persister.retrieve(Customer, 1)
    retrieved.age = 26
    fetched = persister.fetch_one(Customer, [("name", "Bob")])
    assert fetched is retrieved
    assert fetched.age == 26


def test_retrieve_missing_row_raises(tmp_path):
    persister = make_persister(tmp_path)
    with pytest.raises(NoResultError):
        persister.retrieve(Customer, 42)


def test_fetch_one_cardinality(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Ann", 20), ("Ann", 21), ("Ben", 22))

    with pytest.raises(NoResultError):
        persister.fetch_one(Customer, [("name", "Zed")])
    with pytest.raises(NonUniqueResultError):
        persister.fetch_one(Customer, [("name", "Ann")])

    ben = persister.fetch_one(Customer, [("name", "Ben")])
    assert ben.age == 22
    assert persister.is_managed(ben)


def test_fetch_all_applies_filters_sort_and_limit(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Ann", 20), ("Alan", 40), ("Ben", 30))

    names = [c.name for c in persister.fetch_all(Customer, [("name", "A*"), "sort(-age)"])]
    assert names == ["Alan", "Ann"]

    limited = persister.fetch_all(Customer, ["sort(+age)", "limit(1,1)"])
    assert [c.name for c in limited] == ["Ben"]


def test_fetch_all_with_projection_still_reads_identity(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Ann", 20))
    (customer,) = persister.fetch_all(Customer, ["select(name)"])
    assert customer.id == 1
    assert customer.name == "Ann"


def test_update_without_changes_issues_no_write(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Cleo", 50))
    customer = persister.retrieve(Customer, 1)

    persister.update(customer)
    assert persister.adapter.writes() == []


def test_update_writes_only_changed_fields(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Dan", 30))
    customer = persister.retrieve(Customer, 1)

    assert persister.compute_change_set(customer) == {}
    customer.age = 31
    assert persister.compute_change_set(customer) == {"age": 31}

    persister.update(customer)
    (statement,) = persister.adapter.writes()
    assert statement.startswith('UPDATE "customer" SET "age" = ?')
    assert persister.identity_map.get_original(customer)["age"] == 31
    assert persister.compute_change_set(customer) == {}
    assert persister.adapter.execute('SELECT age FROM "customer"').fetchone()[0] == 31


def test_update_of_vanished_row_leaves_snapshot_untouched(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Eve", 30))
    customer = persister.retrieve(Customer, 1)
    persister.adapter.execute('DELETE FROM "customer"')

    customer.age = 99
    with pytest.raises(NoResultError):
        persister.update(customer)
    assert persister.identity_map.get_original(customer)["age"] == 30
    assert persister.is_managed(customer)


def test_update_and_delete_require_managed_entity(tmp_path):
    persister = make_persister(tmp_path)
    transient = Customer(id=1, name="Nobody")
    with pytest.raises(RuntimeError):
        persister.update(transient)
    with pytest.raises(RuntimeError):
        persister.delete(transient)


def test_delete_removes_row_and_registration(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Fay", 30))
    customer = persister.retrieve(Customer, 1)

    persister.delete(customer)
    assert not persister.is_managed(customer)
    assert persister.adapter.execute('SELECT COUNT(*) FROM "customer"').fetchone()[0] == 0
    with pytest.raises(NoResultError):
        persister.retrieve(Customer, 1)


def test_delete_of_vanished_row_keeps_entity_managed(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Gus", 30))
    customer = persister.retrieve(Customer, 1)
    persister.adapter.execute('DELETE FROM "customer"')

    with pytest.raises(NoResultError):
        persister.delete(customer)
    assert persister.is_managed(customer)


def test_revert_restores_last_synchronised_state(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Hal", 30))
    customer = persister.retrieve(Customer, 1)
    customer.name = "Changed"
    persister.revert(customer)
    assert customer.name == "Hal"


def test_detach_forgets_instance(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Ida", 30))
    first = persister.retrieve(Customer, 1)
    assert persister.detach(first)
    second = persister.retrieve(Customer, 1)
    assert second is not first
    assert persister.loaded(Customer, 1) is second


def test_dropped_entities_are_reloaded(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Jo", 30))
    persister.retrieve(Customer, 1).age = 77
    gc.collect()
    assert persister.retrieve(Customer, 1).age == 30


def test_fetch_pairs_bypasses_identity_map(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Kim", 30), ("Lee", 31))

    pairs = persister.fetch_pairs(Customer, "id", "name", ["sort(-name)"])
    assert pairs == {2: "Lee", 1: "Kim"}
    assert list(pairs) == [2, 1]
    assert len(persister.identity_map) == 0

    with pytest.raises(InvalidArgumentError):
        persister.fetch_pairs(Customer, "id", "nickname")


def test_composite_identity_round_trip(tmp_path):
    persister = make_persister(tmp_path)
    enrollment = persister.create(CourseEnrollment(course_id=3, student_id=9, grade="A"))

    assert persister.retrieve(CourseEnrollment, (3, 9)) is enrollment
    assert persister.retrieve(CourseEnrollment, {"course_id": 3, "student_id": 9}) is enrollment
    with pytest.raises(InvalidArgumentError):
        persister.retrieve(CourseEnrollment, 3)

    enrollment.grade = "B"
    persister.update(enrollment)
    row = persister.adapter.execute('SELECT grade FROM "course_enrollment"').fetchone()
    assert row["grade"] == "B"


def test_reference_is_loaded_lazily_through_identity_map(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Max", 30))
    persister.adapter.execute('INSERT INTO "postal_address" (street, owner_id) VALUES (?, ?)', ("Main St", 1))
    persister.adapter.statements.clear()

    address = persister.retrieve(PostalAddress, 1)
    assert address.owner == 1
    assert len(persister.adapter.statements) == 1

    owner = address.related("owner")
    assert owner.name == "Max"
    assert persister.retrieve(Customer, 1) is owner
    assert len(persister.adapter.statements) == 2


def test_create_writes_identity_of_previously_unsaved_reference(tmp_path):
    persister = make_persister(tmp_path)
    owner = Customer(name="Ned")
    address = PostalAddress(street="High St", owner=owner)

    persister.create(owner)
    persister.create(address)

    assert address.owner == owner.id
    row = persister.adapter.execute('SELECT owner_id FROM "postal_address"').fetchone()
    assert row["owner_id"] == owner.id
    assert address.related("owner") is owner


def test_reverse_accessor_fetches_owning_entities(tmp_path):
    persister = make_persister(tmp_path)
    owner = persister.create(Customer(name="Ola"))
    other = persister.create(Customer(name="Pia"))
    persister.create(PostalAddress(street="A", owner=owner))
    persister.create(PostalAddress(street="B", owner=other))
    persister.create(PostalAddress(street="C", owner=owner))

    streets = [a.street for a in owner.addresses.fetch_all(persister, "sort(+street)")]
    assert streets == ["A", "C"]


def test_lifecycle_events_fire_in_order(tmp_path):
    hooks = HookDispatcher()
    events = []
    for event in LifecycleEvent.ALL:
        hooks.register(event, lambda inst, event=event, **ctx: events.append((event, sorted(ctx))))
    persister = make_persister(tmp_path, hooks=hooks)

    customer = persister.create(Customer(name="Quinn"))
    persister.update(customer)
    customer.age = 5
    persister.update(customer)
    persister.delete(customer)

    assert [name for name, _ in events] == [
        "pre_persist",
        "post_persist",
        "pre_update",
        "post_update",
        "pre_remove",
        "post_remove",
    ]
    assert events[2][1] == ["change_set", "original", "persister"]


def test_pre_update_handler_changes_are_written(tmp_path):
    hooks = HookDispatcher()

    def stamp(instance, **context):
        instance.name = instance.name.upper()

    hooks.register(LifecycleEvent.PRE_UPDATE, stamp, entity_type=Customer)
    persister = make_persister(tmp_path, hooks=hooks)
    customer = persister.create(Customer(name="rae"))
    customer.age = 1
    persister.update(customer)

    row = persister.adapter.execute('SELECT name, age FROM "customer"').fetchone()
    assert (row["name"], row["age"]) == ("RAE", 1)


def test_update_reverted_by_pre_update_handler_is_a_no_op(tmp_path):
    hooks = HookDispatcher()
    post_updates = []

    def undo(instance, **context):
        instance.age = context["original"]["age"]

    hooks.register(LifecycleEvent.PRE_UPDATE, undo, entity_type=Customer)
    hooks.register(LifecycleEvent.POST_UPDATE, lambda instance, **context: post_updates.append(instance))
    persister = make_persister(tmp_path, hooks=hooks)
    seed(persister, ("Ann", 3))
    customer = persister.retrieve(Customer, 1)
    customer.age = 4

    assert persister.update(customer) is customer
    assert customer.age == 3
    assert persister.adapter.writes() == []
    assert post_updates == []
    assert persister.is_managed(customer)


def test_update_of_identifier_rekeys_managed_entity(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Quin", 30))
    customer = persister.retrieve(Customer, 1)

    customer.id = 5
    persister.update(customer)

    assert persister.identity_map.get_id(customer) == (5,)
    assert persister.loaded(Customer, 1) is None
    assert persister.retrieve(Customer, 5) is customer
    assert persister.adapter.execute('SELECT id FROM "customer"').fetchall()[0][0] == 5


def test_update_to_empty_identifier_is_rejected_before_writing(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Rex", 30))
    customer = persister.retrieve(Customer, 1)

    customer.id = None
    with pytest.raises(InvalidArgumentError):
        persister.update(customer)

    assert persister.adapter.writes() == []
    assert persister.is_managed(customer)
    assert persister.identity_map.get_id(customer) == (1,)
    assert persister.adapter.execute('SELECT id FROM "customer"').fetchone()[0] == 1


def test_update_to_identifier_of_another_managed_entity_is_rejected(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Sam", 30), ("Tia", 31))
    first = persister.retrieve(Customer, 1)
    second = persister.retrieve(Customer, 2)

    first.id = 2
    with pytest.raises(EntityStateError):
        persister.update(first)

    assert persister.adapter.writes() == []
    assert persister.identity_map.get_id(first) == (1,)
    assert persister.loaded(Customer, 2) is second


def test_projection_leaves_unselected_defaults_unassigned(tmp_path):
    persister = make_persister(tmp_path)
    seed(persister, ("Uma", 44))
    (customer,) = persister.fetch_all(Customer, ["select(name)"])

    assert "age" not in customer._field_values
    assert persister.identity_map.get_original(customer)["age"] is None
    assert persister.compute_change_set(customer) == {}

    customer.name = "Una"
    persister.update(customer)
    row = persister.adapter.execute('SELECT name, age FROM "customer"').fetchone()
    assert (row["name"], row["age"]) == ("Una", 44)


def test_gateway_resolution(tmp_path):
    persister = make_persister(tmp_path, default_gateway=None)
    with pytest.raises(InvalidArgumentError):
        persister.get_table_gateway(Customer)

    class CustomerGateway(TableGateway):
        entity_type = Customer

    persister.set_table_gateway("Customer", CustomerGateway)
    gateway = persister.get_table_gateway(Customer)
    assert isinstance(gateway, CustomerGateway)
    assert persister.get_table_gateway(Customer(name="x")) is gateway
    assert gateway.persister is persister


def test_gateway_map_accepts_instances(tmp_path):
    gateway = TableGateway(Customer)
    persister = make_persister(tmp_path, gateway_map={"Customer": gateway})
    assert persister.get_table_gateway("Customer") is gateway


def test_entity_meta_gateway_is_used(tmp_path):
    class ArchivedGateway(TableGateway):
        table_name = "customer"

    class ArchivedCustomer(Entity):
        name = StringField()

        class Meta:
            gateway = ArchivedGateway

    persister = make_persister(tmp_path, default_gateway=None)
    gateway = persister.get_table_gateway(ArchivedCustomer)
    assert isinstance(gateway, ArchivedGateway)
    assert gateway.table_name == "customer"


def test_invalid_gateway_and_entity_references(tmp_path):
    persister = make_persister(tmp_path)
    with pytest.raises(InvalidArgumentError):
        persister.set_table_gateway(Customer, object())
    with pytest.raises(InvalidArgumentError):
        persister.get_table_gateway(42)
    with pytest.raises(InvalidArgumentError):
        persister.get_table_gateway("NoSuchEntity")
