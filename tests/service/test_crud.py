import logging

import pytest

from mapperkit.adapters import ConnectionConfig, SQLiteAdapter
from mapperkit.core import Entity, IntegerField, StringField
from mapperkit.persistence import InvalidArgumentError, Persister, PersisterConfiguration, TableGateway
from mapperkit.service import STATUS_SUCCESS, STATUS_VALIDATION_ERROR, CrudService, Result, ServiceError
from mapperkit.validation import MinValueValidator


class Product(Entity):
    name = StringField(nullable=False, max_length=20)
    stock = IntegerField(default=0, validators=[MinValueValidator(0)])


@pytest.fixture
def persister(tmp_path):
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'crud.db'}"))
    adapter.execute('CREATE TABLE "product" (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, stock INTEGER)')
    return Persister(adapter, PersisterConfiguration(default_gateway=TableGateway))


@pytest.fixture
def service(persister):
    return CrudService("Product", persister)


def stored(persister):
    return [tuple(row) for row in persister.adapter.execute('SELECT id, name, stock FROM "product" ORDER BY id')]


def test_create_persists_valid_data(service, persister):
    result = service.create({"name": "Lamp", "stock": "4", "colour": "red"})
    assert result.status == STATUS_SUCCESS
    assert result.succeeded
    assert result.errors is None
    assert result.data.id == 1
    assert stored(persister) == [(1, "Lamp", 4)]


def test_create_reports_validation_errors_without_writing(service, persister):
    data = {"name": "x" * 30, "stock": -1}
    result = service.create(data)
    assert result.status == STATUS_VALIDATION_ERROR
    assert not result.succeeded
    assert result.data == data
    assert set(result.errors) == {"name", "stock"}
    assert stored(persister) == []


def test_retrieve_update_delete_round_trip(service, persister):
    created = service.create({"name": "Desk", "stock": 2}).data

    assert service.retrieve(created.id).data is created

    updated = service.update(created.id, {"stock": 9, "id": 99})
    assert updated.succeeded
    assert updated.data.id == created.id
    assert stored(persister) == [(1, "Desk", 9)]

    deleted = service.delete(created.id)
    assert deleted.data is created
    assert stored(persister) == []


def test_failed_update_validation_reverts_entity(service, persister):
    product = service.create({"name": "Chair", "stock": 3}).data

    result = service.update(product.id, {"stock": -5})
    assert result.status == STATUS_VALIDATION_ERROR
    assert result.errors == {"stock": ["Ensure value is greater than or equal to 0."]}
    assert product.stock == 3
    assert stored(persister) == [(1, "Chair", 3)]


def test_missing_identifier_is_rejected(service):
    with pytest.raises(InvalidArgumentError):
        service.retrieve(None)
    with pytest.raises(InvalidArgumentError):
        service.update(None, {})
    with pytest.raises(InvalidArgumentError):
        service.delete()


def test_unexpected_failures_are_shielded_and_logged(service, caplog):
    caplog.set_level(logging.ERROR, logger="mapperkit.service.crud")
    with pytest.raises(ServiceError) as excinfo:
        service.retrieve(404)

    error = excinfo.value
    assert error.error_id.startswith("shield-")
    assert f"[errorId:{error.error_id}]" in str(error)
    assert "Unable to retrieve entity matching id 404." in str(error)
    assert type(error.__cause__).__name__ == "NoResultError"

    (record,) = [r for r in caplog.records if r.name == "mapperkit.service.crud"]
    assert error.error_id in record.getMessage()
    assert record.exc_info is not None


def test_fetch_operations(service):
    for name, stock in [("Bolt", 10), ("Nut", 5), ("Nail", 0)]:
        service.create({"name": name, "stock": stock})

    names = [p.name for p in service.fetch_all(["sort(+name)"]).data]
    assert names == ["Bolt", "Nail", "Nut"]
    assert service.fetch_one([("name", "Nut")]).data.stock == 5
    with pytest.raises(ServiceError):
        service.fetch_one([("name", "N*")])

    page = service.fetch_page(["sort(+name)", "limit(2,2)"]).data
    assert page.current_page_number == 2
    assert [p.name for p in page] == ["Nut"]


def test_fetch_pairs_chooses_projection(service):
    service.create({"name": "Bolt"})
    service.create({"name": "Axe"})
    result = service.fetch_pairs("id", "name", ["sort(+name)"])
    assert list(result.data.items()) == [(2, "Axe"), (1, "Bolt")]

    with pytest.raises(InvalidArgumentError):
        service.fetch_pairs("id", "name", ["select(id)"])


def test_get_default_returns_unsaved_entity(service, persister):
    product = service.get_default().data
    assert isinstance(product, Product)
    assert product.stock == 0
    assert not persister.is_managed(product)


def test_unknown_entity_name_is_rejected(persister):
    with pytest.raises(InvalidArgumentError):
        CrudService("Nothing", persister)


def test_result_status_range():
    assert Result(255, None).status == 255
    for status in (-1, 256, True, "0"):
        with pytest.raises(InvalidArgumentError):
            Result(status, None)
