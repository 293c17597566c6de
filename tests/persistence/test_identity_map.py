import gc

import pytest

from mapperkit.core import Entity, IntegerField, StringField
from mapperkit.persistence import EntityStateError, IdentityMap, InvalidArgumentError


class Party(Entity):
    name = StringField()


class Company(Party):
    vat = StringField()


class Individual(Party):
    birth_year = IntegerField()


class Gadget(Entity):
    name = StringField()


class Template(Entity):
    class Meta:
        abstract = True

    label = StringField()


class Page(Template):
    body = StringField()


class AuditMixin:
    def audit_label(self):
        return f"{type(self).__name__}:{self.pk}"


class Creature(Entity):
    name = StringField()


class Hound(AuditMixin, Creature):
    breed = StringField()


class Feline(Creature):
    indoor = IntegerField()


def test_root_type_walks_to_top_persistable_ancestor():
    assert IdentityMap.root_type(Company(name="Acme")) is Party
    assert IdentityMap.root_type(Individual) is Party
    assert IdentityMap.root_type(Gadget) is Gadget


def test_root_type_stops_at_abstract_base():
    assert IdentityMap.root_type(Page) is Page


def test_root_type_skips_plain_mixins():
    assert IdentityMap.root_type(Hound) is Creature
    assert IdentityMap.root_type(Hound) is IdentityMap.root_type(Feline)

    identity_map = IdentityMap()
    hound = Hound(id=4, name="Rex")
    assert identity_map.put(hound, 4)
    assert identity_map.put(Feline(id=4, name="Tom"), 4) is False
    assert identity_map.get(Feline, 4) is hound


def test_put_and_get_round_trip():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    assert identity_map.put(gadget, (1,)) is True
    assert identity_map.get(Gadget, (1,)) is gadget
    assert identity_map.get(Gadget, 1) is gadget
    assert identity_map.get(Gadget, (2,)) is None
    assert identity_map.has(gadget)
    assert identity_map.get_id(gadget) == (1,)


def test_existing_instance_wins_on_collision():
    identity_map = IdentityMap()
    first = Gadget(id=1, name="First")
    second = Gadget(id=1, name="Second")
    assert identity_map.put(first, (1,))
    assert identity_map.put(second, (1,)) is False
    assert identity_map.get(Gadget, (1,)) is first
    assert not identity_map.has(second)


def test_sibling_subtypes_collide_on_shared_root():
    identity_map = IdentityMap()
    company = Company(id=7, name="Acme")
    person = Individual(id=7, name="Ann")
    assert identity_map.put(company, (7,))
    assert identity_map.put(person, (7,)) is False
    assert identity_map.get(Individual, (7,)) is company


def test_unrelated_types_with_equal_keys_do_not_collide():
    identity_map = IdentityMap()
    gadget = Gadget(id=7, name="Lamp")
    party = Party(id=7, name="Acme")
    assert identity_map.put(gadget, (7,))
    assert identity_map.put(party, (7,))
    assert identity_map.get(Gadget, 7) is gadget
    assert identity_map.get(Party, 7) is party


def test_empty_identity_is_rejected():
    identity_map = IdentityMap()
    with pytest.raises(InvalidArgumentError):
        identity_map.put(Gadget(name="Lamp"), ())
    with pytest.raises(InvalidArgumentError):
        identity_map.put(Gadget(name="Lamp"), (None,))


def test_has_uses_reference_identity():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    lookalike = Gadget(id=1, name="Lamp")
    identity_map.put(gadget, (1,))
    assert identity_map.has(gadget)
    assert not identity_map.has(lookalike)
    assert gadget in identity_map
    assert lookalike not in identity_map


def test_snapshot_is_isolated_from_live_mutation():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    identity_map.put(gadget, (1,))

    gadget.name = "Desk lamp"
    assert identity_map.get_original(gadget)["name"] == "Lamp"

    original = identity_map.get_original(gadget)
    original["name"] = "tampered"
    assert identity_map.get_original(gadget)["name"] == "Lamp"

    identity_map.commit(gadget)
    assert identity_map.get_original(gadget)["name"] == "Desk lamp"


def test_unmanaged_entity_operations_fail():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    for operation in (identity_map.get_id, identity_map.get_original, identity_map.commit):
        with pytest.raises(EntityStateError):
            operation(gadget)


def test_remove_reports_whether_registered():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    identity_map.put(gadget, (1,))
    assert identity_map.remove(gadget) is True
    assert identity_map.remove(gadget) is False
    assert identity_map.get(Gadget, 1) is None
    assert identity_map.put(Gadget(id=1, name="Again"), (1,))


def test_map_does_not_keep_entities_alive():
    identity_map = IdentityMap()
    identity_map.put(Gadget(id=1, name="Lamp"), (1,))
    gc.collect()
    assert identity_map.get(Gadget, 1) is None
    assert len(identity_map) == 0


def test_entity_cannot_move_to_another_identity():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    identity_map.put(gadget, (1,))
    with pytest.raises(EntityStateError):
        identity_map.put(gadget, (2,))


def test_clear_forgets_everything():
    identity_map = IdentityMap()
    gadget = Gadget(id=1, name="Lamp")
    identity_map.put(gadget, (1,))
    identity_map.clear()
    assert not identity_map.has(gadget)
    assert identity_map.values() == []
