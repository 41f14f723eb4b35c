"""Tests for the cache envelope codec."""

import pytest
from pydantic import ValidationError

from osubot.models.osu import OsekaiMedal, User
from osubot.services.codec import (
    FORMAT_VERSION,
    Provenance,
    SerializationBudgetExceeded,
    UnsupportedFormatError,
    serialize,
    wrap_rehydrated,
)


@pytest.fixture
def user() -> User:
    return User.model_validate(
        {
            "id": 42,
            "username": "alice",
            "country_code": "DE",
            "badges": [{"id": 1}, {"id": 2}],
            "statistics": {"pp": 5000.0, "global_rank": 1234, "hit_accuracy": 98.5},
        }
    )


def test_serialize_prefixes_version_tag(user):
    entity = serialize(user, budget=4096)

    assert entity.payload[0] == FORMAT_VERSION
    assert entity.provenance is Provenance.FRESH
    assert len(entity) == len(entity.payload)


def test_get_is_memoized_and_equal(user):
    entity = serialize(user, budget=4096)

    first = entity.get()
    second = entity.get()

    assert first is second
    assert first == user
    assert first.badge_count == 2


def test_view_is_read_only(user):
    view = serialize(user, budget=4096).get()

    with pytest.raises(ValidationError):
        view.username = "mallory"


def test_to_owned_returns_fresh_copy(user):
    entity = serialize(user, budget=4096)

    owned = entity.to_owned()

    assert owned == entity.get()
    assert owned is not entity.get()
    assert owned is not entity.to_owned()


def test_budget_exceeded_is_loud(user):
    with pytest.raises(SerializationBudgetExceeded) as excinfo:
        serialize(user, budget=16)

    assert excinfo.value.type_name == "User"
    assert excinfo.value.budget == 16
    assert excinfo.value.size > 16


def test_budget_counts_version_tag(user):
    size = len(serialize(user, budget=4096))

    assert len(serialize(user, budget=size)) == size
    with pytest.raises(SerializationBudgetExceeded):
        serialize(user, budget=size - 1)


def test_rehydrated_round_trip(user):
    payload = serialize(user, budget=4096).payload

    entity = wrap_rehydrated(payload, User)

    assert entity.provenance is Provenance.REHYDRATED
    assert entity.get() == user
    assert entity.get().statistics.pp == 5000.0


def test_list_entities_need_explicit_model():
    medals = [
        OsekaiMedal.model_validate({"medalid": 7, "name": "Jackpot", "rarity": 0.5}),
        OsekaiMedal.model_validate({"medalid": 8, "name": "Nonstop"}),
    ]

    entity = serialize(medals, budget=4096, model=list[OsekaiMedal])
    rehydrated = wrap_rehydrated(entity.payload, list[OsekaiMedal])

    assert rehydrated.get() == medals


def test_list_view_mutation_does_not_leak_into_next_read():
    medals = [
        OsekaiMedal.model_validate({"medalid": 7, "name": "Jackpot"}),
        OsekaiMedal.model_validate({"medalid": 8, "name": "Nonstop"}),
    ]
    entity = serialize(medals, budget=4096, model=list[OsekaiMedal])

    view = entity.get()
    view.clear()

    assert entity.get() == medals
    assert entity.get() is not entity.get()


def test_wrap_rehydrated_rejects_empty_payload():
    with pytest.raises(UnsupportedFormatError):
        wrap_rehydrated(b"", User)


def test_wrap_rehydrated_rejects_unknown_version(user):
    payload = serialize(user, budget=4096).payload
    tampered = bytes([FORMAT_VERSION + 1]) + payload[1:]

    with pytest.raises(UnsupportedFormatError):
        wrap_rehydrated(tampered, User)


def test_wrap_rehydrated_defers_schema_validation():
    entity = wrap_rehydrated(bytes([FORMAT_VERSION]) + b'{"not": "a user"}', User)

    with pytest.raises(ValidationError):
        entity.get()
