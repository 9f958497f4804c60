from datetime import datetime, timedelta, timezone

import pytest

from doinggreat.db.models import Moment
from doinggreat.schemas.moment import EnrichedPraise, PraiseCard, PraiseHighlight
from doinggreat.services.user_id import UserIDProvider

T0 = datetime(2025, 11, 27, 9, 0, tzinfo=timezone.utc)


def make(text, minutes=0, **kwargs):
    when = T0 + timedelta(minutes=minutes)
    return Moment(text=text, submitted_at=when, happened_at=when, timezone="UTC", **kwargs)


def test_save_and_fetch_roundtrip_keeps_utc(repository):
    m = make("Coffee", tags=["morning"], time_ago=300)
    repository.save(m)

    stored = repository.fetch_by_client_id(m.client_id)
    assert stored.text == "Coffee"
    assert stored.submitted_at == T0
    assert stored.submitted_at.tzinfo is not None
    assert stored.tags == ["morning"]
    assert stored.time_ago == 300
    assert stored.is_favorite is False
    assert stored.is_synced is False
    assert stored.display_praise == ""


def test_fetch_all_sorting(repository):
    for i, text in enumerate(["a", "b", "c"]):
        repository.save(make(text, minutes=i))
    older = make("backdated", minutes=10)
    older.happened_at = T0 - timedelta(days=1)
    repository.save(older)

    assert [m.text for m in repository.fetch_all()] == ["backdated", "c", "b", "a"]
    assert [m.text for m in repository.fetch_all(sort_by="happened_at")] == ["c", "b", "a", "backdated"]
    assert [m.text for m in repository.fetch_all(descending=False)][0] == "a"
    with pytest.raises(ValueError):
        repository.fetch_all(sort_by="text")


def test_update_and_lookup_by_server_id(repository):
    m = make("Run")
    repository.save(m)
    m.server_id = "srv-9"
    m.praise = "Legs of steel."
    m.is_synced = True
    repository.update(m)

    stored = repository.fetch_by_server_id("srv-9")
    assert stored.client_id == m.client_id
    assert stored.display_praise == "Legs of steel."
    assert repository.fetch_by_server_id("missing") is None
    assert repository.fetch_unsynced() == []


def test_update_never_reinserts_a_deleted_moment(repository):
    m = make("Gone")
    repository.save(m)
    repository.delete(m)

    m.praise = "Too late."
    assert repository.update(m) is False
    assert repository.fetch_all() == []


def test_update_with_fields_leaves_other_columns(repository):
    m = make("Tea")
    repository.save(m)
    stale = repository.fetch_by_client_id(m.client_id)
    m.is_favorite = True
    repository.update(m)

    stale.server_id = "srv-1"
    stale.text = "stale text"
    assert repository.update(stale, fields=("server_id",)) is True

    stored = repository.fetch_by_client_id(m.client_id)
    assert stored.server_id == "srv-1"
    assert stored.text == "Tea"
    assert stored.is_favorite is True


def test_unsynced_newest_first(repository):
    repository.save(make("old", minutes=0))
    repository.save(make("new", minutes=5))
    synced = make("done", minutes=9, is_synced=True)
    repository.save(synced)

    assert [m.text for m in repository.fetch_unsynced()] == ["new", "old"]


def test_tags_and_favorites(repository):
    repository.save(make("walk", tags=["health", "outside"]))
    repository.save(make("read", minutes=1, tags=["mind"], is_favorite=True))

    assert [m.text for m in repository.fetch_by_tag("health")] == ["walk"]
    assert repository.fetch_by_tag("none") == []
    assert [m.text for m in repository.fetch_favorites()] == ["read"]


def test_praise_enriched_is_stored_as_json(repository):
    m = make("Shipped")
    m.praise_enriched = EnrichedPraise(cards=[PraiseCard(text="Big day", highlights=[PraiseHighlight(start=0, end=3)])])
    repository.save(m)

    stored = repository.fetch_by_client_id(m.client_id)
    assert stored.praise_enriched.cards[0].highlights[0].end == 3
    assert isinstance(stored.praise_enriched_json, dict)


def test_delete_and_delete_all(repository):
    a, b = make("a"), make("b", minutes=1)
    repository.save(a)
    repository.save(b)

    repository.delete(a)
    repository.delete(a)  # already gone
    assert [m.text for m in repository.fetch_all()] == ["b"]

    assert repository.delete_all() == 1
    assert repository.fetch_all() == []


def test_state_store(store):
    assert store.get("k") is None
    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"
    store.set("k", None)
    assert store.get("k") is None

    assert store.get_bool("flag") is False
    store.set_bool("flag", True)
    assert store.get_bool("flag") is True


def test_user_id_is_generated_once_and_persisted(store):
    first = UserIDProvider(store).user_id
    assert UserIDProvider(store).user_id == first

    provider = UserIDProvider(store)
    fresh = provider.reset_user_id()
    assert fresh != first
    assert UserIDProvider(store).user_id == fresh
    assert provider.masked_user_id == f"{fresh[:4]}...{fresh[-4:]}"
