import pytest

from scholarcast import models
from scholarcast.ai.model_cache import ModelWeightsCache
from scholarcast.ai.model_selector import ModelSelector
from scholarcast.ai.model_store import GLOBAL_SCOPE, ModelStore, parse_scope, scholarship_scope
from scholarcast.errors import ModelUnavailable, NotFound, ValidationError


def _active_count(db, scope):
    return (
        db.query(models.TrainedModel)
        .filter(models.TrainedModel.scope == scope, models.TrainedModel.is_active.is_(True))
        .count()
    )


# -------------------------
# SCOPES
# -------------------------
def test_parse_scope():
    assert parse_scope("global") is None
    assert parse_scope(scholarship_scope("abc")) == "abc"
    for bad in ("", "scholarship:", "per-school", None):
        with pytest.raises(ValidationError):
            parse_scope(bad)


# -------------------------
# CREATE
# -------------------------
def test_create_appends_inactive_versions(db):
    store = ModelStore(db)
    a = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    b = store.create(GLOBAL_SCOPE, {"gwaScore": 2.0}, 0.0)
    assert (a.version, b.version) == ("v1", "v2")
    assert a.is_active is False and b.is_active is False
    assert a.model_type == models.ModelTypeEnum.GLOBAL
    assert store.get_active(GLOBAL_SCOPE) is None


def test_create_rejects_unknown_and_non_finite_weights(db):
    store = ModelStore(db)
    with pytest.raises(ValidationError):
        store.create(GLOBAL_SCOPE, {"gwaScore": 1.0, "favoriteColor": 0.3}, 0.0)
    with pytest.raises(ValidationError):
        store.create(GLOBAL_SCOPE, {"gwaScore": float("nan")}, 0.0)
    with pytest.raises(ValidationError):
        store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, float("inf"))
    assert db.query(models.TrainedModel).count() == 0


def test_create_scholarship_scope_links_scholarship(db, make_scholarship):
    s = make_scholarship()
    m = ModelStore(db).create(scholarship_scope(s.id), {"gwaScore": 1.0}, 0.0)
    assert m.scholarship_id == s.id
    assert m.model_type == models.ModelTypeEnum.SCHOLARSHIP_SPECIFIC


# -------------------------
# ACTIVATION
# -------------------------
def test_successive_activations_leave_one_active(db):
    store = ModelStore(db)
    a = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    b = store.create(GLOBAL_SCOPE, {"gwaScore": 2.0}, 0.0)

    store.activate(a.id)
    store.activate(b.id)

    assert _active_count(db, GLOBAL_SCOPE) == 1
    assert store.get_active(GLOBAL_SCOPE).id == b.id

    store.activate(a.id)
    assert _active_count(db, GLOBAL_SCOPE) == 1
    assert store.get_active(GLOBAL_SCOPE).id == a.id


def test_activation_does_not_touch_other_scopes(db, make_scholarship):
    s = make_scholarship()
    store = ModelStore(db)
    g = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    sp = store.create(scholarship_scope(s.id), {"gwaScore": 1.0}, 0.0)
    store.activate(g.id)
    store.activate(sp.id)
    assert _active_count(db, GLOBAL_SCOPE) == 1
    assert _active_count(db, scholarship_scope(s.id)) == 1


def test_activate_unknown_model(db):
    with pytest.raises(NotFound):
        ModelStore(db).activate("does-not-exist")


def test_history_lists_every_version(db):
    store = ModelStore(db)
    for w in (1.0, 2.0, 3.0):
        store.create(GLOBAL_SCOPE, {"gwaScore": w}, 0.0)
    assert sorted(m.version for m in store.history(GLOBAL_SCOPE)) == ["v1", "v2", "v3"]


# -------------------------
# CACHE
# -------------------------
def test_activation_invalidates_cached_weights(db):
    cache = ModelWeightsCache(ttl_seconds=300)
    store = ModelStore(db, cache)
    a = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    b = store.create(GLOBAL_SCOPE, {"gwaScore": 2.0}, 0.5)

    assert store.get_active_weights(GLOBAL_SCOPE) is None
    store.activate(a.id)
    assert store.get_active_weights(GLOBAL_SCOPE).model_id == a.id

    store.activate(b.id)
    snap = store.get_active_weights(GLOBAL_SCOPE)
    assert snap.model_id == b.id
    assert snap.weights == {"gwaScore": 2.0}
    assert snap.bias == 0.5


def test_cache_expires_after_ttl():
    now = [0.0]
    cache = ModelWeightsCache(ttl_seconds=10, clock=lambda: now[0])
    cache.put("global", None)
    assert cache.get("global") == (True, None)
    now[0] = 11.0
    assert cache.get("global") == (False, None)
    assert len(cache) == 0


def test_put_with_stale_generation_is_dropped():
    cache = ModelWeightsCache(ttl_seconds=300)
    gen = cache.generation("global")
    cache.invalidate("global")
    assert cache.put("global", None, gen) is False
    assert cache.get("global") == (False, None)

    gen = cache.generation("global")
    cache.invalidate()
    assert cache.put("global", None, gen) is False
    assert cache.put("global", None, cache.generation("global")) is True


def test_activation_during_weights_read_is_not_cached_over(db, monkeypatch):
    cache = ModelWeightsCache(ttl_seconds=300)
    store = ModelStore(db, cache)
    a = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    b = store.create(GLOBAL_SCOPE, {"gwaScore": 2.0}, 0.0)
    store.activate(a.id)

    writer = ModelStore(db, cache)
    reader = ModelStore(db, cache)
    read_active = reader.get_active

    def read_then_activate(scope):
        model = read_active(scope)
        writer.activate(b.id)
        return model

    monkeypatch.setattr(reader, "get_active", read_then_activate)
    assert reader.get_active_weights(GLOBAL_SCOPE).model_id == a.id
    assert cache.get(GLOBAL_SCOPE) == (False, None)
    assert ModelStore(db, cache).get_active_weights(GLOBAL_SCOPE).model_id == b.id


# -------------------------
# SELECTION
# -------------------------
def _store_with_models(db, scholarship):
    store = ModelStore(db)
    g = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    sp = store.create(scholarship_scope(scholarship.id), {"gwaScore": 3.0}, 0.0)
    store.activate(g.id)
    store.activate(sp.id)
    return store, g, sp


def test_selector_below_threshold_uses_global(db, make_scholarship, add_decided):
    s = make_scholarship()
    store, g, _ = _store_with_models(db, s)
    add_decided(s, approved=15, rejected=14)

    sel = ModelSelector(store, min_samples=30).select_model(s)
    assert sel.model_type == "global"
    assert sel.model.model_id == g.id
    assert sel.decided_count == 29


def test_selector_at_threshold_uses_specific(db, make_scholarship, add_decided):
    s = make_scholarship()
    store, _, sp = _store_with_models(db, s)
    add_decided(s, approved=15, rejected=15)

    sel = ModelSelector(store, min_samples=30).select_model(s)
    assert sel.model_type == "scholarship_specific"
    assert sel.model.model_id == sp.id
    assert sel.decided_count == 30


def test_selector_ignores_undecided_applications(db, make_scholarship, add_decided):
    s = make_scholarship()
    store, _, _ = _store_with_models(db, s)
    add_decided(s, approved=15, rejected=14)
    db.add(models.Application(scholarship_id=s.id, status=models.ApplicationStatusEnum.UNDER_REVIEW))
    db.commit()

    assert ModelSelector(store, min_samples=30).select_model(s).model_type == "global"


def test_selector_falls_back_when_specific_missing(db, make_scholarship, add_decided):
    s = make_scholarship()
    store = ModelStore(db)
    g = store.create(GLOBAL_SCOPE, {"gwaScore": 1.0}, 0.0)
    store.activate(g.id)
    add_decided(s, approved=20, rejected=20)

    sel = ModelSelector(store, min_samples=30).select_model(s)
    assert sel.model_type == "global"


def test_selector_without_global_model(db, make_scholarship):
    s = make_scholarship()
    with pytest.raises(ModelUnavailable):
        ModelSelector(ModelStore(db), min_samples=30).select_model(s)
