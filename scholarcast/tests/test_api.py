from fastapi.testclient import TestClient

from scholarcast.ai.model_store import GLOBAL_SCOPE, scholarship_scope
from scholarcast.ai.synthetic import generate_history
from scholarcast.main import app

client = TestClient(app)

CRITERIA = {
    "max_gwa": 1.75,
    "max_annual_family_income": 300000,
    "eligible_colleges": ["College of Engineering"],
}
APPLICANT = {
    "gwa": 1.25,
    "annual_family_income": 150000,
    "college": "College of Engineering",
    "citizenship": "Filipino",
    "documents": [{"type": "Transcript", "status": "verified"}],
}


def test_root():
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["service"] == "scholarcast"


# -------------------------
# PREDICTIONS
# -------------------------
def test_eligibility_endpoint(make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    r = client.post("/predictions/eligibility", json={"scholarship_id": s.id, "applicant": APPLICANT})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["passed"] is True
    assert data["percentage"] == 100
    assert [c["id"] for c in data["checks"]] == ["gwa", "annualFamilyIncome", "college"]


def test_eligibility_unknown_scholarship_is_404():
    r = client.post("/predictions/eligibility", json={"scholarship_id": "nope", "applicant": APPLICANT})
    assert r.status_code == 404
    assert r.json()["error"] == "NOT_FOUND"


def test_request_without_applicant_is_rejected():
    r = client.post("/predictions/probability", json={"scholarship_id": "x"})
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert "applicant" in str(body["detail"])


def test_malformed_field_uses_error_envelope():
    bad = dict(APPLICANT, gwa="excellent")
    r = client.post("/predictions/eligibility", json={"scholarship_id": "x", "applicant": bad})
    assert r.status_code == 422
    assert r.json()["error"] == "VALIDATION_ERROR"
    assert isinstance(r.json()["detail"], list)


def test_probability_degrades_without_model(make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    r = client.post("/predictions/probability", json={"scholarship_id": s.id, "applicant": APPLICANT})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["degraded"] is True
    assert data["probability"] == 0.0
    assert data["confidence"] == "low"
    assert data["eligibility"]["passed"] is True


def test_probability_after_reset(make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    r = client.post("/training/reset", params={"scope": GLOBAL_SCOPE, "actor": "admin"})
    assert r.status_code == 200, r.text
    model_id = r.json()["id"]

    r = client.post("/predictions/probability", json={"scholarship_id": s.id, "applicant": APPLICANT})
    data = r.json()
    assert data["degraded"] is False
    assert data["model_type"] == "global"
    assert data["model_id"] == model_id
    assert 0.0 < data["probability"] < 1.0
    assert len(data["feature_contributions"]) == 15
    assert data["factors"]


# -------------------------
# TRAINING
# -------------------------
def test_train_global_insufficient_then_success(db, make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    r = client.post("/training/train")
    assert r.status_code == 200
    assert r.json()["status"] == "insufficient_data"

    generate_history(db, s, 55)
    r = client.post("/training/train", json={"trained_by": "admin"})
    data = r.json()
    assert data["status"] == "success", data
    assert data["metrics"]["true_positives"] + data["metrics"]["true_negatives"] \
        + data["metrics"]["false_positives"] + data["metrics"]["false_negatives"] \
        == data["training_stats"]["test_set_size"]

    state = client.get("/training/models/state", params={"scope": GLOBAL_SCOPE}).json()
    assert state["active"]["id"] == data["model_id"]
    assert state["active"]["trained_by"] == "admin"


def test_train_scholarship_and_train_all(db, make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    generate_history(db, s, 50)

    r = client.post(f"/training/train/{s.id}")
    assert r.json()["status"] == "success"
    assert r.json()["scope"] == scholarship_scope(s.id)

    r = client.post("/training/train-all")
    assert r.status_code == 200
    assert [o["status"] for o in r.json()] == ["success", "success"]


def test_train_unknown_scholarship_reports_failure():
    r = client.post("/training/train/missing")
    assert r.status_code == 200
    assert r.json()["status"] == "failed"


def test_history_and_manual_activation():
    first = client.post("/training/reset").json()
    second = client.post("/training/reset").json()
    assert second["is_active"] is True

    history = client.get("/training/models", params={"scope": GLOBAL_SCOPE}).json()
    assert {m["id"] for m in history} == {first["id"], second["id"]}

    r = client.post(f"/training/models/{first['id']}/activate")
    assert r.status_code == 200
    assert r.json()["is_active"] is True

    state = client.get("/training/models/state").json()
    assert state["active"]["id"] == first["id"]
    assert sum(1 for m in state["history"] if m["is_active"]) == 1


def test_activate_unknown_model_is_404():
    r = client.post("/training/models/nope/activate")
    assert r.status_code == 404


def test_bad_scope_is_400():
    r = client.get("/training/models/state", params={"scope": "everywhere"})
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"


def test_decision_hook_and_auto_training_status(db, make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    apps = generate_history(db, s, 30)

    r = client.post(f"/training/decisions/{apps[-1].id}")
    assert r.status_code == 200, r.text
    [entry] = r.json()["entries"]
    assert entry["type"] == "success"
    assert entry["scope"] == scholarship_scope(s.id)

    status = client.get("/training/auto/status").json()
    assert status["enabled"] is True
    assert status["decision_counter"] == 1
    assert status["config"]["global_retrain_interval"] == 10
    assert status["decisions_until_global_retrain"] == 9

    log = client.get("/training/auto/log", params={"limit": 5}).json()
    assert [e["model_id"] for e in log] == [entry["model_id"]]


# -------------------------
# OPS / EVENTS
# -------------------------
def test_health_reports_missing_then_present_global_model():
    r = client.get("/ops/health")
    assert r.status_code == 200
    assert r.json()["checks"] == {"database": "ok", "global_model": "missing"}

    client.post("/training/reset")
    assert client.get("/ops/health").json()["checks"]["global_model"] == "ok"


def test_model_metadata():
    client.post("/training/reset")
    data = client.get("/ops/meta/models").json()
    assert data["features"][0] == "gwaScore"
    assert len(data["active_models"]) == 1
    assert data["active_models"][0]["scope"] == GLOBAL_SCOPE
    assert len(data["active_models"][0]["weights_hash"]) == 16


def test_recent_events():
    client.post("/training/reset", params={"actor": "admin"})
    client.post("/predictions/probability", json={"scholarship_id": "nope", "applicant": APPLICANT})

    events = client.get("/events/recent").json()
    actions = [e["action"] for e in events]
    assert "RESET_MODEL" in actions
    assert "PREDICTION_DEGRADED" in actions

    scoped = client.get("/events/recent", params={"scope": GLOBAL_SCOPE}).json()
    assert [e["action"] for e in scoped] == ["RESET_MODEL"]
    assert scoped[0]["payload"]["actor"] == "admin"
