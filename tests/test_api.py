import json

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from rule_book import RuleBook


def _mk_client(rule_book=None):
    app = create_app(Settings(), rule_book or RuleBook())
    return TestClient(app)


SALES = {
    "designation": "Sales Associate",
    "basic": {"percentageOfGross": 50},
    "hra": {"percentageOfBasic": 40},
    "conveyance": 1600,
    "medical": 1250,
    "statutoryBonus": 0,
}


def test_root():
    res = _mk_client().get("/")
    assert res.status_code == 200
    assert res.json() == {"message": "CTC Calculator API Running"}


def test_breakdown_default_rule():
    res = _mk_client().post("/api/ctc/breakdown", json={"amount": 600000})
    assert res.status_code == 200

    body = res.json()
    annual = body["annual"]
    assert annual["gross"] == pytest.approx(600000 / 1.048)
    assert annual["basic"] == pytest.approx(annual["gross"] * 0.4)
    assert annual["employeeESI"] == 0
    assert annual["employeePF"] == pytest.approx(annual["basic"] * 0.12)
    assert annual["netSalary"] == pytest.approx(annual["gross"] - annual["totalDeductions"])
    assert body["monthly"]["gross"] == pytest.approx(annual["gross"] / 12)


@pytest.mark.parametrize("amount", ["abc", 0, -10, None])
def test_breakdown_invalid_amount_is_all_zero(amount):
    res = _mk_client().post("/api/ctc/breakdown", json={"amount": amount})
    assert res.status_code == 200
    for period in res.json().values():
        assert all(v == 0 for v in period.values())


def test_breakdown_with_inline_rule():
    res = _mk_client().post("/api/ctc/breakdown", json={"amount": 900000, "rule": SALES})
    annual = res.json()["annual"]

    assert annual["basic"] == pytest.approx(annual["gross"] * 0.5)
    assert annual["conveyance"] == 1600 * 12
    assert annual["medical"] == 1250 * 12


def test_breakdown_by_designation():
    client = _mk_client()
    assert client.put("/api/salary-rules", json=SALES).status_code == 201

    annual = client.post("/api/ctc/breakdown", json={"amount": 900000, "designation": "Sales Associate"}).json()["annual"]
    assert annual["basic"] == pytest.approx(annual["gross"] * 0.5)

    # Unknown designation quietly falls back to the default rule
    annual = client.post("/api/ctc/breakdown", json={"amount": 900000, "designation": "Astronaut"}).json()["annual"]
    assert annual["basic"] == pytest.approx(annual["gross"] * 0.4)


def test_breakdown_rounding():
    res = _mk_client().post("/api/ctc/breakdown", json={"amount": 600000, "roundTo": 2})
    annual = res.json()["annual"]
    assert annual["gross"] == pytest.approx(600000 / 1.048, abs=0.005)
    assert annual["gross"] == round(annual["gross"], 2)

    res = _mk_client().post("/api/ctc/breakdown", json={"amount": 600000, "roundTo": 9})
    assert res.status_code == 422


def test_from_net_salary():
    res = _mk_client().post("/api/ctc/from-net-salary", json={"amount": 30000})
    assert res.status_code == 200

    body = res.json()
    assert body["monthly"]["netSalary"] == pytest.approx(30000, abs=0.01)
    assert body["annual"]["ctc"] == pytest.approx(body["monthly"]["ctc"] * 12)


def test_quick_modes():
    client = _mk_client()
    annual = client.post("/api/ctc/quick", json={"amount": 600000, "mode": "annual"}).json()
    monthly = client.post("/api/ctc/quick", json={"amount": 50000, "mode": "monthly"}).json()
    in_hand = client.post("/api/ctc/quick", json={"amount": 30000, "mode": "in-hand"}).json()

    assert monthly == annual
    assert in_hand["monthly"]["netSalary"] == pytest.approx(30000, abs=0.01)


def test_quick_rejects_unknown_mode():
    res = _mk_client().post("/api/ctc/quick", json={"amount": 600000, "mode": "weekly"})
    assert res.status_code == 422


def test_rule_crud():
    client = _mk_client()

    res = client.put("/api/salary-rules", json=SALES)
    assert res.status_code == 201
    assert res.json()["basic"] == {"percentageOfGross": 50}

    updated = dict(SALES, basic={"percentageOfGross": 45})
    assert client.put("/api/salary-rules", json=updated).status_code == 200

    rules = client.get("/api/salary-rules").json()
    assert [r["designation"] for r in rules] == ["Sales Associate"]

    one = client.get("/api/salary-rules/Sales Associate").json()
    assert one["basic"]["percentageOfGross"] == 45
    assert one["statutoryBonus"] == 0

    assert client.get("/api/salary-rules/Cashier").status_code == 404
    assert client.delete("/api/salary-rules/Sales Associate").status_code == 204
    assert client.delete("/api/salary-rules/Sales Associate").status_code == 404
    assert client.get("/api/salary-rules").json() == []


def test_rule_without_designation_is_rejected():
    res = _mk_client().put("/api/salary-rules", json={"designation": " ", "basic": {"percentageOfGross": 40}})
    assert res.status_code == 422


def test_rules_seeded_from_file(tmp_path, monkeypatch):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([SALES]))
    monkeypatch.setenv("SALARY_RULES_FILE", str(path))

    client = TestClient(create_app(Settings()))
    assert [r["designation"] for r in client.get("/api/salary-rules").json()] == ["Sales Associate"]


def test_breakdown_with_negative_basic_share_is_all_zero():
    rule = {"designation": "Neg", "basic": {"percentageOfGross": -833.3333333333334}}
    res = _mk_client().post("/api/ctc/breakdown", json={"amount": 1_000_000, "rule": rule})

    assert res.status_code == 200
    for period in res.json().values():
        assert all(v == 0 for v in period.values())
