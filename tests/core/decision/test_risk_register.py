# tests/core/decision/test_risk_register.py
"""
Testes do registro de riscos (exposure = probability × impact).

Invariantes:
    - Ranking por exposição decrescente, empates por id
    - Exposição total é a soma das exposições
"""

import pytest

try:
    from atlas_reasoning.decision import assess_risks, coerce_risks
    from atlas_reasoning.core.exceptions import DocumentInvalid
except Exception as e:  # noqa: BLE001
    assess_risks = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing risk register. Implement:\n"
            "- src/atlas_reasoning/decision/risks.py (assess_risks)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_ranking_and_total_exposure(risk_register):
    _require_imports()
    report = assess_risks(risk_register)

    assert [r.risk_id for r in report.ranked] == ["vendor_delay", "key_person", "scope_creep", "outage"]
    assert report.total_exposure == pytest.approx(2.05)
    assert report.by_severity() == {
        "high": ["vendor_delay", "key_person", "scope_creep"],
        "medium": [],
        "low": ["outage"],
    }


def test_custom_thresholds_and_serialization(risk_register):
    """
    Limiares do chamador substituem os padrões.

    Invariantes:
        - 0.5 < high=0.8 ⇒ medium
    """
    _require_imports()
    report = assess_risks(risk_register, thresholds={"high": 0.8})
    assert report.severity["key_person"] == "medium"
    assert report.severity["vendor_delay"] == "high"

    payload = report.to_dict()
    assert payload["ranked"][0]["id"] == "vendor_delay"
    assert payload["ranked"][0]["mitigation"] == "second supplier"
    assert payload["thresholds"] == {"high": 0.8, "medium": 0.2}
    assert list(report.frame["id"]) == ["vendor_delay", "key_person", "scope_creep", "outage"]


def test_mapping_form_uses_keys_as_ids():
    _require_imports()
    risks = coerce_risks({"late": {"probability": 0.5, "impact": 1}})
    assert risks[0].risk_id == "late"
    assert risks[0].exposure == 0.5


def test_invalid_risks_raise():
    _require_imports()
    with pytest.raises(DocumentInvalid):
        assess_risks([{"id": "x", "probability": 1.5, "impact": 1}])
    with pytest.raises(DocumentInvalid):
        assess_risks([{"id": "x", "probability": 0.1, "impact": 1}, {"id": "x", "probability": 0.2, "impact": 1}])
    with pytest.raises(DocumentInvalid):
        assess_risks([{"id": "x", "probability": 0.1}])
