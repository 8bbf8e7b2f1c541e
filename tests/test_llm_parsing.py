import json

import pytest

from prom2grafana.errors import ResponseParseError
from prom2grafana.llm_parsing import _json_from_text, parse_dashboard_response


def _doc(**overrides):
    doc = {"grafana_dashboard": '{"title": "x"}', "prometheus_alerts": "groups: []"}
    doc.update(overrides)
    return doc


def test_plain_json():
    out = parse_dashboard_response(json.dumps(_doc()))
    assert out.grafana_dashboard == '{"title": "x"}'
    assert out.prometheus_alerts == "groups: []"


def test_fenced_block_with_prose():
    text = "Sure! Here is the result:\n```json\n" + json.dumps(_doc()) + "\n```\nEnjoy."
    assert parse_dashboard_response(text).prometheus_alerts == "groups: []"


def test_balanced_slice_ignores_braces_in_strings():
    inner = json.dumps(_doc(prometheus_alerts="expr: rate(x{job=\"a\"}[5m]) } {"))
    text = "result: " + inner + " trailing"
    assert "rate(x" in parse_dashboard_response(text).prometheus_alerts


def test_trailing_comma_is_repaired():
    text = '{"grafana_dashboard": "{}", "prometheus_alerts": "a",}'
    assert parse_dashboard_response(text).grafana_dashboard == "{}"


def test_dashboard_object_is_serialized():
    out = parse_dashboard_response(json.dumps(_doc(grafana_dashboard={"title": "obj", "panels": []})))
    assert json.loads(out.grafana_dashboard) == {"title": "obj", "panels": []}


def test_extra_fields_are_ignored():
    out = parse_dashboard_response(json.dumps(_doc(notes="ignored")))
    assert not hasattr(out, "notes")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "no json here",
        "[1, 2, 3]",
        json.dumps({"grafana_dashboard": "x"}),
        json.dumps({"prometheus_alerts": "x"}),
        json.dumps(_doc(prometheus_alerts={"groups": []})),
        json.dumps(_doc(grafana_dashboard=42)),
        '{"grafana_dashboard": "{\\"title\\": ',
    ],
)
def test_rejects_unusable_content(text):
    with pytest.raises(ResponseParseError):
        parse_dashboard_response(text)


def test_json_from_text_prefers_json_fence():
    text = "```\nnot it\n```\n```json\n{\"a\": 1}\n```"
    assert _json_from_text(text) == {"a": 1}
