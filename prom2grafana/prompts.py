from __future__ import annotations

from pathlib import Path

_GUIDE_PATH = Path(__file__).with_name("grafana_dashboard_prompt.md")


def load_dashboard_guide(path: Path = _GUIDE_PATH) -> str:
    return path.read_text(encoding="utf-8").strip()


def build_system_prompt(guide: str) -> str:
    """Wrap the authoring guide with the role and the two-field output contract."""
    return (
        "You are an expert Site-Reliability Engineer who specializes in Grafana dashboards "
        "and Prometheus-based alerting.\n\n"
        f"{guide}\n\n"
        "The user will paste a block of Prometheus metric samples.\n\n"
        "You must generate a JSON response with two fields:\n\n"
        '1. "grafana_dashboard" - A complete Grafana dashboard JSON as a STRING (not an object). '
        "The dashboard must be a valid JSON string that can be imported into Grafana based on "
        "the documentation above.\n\n"
        '2. "prometheus_alerts" - Prometheus alerts in YAML format as a STRING. Include:\n'
        "   - Meaningful alert rules based on the metrics\n"
        "   - Annotations with summary and description\n"
        "   - Labels with severity: warning or critical\n"
        "   - Appropriate thresholds based on metric types\n\n"
        "IMPORTANT: The grafana_dashboard field must contain the ENTIRE dashboard JSON as a string, "
        "not just a number or placeholder."
    )


SYSTEM_PROMPT = build_system_prompt(load_dashboard_guide())
