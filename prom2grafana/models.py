from __future__ import annotations

import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConvertRequest(BaseModel):
    # Missing `metrics` decodes to "" so it is reported as empty, not malformed
    metrics: str = Field("", description="Raw Prometheus metric samples")

    @field_validator("metrics", mode="before")
    @classmethod
    def _null_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class ErrorResponse(BaseModel):
    error: str


class DashboardResponse(BaseModel):
    """Structured output requested from the model and returned to the caller."""

    model_config = ConfigDict(extra="ignore")

    grafana_dashboard: str = Field(..., description="Complete Grafana dashboard JSON as a string")
    prometheus_alerts: str = Field(..., description="Prometheus alerts in YAML format")

    @field_validator("grafana_dashboard", mode="before")
    @classmethod
    def _dashboard_object_to_string(cls, v: Any) -> Any:
        # Some models return the dashboard as a nested object despite the schema
        if isinstance(v, (dict, list)):
            return json.dumps(v, ensure_ascii=False, indent=2)
        return v


def response_json_schema() -> Dict[str, Any]:
    """JSON schema for DashboardResponse in the shape chat APIs accept."""
    schema = DashboardResponse.model_json_schema()
    schema.pop("title", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    schema["additionalProperties"] = False
    return schema
