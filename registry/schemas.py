"""
Case History - Definition Document Schemas

Validation contracts for case definitions authored as YAML. A document
describes one deployment resource: a version and one or more cases,
each with a plan model stage of nested plan item definitions.

Example:

    version: 3
    cases:
      - id: claimReview
        name: Claim review
        plan_model:
          id: claimPlanModel
          extension_elements:
            historyLevel: task
          plan_item_definitions:
            - id: assessClaim
              type: human_task
              extension_elements:
                includeInHistory: "true"
          plan_items:
            - id: planItemAssess
              definition_ref: assessClaim
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def _normalize_extensions(value: Optional[dict[str, Any]]) -> dict[str, list[str]]:
    """Scalars become one-element lists; every text is a string."""
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValueError(
            f"extension_elements must be a mapping of name to value(s), got {type(value).__name__}"
        )
    normalized: dict[str, list[str]] = {}
    for name, raw in value.items():
        items = raw if isinstance(raw, list) else [raw]
        texts = []
        for item in items:
            if isinstance(item, bool):
                texts.append("true" if item else "false")
            elif item is None:
                texts.append("")
            else:
                texts.append(str(item))
        normalized[str(name)] = texts
    return normalized


class PlanItemDocument(BaseModel):
    """A plan item inside a stage, pointing at a definition by id."""
    id: str = Field(description="Plan item id, unique within the model")
    name: str = Field(default="")
    definition_ref: str = Field(description="Id of the wrapped plan item definition")
    extension_elements: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("extension_elements", mode="before")
    @classmethod
    def normalize_extensions(cls, value: Any) -> dict[str, list[str]]:
        return _normalize_extensions(value)


class PlanItemDefinitionDocument(BaseModel):
    """A plan item definition. Stages nest further definitions and plan items."""
    id: str = Field(description="Definition id, unique within the model")
    name: str = Field(default="")
    type: str = Field(default="task", description="human_task, milestone, stage, ...")
    extension_elements: dict[str, list[str]] = Field(default_factory=dict)
    plan_item_definitions: list["PlanItemDefinitionDocument"] = Field(default_factory=list)
    plan_items: list[PlanItemDocument] = Field(default_factory=list)

    @field_validator("extension_elements", mode="before")
    @classmethod
    def normalize_extensions(cls, value: Any) -> dict[str, list[str]]:
        return _normalize_extensions(value)


class CaseDocument(BaseModel):
    id: str = Field(description="Case id; becomes the definition key")
    name: str = Field(default="")
    definition_id: Optional[str] = Field(
        default=None,
        description="Explicit definition id; defaults to '<key>:<version>'",
    )
    plan_model: PlanItemDefinitionDocument

    @field_validator("plan_model", mode="before")
    @classmethod
    def _plan_model_is_stage(cls, value: Any) -> Any:
        if isinstance(value, dict):
            value = {**value, "type": "stage"}
        return value


class CaseModelDocument(BaseModel):
    """One deployment resource."""
    version: int = Field(default=1, ge=1)
    tenant_id: str = Field(default="")
    target_namespace: str = Field(default="")
    cases: list[CaseDocument] = Field(min_length=1)


PlanItemDefinitionDocument.model_rebuild()
