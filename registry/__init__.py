from registry.model import (
    ExtensionElement,
    PlanItemDefinition,
    PlanItem,
    Stage,
    Case,
    CaseModel,
    CaseDefinition,
    get_extension_value,
)
from registry.provider import (
    DefinitionModelProvider,
    InMemoryDefinitionProvider,
    YamlDefinitionProvider,
    DefinitionLoadError,
    build_case_model,
)
from registry.schemas import CaseModelDocument

__all__ = [
    "ExtensionElement",
    "PlanItemDefinition",
    "PlanItem",
    "Stage",
    "Case",
    "CaseModel",
    "CaseDefinition",
    "get_extension_value",
    "DefinitionModelProvider",
    "InMemoryDefinitionProvider",
    "YamlDefinitionProvider",
    "DefinitionLoadError",
    "build_case_model",
    "CaseModelDocument",
]
