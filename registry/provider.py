"""
Case History — Definition Model Provider

Resolves a case definition id to its deployed definition and parsed
case model. History resolution only reads through this interface.

Implementations:
  - InMemoryDefinitionProvider: dev/test, models registered in code
  - YamlDefinitionProvider:     definitions authored as YAML files

Parsed models are cached here, keyed by definition id. Callers treat
every lookup as a fresh logical read.

Usage:
    provider = YamlDefinitionProvider("definitions/")
    definition = provider.get_definition("claimReview:3")
    model = provider.get_model("claimReview:3")
"""

from __future__ import annotations

import abc
import logging
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from registry.model import (
    Case,
    CaseDefinition,
    CaseModel,
    PlanItem,
    PlanItemDefinition,
    Stage,
)
from registry.schemas import (
    CaseModelDocument,
    PlanItemDefinitionDocument,
)

logger = logging.getLogger("case_history.registry")


class DefinitionLoadError(Exception):
    """Raised when a definition document cannot be parsed or validated."""
    pass


class DefinitionModelProvider(abc.ABC):
    """Read-only access to deployed case definitions and their models."""

    @abc.abstractmethod
    def get_definition(self, definition_id: str) -> CaseDefinition | None:
        ...

    @abc.abstractmethod
    def get_model(self, definition_id: str) -> CaseModel | None:
        ...

    def list_definitions(self) -> list[CaseDefinition]:
        return []


class InMemoryDefinitionProvider(DefinitionModelProvider):
    """Definitions registered directly. Same process only."""

    def __init__(self):
        self._definitions: dict[str, CaseDefinition] = {}
        self._models: dict[str, CaseModel] = {}
        self._lock = threading.Lock()

    def register(self, definition: CaseDefinition, model: CaseModel) -> None:
        with self._lock:
            self._definitions[definition.id] = definition
            self._models[definition.id] = model

    def get_definition(self, definition_id: str) -> CaseDefinition | None:
        return self._definitions.get(definition_id)

    def get_model(self, definition_id: str) -> CaseModel | None:
        return self._models.get(definition_id)

    def list_definitions(self) -> list[CaseDefinition]:
        return list(self._definitions.values())


class YamlDefinitionProvider(DefinitionModelProvider):
    """
    Loads case definition documents from ``*.yaml`` / ``*.yml`` files.

    The directory is scanned lazily on first lookup. A file that fails
    validation during the scan is logged and skipped; the remaining
    definitions stay available. Concurrent first lookups wait for the
    scan to finish.
    """

    def __init__(self, definitions_dir: str | Path | None = None):
        self.definitions_dir = Path(definitions_dir) if definitions_dir else None
        self._definitions: dict[str, CaseDefinition] = {}
        self._models: dict[str, CaseModel] = {}
        self._lock = threading.Lock()
        self._scan_lock = threading.Lock()
        self._scanned = definitions_dir is None

    # ─── Loading ─────────────────────────────────────────────────────

    def load_file(self, path: str | Path) -> list[CaseDefinition]:
        """Parse one YAML file and deploy its cases. Raises DefinitionLoadError."""
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise DefinitionLoadError(f"Cannot read definition file {path}: {e}") from e
        return self.deploy(raw, resource_name=path.name)

    def deploy(self, raw: Any, resource_name: str = "") -> list[CaseDefinition]:
        """Validate a document dict and register one definition per case."""
        try:
            document = CaseModelDocument.model_validate(raw)
        except ValidationError as e:
            raise DefinitionLoadError(
                f"Invalid case definition document {resource_name or '<inline>'}: {e}"
            ) from e

        model = build_case_model(document)
        deployed = []
        with self._lock:
            for case_doc in document.cases:
                definition = CaseDefinition(
                    id=case_doc.definition_id or f"{case_doc.id}:{document.version}",
                    key=case_doc.id,
                    name=case_doc.name,
                    version=document.version,
                    resource_name=resource_name,
                    tenant_id=document.tenant_id,
                )
                self._definitions[definition.id] = definition
                self._models[definition.id] = model
                deployed.append(definition)

        logger.info(
            "Deployed %d case definition(s) from %s",
            len(deployed), resource_name or "<inline>",
        )
        return deployed

    def _scan(self) -> None:
        if self._scanned:
            return
        with self._scan_lock:
            if self._scanned:
                return
            self._load_directory()
            # Set only once every file has been tried
            self._scanned = True

    def _load_directory(self) -> None:
        if not self.definitions_dir.is_dir():
            logger.warning("Definitions directory not found: %s", self.definitions_dir)
            return
        paths = sorted(
            list(self.definitions_dir.glob("*.yaml")) + list(self.definitions_dir.glob("*.yml"))
        )
        for path in paths:
            try:
                self.load_file(path)
            except DefinitionLoadError as e:
                logger.warning("Skipping definition file %s: %s", path, e)

    def reload(self) -> None:
        """Drop the cache and rescan the directory on next lookup."""
        with self._scan_lock, self._lock:
            self._definitions.clear()
            self._models.clear()
            self._scanned = self.definitions_dir is None

    # ─── Lookup ──────────────────────────────────────────────────────

    def get_definition(self, definition_id: str) -> CaseDefinition | None:
        self._scan()
        return self._definitions.get(definition_id)

    def get_model(self, definition_id: str) -> CaseModel | None:
        self._scan()
        return self._models.get(definition_id)

    def list_definitions(self) -> list[CaseDefinition]:
        self._scan()
        return sorted(self._definitions.values(), key=lambda d: d.id)


# ═══════════════════════════════════════════════════════════════════
# Document → Model
# ═══════════════════════════════════════════════════════════════════

def build_case_model(document: CaseModelDocument) -> CaseModel:
    """Convert a validated document into a linked CaseModel."""
    model = CaseModel(target_namespace=document.target_namespace)
    for case_doc in document.cases:
        plan_model = _build_definition(case_doc.plan_model)
        model.add_case(Case(
            id=case_doc.id,
            name=case_doc.name,
            plan_model=plan_model,
        ))

    unresolved = model.resolve_plan_item_definitions()
    for ref in unresolved:
        logger.warning("Plan item references unknown definition: %s", ref)
    return model


def _build_definition(doc: PlanItemDefinitionDocument) -> PlanItemDefinition:
    if doc.type == "stage" or doc.plan_item_definitions or doc.plan_items:
        node: PlanItemDefinition = Stage(
            id=doc.id,
            name=doc.name,
            plan_items=[
                PlanItem(id=p.id, name=p.name, definition_ref=p.definition_ref)
                for p in doc.plan_items
            ],
            plan_item_definitions=[_build_definition(d) for d in doc.plan_item_definitions],
        )
        for plan_item, plan_item_doc in zip(node.plan_items, doc.plan_items):
            for name, texts in plan_item_doc.extension_elements.items():
                for text in texts:
                    plan_item.add_extension(name, text)
    else:
        node = PlanItemDefinition(id=doc.id, name=doc.name, type=doc.type)

    for name, texts in doc.extension_elements.items():
        for text in texts:
            node.add_extension(name, text)
    return node
