"""
Schema Registry - Entity Kind to Schema Mapping

This module is the single source of truth mapping each EntityKind to its
Pydantic model. The registry is pure: no I/O, no randomness.

It answers three questions:
    1. Which model type describes this entity?      → schema_for()
    2. What JSON schema should shape model output?  → json_schema_for() / response_format_for()
    3. Does this candidate object satisfy it?       → validate()

Pipeline Position:
    Prompt Builder ──uses──▶ [SchemaRegistry] ◀──uses── Entity Generators
                              ^^^^^^^^^^^^^^
                              You are here
"""

from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from medical_record_generation.core.enums import EntityKind
from medical_record_generation.core.exceptions import UnregisteredEntityError
from medical_record_generation.core.models import ValidationOutcome
from medical_record_generation.schema.entities import (
    CMS1500Claim,
    InsuranceInfo,
    InsurancePolicy,
    LaboratoryReport,
    MedicalHistory,
    Patient,
    Provider,
    VisitReport,
    VisitReportCollection,
)


# =============================================================================
# STAGE 1: DEFAULT REGISTRATIONS
# =============================================================================

DEFAULT_SCHEMAS: Dict[EntityKind, Type[BaseModel]] = {
    EntityKind.PATIENT: Patient,
    EntityKind.PROVIDER: Provider,
    EntityKind.INSURANCE: InsuranceInfo,
    EntityKind.CMS1500: CMS1500Claim,
    EntityKind.INSURANCE_POLICY: InsurancePolicy,
    EntityKind.VISIT_REPORT: VisitReport,
    EntityKind.VISIT_REPORTS: VisitReportCollection,
    EntityKind.MEDICAL_HISTORY: MedicalHistory,
    EntityKind.LAB_REPORT: LaboratoryReport,
}


def format_validation_errors(error: ValidationError) -> List[str]:
    """
    Flatten a Pydantic ValidationError into "path: message" strings.

    Paths use the camelCase aliases the model sees, joined with dots;
    list positions appear as numbers (``results.0.flag``). Errors raised by
    model-level checks have an empty location and are reported as ``root``.
    """
    messages = []
    for detail in error.errors():
        path = ".".join(str(part) for part in detail.get("loc", ())) or "root"
        messages.append(f"{path}: {detail.get('msg', 'invalid value')}")
    return messages


def response_format_for_model(
    model: Type[BaseModel], schema: Optional[Dict[str, Any]] = None, strict: bool = False
) -> Dict[str, Any]:
    """OpenAI ``json_schema`` response format named ``<Model>Response``."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": f"{model.__name__}Response",
            "schema": schema if schema is not None else model.model_json_schema(by_alias=True),
            "strict": strict,
        },
    }


# =============================================================================
# STAGE 2: REGISTRY
# =============================================================================


class SchemaRegistry:
    """
    Maps entity kinds to their structural definitions.

    What it does:
        Resolves the model type for an entity kind, renders its JSON schema,
        and validates candidate objects without ever raising.

    Why it exists:
        1. Generators, prompt builder and tests agree on one schema per kind
        2. Validation errors come back as data, so callers decide what to raise

    When to use:
        - Generators validate parsed model output through it
        - The prompt builder embeds json_schema_for() in prompts

    Example:
        >>> registry = SchemaRegistry()
        >>> outcome = registry.validate(EntityKind.PROVIDER, {"name": "Dr. A"})
        >>> outcome.valid
        False
        >>> any(e.startswith("npi:") for e in outcome.errors)
        True
    """

    def __init__(self, schemas: Optional[Mapping[EntityKind, Type[BaseModel]]] = None):
        self._schemas: Dict[EntityKind, Type[BaseModel]] = dict(schemas or DEFAULT_SCHEMAS)
        self._json_schemas: Dict[EntityKind, Dict[str, Any]] = {}

    # =========================================================================
    # STAGE 2.1: LOOKUP
    # =========================================================================

    def schema_for(self, entity_kind: EntityKind) -> Type[BaseModel]:
        """
        Return the model type registered for ``entity_kind``.

        Raises:
            UnregisteredEntityError: If the kind has no schema (programming error)
        """
        try:
            return self._schemas[entity_kind]
        except KeyError:
            raise UnregisteredEntityError(str(getattr(entity_kind, "value", entity_kind)))

    def json_schema_for(self, entity_kind: EntityKind) -> Dict[str, Any]:
        """JSON schema (camelCase property names) for ``entity_kind``, memoized."""
        if entity_kind not in self._json_schemas:
            model = self.schema_for(entity_kind)
            self._json_schemas[entity_kind] = model.model_json_schema(by_alias=True)
        return self._json_schemas[entity_kind]

    def response_format_for(self, entity_kind: EntityKind, strict: bool = False) -> Dict[str, Any]:
        """
        Structured-output ``response_format`` for endpoints that support it.

        The completion client defaults to plain JSON mode; generators send
        this wrapper when ``ModelEndpointConfig.structured_outputs`` is set.
        """
        model = self.schema_for(entity_kind)
        return response_format_for_model(model, self.json_schema_for(entity_kind), strict)

    @property
    def entity_kinds(self) -> List[EntityKind]:
        return list(self._schemas)

    # =========================================================================
    # STAGE 2.2: VALIDATION
    # =========================================================================

    def validate(self, entity_kind: EntityKind, candidate: Any) -> ValidationOutcome:
        """
        Validate ``candidate`` against the schema for ``entity_kind``.

        Never raises for bad candidates. An unregistered kind still raises
        UnregisteredEntityError since that is a programming error.

        Returns:
            ValidationOutcome with the model instance, or "path: message" errors
        """
        model = self.schema_for(entity_kind)
        if not isinstance(candidate, dict):
            return ValidationOutcome(
                valid=False, errors=[f"root: expected object, got {type(candidate).__name__}"]
            )
        try:
            return ValidationOutcome(valid=True, data=model.model_validate(candidate))
        except ValidationError as e:
            return ValidationOutcome(valid=False, errors=format_validation_errors(e))


# =============================================================================
# STAGE 3: MODULE-LEVEL CONVENIENCE
# =============================================================================

default_registry = SchemaRegistry()


def schema_for(entity_kind: EntityKind) -> Type[BaseModel]:
    """Shortcut for ``default_registry.schema_for``."""
    return default_registry.schema_for(entity_kind)


def validate(entity_kind: EntityKind, candidate: Any) -> ValidationOutcome:
    """Shortcut for ``default_registry.validate``."""
    return default_registry.validate(entity_kind, candidate)
