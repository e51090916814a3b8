# src/core/models.py — v1
"""Core domain models: descriptors, operations, transformation paths, verdicts.

Shapes that arrive from the inference oracle (paths, operations, validation
verdicts) accept both snake_case and camelCase keys; everything is serialized
back in snake_case.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)
from pydantic.alias_generators import to_camel

OnError = Literal["passthrough", "raise"]


class OracleModel(BaseModel):
    """Base for models parsed from oracle JSON (snake_case or camelCase keys)."""

    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        extra="ignore",
    )


# === DESCRIPTORS ===


class AttributeSpec(OracleModel):
    """Definition of a single attribute of a data shape."""

    type: str = "string"
    description: str = ""
    format: str | None = None
    constraints: list[str] = Field(default_factory=list)


class SemanticDescriptor(OracleModel):
    """Typed description of a data shape, used as a cache/lookup key."""

    model_config = ConfigDict(frozen=True)

    entity: str
    description: str = ""
    attributes: dict[str, AttributeSpec] = Field(default_factory=dict)
    capabilities: list[str] = Field(default_factory=list)
    vector: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def canonical_json(self) -> str:
        """Canonical JSON of the shape-defining fields (vector/metadata excluded)."""
        payload = self.model_dump(
            mode="json", include={"entity", "description", "attributes", "capabilities"}
        )
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))

    def fingerprint(self) -> str:
        """SHA-256 over the canonical JSON."""
        return hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()


# === OPERATIONS ===


class FormatParams(OracleModel):
    format: str | None = None


class ConvertParams(OracleModel):
    target_type: str | None = None


class LlmParams(OracleModel):
    instruction: str | None = None


class MergeSource(OracleModel):
    path: str | None = None
    target: str | None = None


class MergeParams(OracleModel):
    sources: list[MergeSource] = Field(default_factory=list)


class FilterParams(OracleModel):
    paths: list[str] = Field(default_factory=list)


class ComputeParams(OracleModel):
    target: str | None = None
    expression: str | None = None
    inputs: dict[str, str] = Field(default_factory=dict)


class FormatOperation(OracleModel):
    """String formatting: uppercase, lowercase, capitalize, trim."""

    type: Literal["format"] = "format"
    params: FormatParams = Field(default_factory=FormatParams)
    on_error: OnError = "passthrough"


class ConvertOperation(OracleModel):
    """Type coercion: string, number, boolean, date, array."""

    type: Literal["convert"] = "convert"
    params: ConvertParams = Field(default_factory=ConvertParams)
    on_error: OnError = "passthrough"


class LlmOperation(OracleModel):
    """Free-form value rewrite by the oracle following an instruction."""

    type: Literal["llm"] = "llm"
    params: LlmParams = Field(default_factory=LlmParams)
    on_error: OnError = "passthrough"


class MergeOperation(OracleModel):
    """Copy already-computed result values to other result paths."""

    type: Literal["merge"] = "merge"
    params: MergeParams = Field(default_factory=MergeParams)
    on_error: OnError = "passthrough"


class FilterOperation(OracleModel):
    """Delete result paths, pruning emptied parents."""

    type: Literal["filter"] = "filter"
    params: FilterParams = Field(default_factory=FilterParams)
    on_error: OnError = "passthrough"


class ComputeOperation(OracleModel):
    """Evaluate an expression over inputs taken from the original data."""

    type: Literal["compute"] = "compute"
    params: ComputeParams = Field(default_factory=ComputeParams)
    on_error: OnError = "passthrough"


class UnknownOperation(OracleModel):
    """Any operation type this engine does not implement; skipped at runtime."""

    type: str
    params: dict[str, Any] = Field(default_factory=dict)
    on_error: OnError = "passthrough"


OPERATION_TYPES = frozenset({"format", "convert", "llm", "merge", "filter", "compute"})


def _operation_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in OPERATION_TYPES else "unknown"


Operation = Annotated[
    Union[
        Annotated[FormatOperation, Tag("format")],
        Annotated[ConvertOperation, Tag("convert")],
        Annotated[LlmOperation, Tag("llm")],
        Annotated[MergeOperation, Tag("merge")],
        Annotated[FilterOperation, Tag("filter")],
        Annotated[ComputeOperation, Tag("compute")],
        Annotated[UnknownOperation, Tag("unknown")],
    ],
    Discriminator(_operation_tag),
]


# === TRANSFORMATION PATHS ===


class FieldMapping(OracleModel):
    """Copy the value at `source` (in the input) to `target` (in the result)."""

    source: str
    target: str
    transform: Operation | None = None


def _new_path_id() -> str:
    return f"path_{uuid.uuid4().hex[:12]}"


class TransformationPath(OracleModel):
    """A recipe converting data of one descriptor's shape into another's.

    Immutable once produced by the engine. The cache attaches its bookkeeping
    fields (cache_id, usage_count, last_used, created_at) on retrieval.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_path_id)
    source_descriptor: SemanticDescriptor | None = None
    target_descriptor: SemanticDescriptor | None = None
    mappings: list[FieldMapping] = Field(default_factory=list)
    transformations: list[Operation] = Field(default_factory=list)
    intermediate_steps: list[Any] = Field(default_factory=list)
    recommended_strategy: str | None = None
    complexity: float | None = None
    estimated_latency: float | None = None

    # Cache bookkeeping
    cache_id: str | None = None
    usage_count: int | None = None
    last_used: datetime | None = None
    created_at: datetime | None = None

    @property
    def mapped_targets(self) -> set[str]:
        """Target path expressions written by this path's mappings."""
        return {m.target for m in self.mappings}

    def recipe(self) -> dict[str, Any]:
        """Mappings and transformations only, as plain JSON-compatible data."""
        return self.model_dump(
            mode="json", include={"mappings", "transformations", "recommended_strategy"}
        )


# === VERDICTS ===


class ValidationIssue(OracleModel):
    field: str | None = None
    description: str = ""
    severity: str = "error"


class ValidationResult(OracleModel):
    """Oracle verdict on whether a result fits its target descriptor."""

    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    confidence: float | None = None

    @field_validator("issues", mode="before")
    @classmethod
    def coerce_issue_strings(cls, v: Any) -> Any:  # noqa: N805
        if v is None:
            return []
        if isinstance(v, list):
            return [{"description": i} if isinstance(i, str) else i for i in v]
        return v


class QualityEvaluation(OracleModel):
    """Scores (0-100) for a completed transformation."""

    semantic_preservation: float = 0.0
    structural_adaptability: float = 0.0
    information_completeness: float = 0.0
    overall_quality: float = 0.0
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    strategy: str | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# === MONITORING ===


class TransformationEvent(BaseModel):
    """Monitoring event emitted on every translation branch."""

    kind: Literal["cache-hit", "derived", "coalesced", "failed"]
    source_module: str
    target_module: str
    strategy: str
    latency_ms: int
    success: bool
    cache_id: str | None = None
    review_id: str | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TranslationOutcome(BaseModel):
    """What a translation produced and how."""

    data: Any = None
    kind: Literal["cache-hit", "derived", "coalesced"]
    source_module: str
    target_module: str
    strategy: str
    latency_ms: int
    cache_id: str | None = None
    review_id: str | None = None
    request_id: str | None = None
