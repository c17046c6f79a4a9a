# src/xml_introspect/model.py
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from xml_introspect.dom.core import Element
from xml_introspect.dom.models import StructuralProfile
from xml_introspect.managers.config_manager import config_manager


class SamplingStrategy(str, Enum):
    PRESERVE_ALL_TYPES = "preserve-all-types"
    BALANCED = "balanced"
    RANDOM = "random"
    FIRST = "first"


class FormDefault(str, Enum):
    QUALIFIED = "qualified"
    UNQUALIFIED = "unqualified"


def _from_settings(section: str, overrides: Dict[str, Any]) -> Dict[str, Any]:
    settings = config_manager.get_section(section)
    settings.update({key: value for key, value in overrides.items() if value is not None})
    return settings


class RequiredChildRule(BaseModel):
    """
    A child a sampled element must carry to stay valid in its vocabulary.
    '{name}' placeholders in attribute values and text are filled from the
    parent's attributes ('sample' when the parent lacks that attribute).
    """
    tag: str
    attributes: Dict[str, str] = Field(default_factory=dict)
    text: Optional[str] = None


class SamplingOptions(BaseModel):
    max_elements: int = 100
    max_depth: int = 5
    strategy: SamplingStrategy = SamplingStrategy.BALANCED
    preserve_attributes: bool = True
    preserve_relationships: bool = True
    preserve_all_types: bool = True
    element_type_limits: Dict[str, int] = Field(default_factory=dict)
    candidate_multiplier: int = 10
    candidate_ceiling: int = 10000
    random_seed: Optional[int] = None
    id_attribute: str = "id"
    relationship_attributes: List[str] = Field(default_factory=lambda: ["synset", "target", "members"])

    @property
    def candidate_budget(self) -> int:
        """How many candidates selection may examine before it gives up."""
        return max(1, min(self.max_elements * self.candidate_multiplier, self.candidate_ceiling))

    @classmethod
    def from_config(cls, **overrides) -> 'SamplingOptions':
        """Defaults from the 'sampling' settings section; non-None keyword overrides win."""
        return cls(**_from_settings("sampling", overrides))


class SchemaOptions(BaseModel):
    target_namespace: Optional[str] = "http://example.com/schema"
    element_form: FormDefault = FormDefault.QUALIFIED
    attribute_form: FormDefault = FormDefault.UNQUALIFIED

    @classmethod
    def from_config(cls, **overrides) -> 'SchemaOptions':
        return cls(**_from_settings("schema", overrides))


class SelectionResult(BaseModel):
    elements: List[Element] = Field(default_factory=list)
    unresolved_references: List[str] = Field(default_factory=list)
    candidates_processed: int = 0
    synthesized_children: int = 0


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    # True when only well-formedness could be checked
    fallback: bool = False


class DecodeResult(BaseModel):
    """Outcome of turning raw (possibly compressed or archived) bytes into XML text."""
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None
    content_type: str = "unknown"
    confidence: str = "low"
    processing_steps: List[str] = Field(default_factory=list)
    original_size: int = 0
    final_size: int = 0
    extracted_files: List[Dict[str, Any]] = Field(default_factory=list)
    processing_time: float = 0.0


class IntrospectionResult(BaseModel):
    profile: StructuralProfile
    selection: SelectionResult
    sample_xml: str
    xsd: str
    validation: Optional[ValidationResult] = None
    timings: Dict[str, float] = Field(default_factory=dict)
