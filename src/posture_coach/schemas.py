"""
Pydantic models for classification results, rule results and the API contract.

Python code uses snake_case attribute names; the wire format is camelCase to
match the mobile client (``predictedClass``, ``formConfidence``, ...).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FormConfidenceStatus(str, Enum):
    """Why ``form_confidence`` has (or lacks) a value."""
    AVAILABLE = "available"
    NOT_APPLICABLE = "not_applicable"   # predicted class is "rest"
    UNREADABLE = "unreadable"           # second output present but unreadable
    ABSENT = "absent"                   # model has a single output


# ============================================================================
# Pipeline models
# ============================================================================

class ClassificationResult(BaseModel):
    """Output of the inference engine after softmax and label lookup."""
    model_config = ConfigDict(populate_by_name=True)

    predicted_class: str = Field(alias="predictedClass")
    score: float = Field(description="Probability of the predicted class")
    probabilities: list[float]
    class_names: list[str] = Field(alias="classNames")
    form_confidence: Optional[float] = Field(
        default=None, alias="formConfidence", ge=0.0, le=1.0
    )
    form_confidence_status: FormConfidenceStatus = Field(
        default=FormConfidenceStatus.ABSENT, alias="formConfidenceStatus"
    )


class RuleResult(BaseModel):
    """Form flags and coaching messages for one frame.

    Flags are a set, so a condition is reported once even if two rules raise
    it. Messages keep evaluation order.
    """
    flags: set[str] = Field(default_factory=set)
    messages: list[str] = Field(default_factory=list)

    def add(self, flag: str, message: str) -> None:
        self.flags.add(flag)
        self.messages.append(message)

    def note(self, message: str) -> None:
        """Append a message that carries no flag."""
        self.messages.append(message)


# ============================================================================
# API models
# ============================================================================

class ClassificationRequest(BaseModel):
    window: Optional[list] = Field(
        default=None,
        description="1 × T × 132 (33 landmarks × x, y, z, visibility); shape is checked by the window assembler",
    )


class PostureResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    predicted_class: str = Field(alias="predictedClass")
    score: float
    probabilities: list[float]
    class_names: list[str] = Field(alias="classNames")
    form_confidence: Optional[float] = Field(default=None, alias="formConfidence")
    form_confidence_status: FormConfidenceStatus = Field(alias="formConfidenceStatus")
    flags: list[str] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error_code: str
    message: str


class HealthResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    status: str
    model_loaded: bool
    sequence_length: Optional[int] = None
    num_classes: Optional[int] = None
