"""Merge classification and posture-rule output into the API response."""

from .schemas import ClassificationResult, PostureResponse, RuleResult


def assemble_response(
    classification: ClassificationResult,
    rules: RuleResult,
) -> PostureResponse:
    """Combine both halves of the pipeline. Pure; no validation.

    Flags are sorted so identical inputs serialize identically.
    """
    return PostureResponse(
        predicted_class=classification.predicted_class,
        score=classification.score,
        probabilities=list(classification.probabilities),
        class_names=list(classification.class_names),
        form_confidence=classification.form_confidence,
        form_confidence_status=classification.form_confidence_status,
        flags=sorted(rules.flags),
        messages=list(rules.messages),
    )
