"""
Companion configuration for the exported ONNX model.

The JSON file has gone through two layouts::

    current: {"model": {"sequence_length": 45},
              "classes": {"pose_classes": ["squat", ...]}}
    legacy:  {"time_steps": 30, "class_names": ["squat", ...]}

plus the flat camelCase keys (``sequenceLength``, ``classNames``). Each value
is looked up through an ordered list of key paths and the first match wins.
Values from different layouts are never merged.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_SEQUENCE_LENGTH
from .errors import ModelLoadFailure

logger = logging.getLogger(__name__)

# Priority order: current layout first, legacy last.
SEQUENCE_LENGTH_KEYS: tuple[tuple[str, ...], ...] = (
    ("model", "sequence_length"),
    ("sequenceLength",),
    ("time_steps",),
)
CLASS_NAMES_KEYS: tuple[tuple[str, ...], ...] = (
    ("classes", "pose_classes"),
    ("classNames",),
    ("class_names",),
)

_MISSING = object()


class ModelConfig(BaseModel):
    """Read-only model metadata; governs window validation for the process."""
    model_config = ConfigDict(frozen=True)

    sequence_length: int = Field(gt=0, strict=True)
    class_names: tuple[str, ...] = ()

    @property
    def num_classes(self) -> int:
        return len(self.class_names)

    def class_name(self, index: int, default: str) -> str:
        if 0 <= index < len(self.class_names):
            return self.class_names[index]
        return default


def _resolve(cfg: dict, path: tuple[str, ...]) -> Any:
    node: Any = cfg
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def lookup(cfg: dict, paths: tuple[tuple[str, ...], ...]) -> tuple[Optional[str], Any]:
    """Return ``(dotted_key, value)`` for the first path present in *cfg*.

    Lower-priority paths that hold a different value are reported, not used.
    """
    found_key: Optional[str] = None
    found_value: Any = _MISSING
    for path in paths:
        value = _resolve(cfg, path)
        if value is _MISSING:
            continue
        dotted = ".".join(path)
        if found_key is None:
            found_key, found_value = dotted, value
        elif value != found_value:
            logger.warning(
                "Model config: ignoring '%s'=%r, '%s' takes precedence.",
                dotted, value, found_key,
            )
    if found_key is None:
        return None, None
    return found_key, found_value


def parse_model_config(cfg: Any) -> ModelConfig:
    """Build a :class:`ModelConfig` from an already-decoded JSON object.

    Raises:
        ModelLoadFailure: If the object or its values are malformed.
    """
    if not isinstance(cfg, dict):
        raise ModelLoadFailure(
            f"Model config must be a JSON object, got {type(cfg).__name__}."
        )

    seq_key, sequence_length = lookup(cfg, SEQUENCE_LENGTH_KEYS)
    if seq_key is None:
        logger.warning(
            "Model config has no sequence length; defaulting to %d.",
            DEFAULT_SEQUENCE_LENGTH,
        )
        sequence_length = DEFAULT_SEQUENCE_LENGTH

    names_key, class_names = lookup(cfg, CLASS_NAMES_KEYS)
    if names_key is None:
        logger.warning(
            "Model config has no class names; every prediction will be reported as unknown."
        )
        class_names = ()
    elif not isinstance(class_names, list) or not all(
        isinstance(name, str) for name in class_names
    ):
        raise ModelLoadFailure(f"'{names_key}' must be a list of strings.")

    try:
        parsed = ModelConfig(sequence_length=sequence_length, class_names=tuple(class_names))
    except ValidationError as exc:
        raise ModelLoadFailure(
            f"Invalid sequence length {sequence_length!r} (from '{seq_key}'): "
            "expected a positive integer."
        ) from exc

    logger.info(
        "Model config: sequence_length=%d (%s), %d classes (%s)",
        parsed.sequence_length, seq_key or "default",
        parsed.num_classes, names_key or "none",
    )
    return parsed


def load_model_config(path: Union[str, Path]) -> ModelConfig:
    """Read and parse the model config JSON at *path*.

    Raises:
        ModelLoadFailure: If the file is unreadable, not JSON, or malformed.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = json.load(f)
    except OSError as exc:
        raise ModelLoadFailure(f"Cannot read model config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ModelLoadFailure(f"Model config {path} is not valid JSON: {exc}") from exc

    return parse_model_config(cfg)
