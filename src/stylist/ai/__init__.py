"""Transport client, prompts and text transforms."""

from .client import AIClient, ClientSettings
from .json_extract import extract_balanced_json
from .transforms import SinglePassTransform, TransformOutcome, TransformStage, TwoPassTransform

__all__ = [
    "AIClient",
    "ClientSettings",
    "extract_balanced_json",
    "SinglePassTransform",
    "TransformOutcome",
    "TransformStage",
    "TwoPassTransform",
]
