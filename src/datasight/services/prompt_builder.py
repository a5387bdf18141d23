"""
Prompt text for every remote completion call.

``build_system_prompt`` is the adaptive persona seeded at the start of a
conversation; it depends only on the remembered dataset fingerprints.
The wording lives in the Jinja2 templates under ``src/datasight/prompts``.
"""

from typing import Dict, Iterable, Sequence

from src.datasight.config import PREDICTION_HORIZON
from src.datasight.models.dataset import DatasetFingerprint, FileRecord
from src.datasight.models.suggestion import SuggestionCategory
from src.datasight.prompts.prompt_manager import get_prompt_manager


def count_file_types(fingerprints: Iterable[DatasetFingerprint]) -> Dict[str, int]:
    """Count file types across fingerprints, keyed in first-seen order."""
    counts: Dict[str, int] = {}
    for fingerprint in fingerprints:
        for file_type in fingerprint.file_types:
            counts[file_type] = counts.get(file_type, 0) + 1
    return counts


def build_system_prompt(fingerprints: Sequence[DatasetFingerprint]) -> str:
    return get_prompt_manager().render("system_prompt.jinja2", file_type_counts=count_file_types(fingerprints))


def build_analysis_request(files: Sequence[FileRecord]) -> str:
    return get_prompt_manager().render("analysis_request.jinja2", files=list(files))


def build_suggestions_instruction() -> str:
    return get_prompt_manager().render(
        "suggestions.jinja2",
        categories=[category.value for category in SuggestionCategory],
    )


def build_recommendations_instruction(memory_size: int) -> str:
    return get_prompt_manager().render("recommendations.jinja2", memory_size=memory_size)


def build_visualization_instruction() -> str:
    return get_prompt_manager().render("visualization.jinja2", prediction_horizon=PREDICTION_HORIZON)


def build_commentary_instruction(chart_type: str) -> str:
    return get_prompt_manager().render("commentary.jinja2", chart_type=chart_type)
