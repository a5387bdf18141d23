"""
Chart data generation for analyzed file batches.

The completion service proposes three charts (pie, line, bar) with
predictions and commentary; this module decodes them, falls back to a
sample spec when the reply is not usable, and turns each chart into a
renderer config (chart.js-style ``type``/``data``/``options`` mapping).
"""

import copy
import json
import logging
import time
from typing import Any, Dict, Optional, Sequence

from src.datasight.config import CHART_COLORS, VISUALIZATION_CONTEXT_SIZE
from src.datasight.models.conversation import Message, non_system_messages
from src.datasight.models.dataset import FileRecord
from src.datasight.models.event_types import VISUALIZATION_UPDATED
from src.datasight.models.events import Event
from src.datasight.models.visualization import ChartSpec, VisualizationSpec
from src.datasight.services.prompt_builder import (
    build_commentary_instruction,
    build_visualization_instruction,
)
from src.datasight.utils.decoding import decode_with_fallback, parse_json_object

logger = logging.getLogger(__name__)

VISUALIZATION_FAILURE_TEXT = "Unable to generate visualization for this data"
COMMENTARY_FAILURE_TEXT = "Unable to generate commentary at this time. Please try again."


def fallback_visualization() -> VisualizationSpec:
    return VisualizationSpec.model_validate(
        {
            "pieChart": {
                "title": "Data Distribution",
                "description": "Distribution of key categories in the data",
                "adaptiveCommentary": "This is a standard distribution analysis of your data categories.",
                "labels": ["Category A", "Category B", "Category C", "Category D"],
                "datasets": [
                    {
                        "label": "Distribution",
                        "data": [25, 30, 15, 30],
                        "backgroundColor": list(CHART_COLORS[:4]),
                    }
                ],
            },
            "lineChart": {
                "title": "Trend Analysis",
                "description": "Historical trend with future predictions",
                "adaptiveCommentary": "This trend analysis shows both historical data and predicted future values.",
                "labels": ["Past 3", "Past 2", "Past 1", "Present", "Future 1", "Future 2", "Future 3"],
                "datasets": [
                    {
                        "label": "Historical Data",
                        "data": [12, 19, 25, 32],
                        "borderColor": CHART_COLORS[0],
                        "backgroundColor": "rgba(66, 133, 244, 0.2)",
                        "fill": True,
                        "predictedData": False,
                    },
                    {
                        "label": "Predicted Data",
                        "data": [None, None, None, 32, 40, 45, 52],
                        "borderColor": CHART_COLORS[1],
                        "backgroundColor": "rgba(52, 168, 83, 0.2)",
                        "borderDash": [5, 5],
                        "fill": True,
                        "predictedData": True,
                    },
                ],
            },
            "barChart": {
                "title": "Comparison Analysis",
                "description": "Comparison between key metrics",
                "adaptiveCommentary": "This comparison shows the relative values of key metrics in your dataset.",
                "labels": ["Metric A", "Metric B", "Metric C", "Metric D"],
                "datasets": [
                    {
                        "label": "Current Values",
                        "data": [65, 59, 80, 81],
                        "backgroundColor": list(CHART_COLORS[:4]),
                    }
                ],
            },
        }
    )


def _decode_visualization(raw: str) -> VisualizationSpec:
    return VisualizationSpec.model_validate(parse_json_object(raw))


def add_transparency(color: str, alpha: float) -> str:
    """Convert ``#rrggbb`` or ``rgb(...)`` colours to ``rgba`` with ``alpha``; other values pass through."""
    if color.startswith("rgba"):
        return color
    if color.startswith("rgb"):
        return color.replace("rgb", "rgba", 1).replace(")", f", {alpha})", 1)
    if color.startswith("#") and len(color) >= 7:
        red = int(color[1:3], 16)
        green = int(color[3:5], 16)
        blue = int(color[5:7], 16)
        return f"rgba({red}, {green}, {blue}, {alpha})"
    return color


def build_chart_config(chart_type: str, chart: ChartSpec) -> Dict[str, Any]:
    """Style the chart's datasets and wrap them with per-type renderer options."""
    datasets = []
    for index, dataset in enumerate(chart.datasets):
        entry = dataset.model_dump(by_alias=True, exclude_none=True)
        palette_color = CHART_COLORS[index % len(CHART_COLORS)]

        if not entry.get("backgroundColor"):
            entry["backgroundColor"] = (
                add_transparency(palette_color, 0.2) if chart_type == "line" else palette_color
            )
        if not entry.get("borderColor") and chart_type == "line":
            entry["borderColor"] = palette_color

        if entry.get("predictedData"):
            entry["borderDash"] = entry.get("borderDash") or [5, 5]
            entry["pointStyle"] = "circle"
            entry["pointRadius"] = 4
            entry["pointHoverRadius"] = 6
            entry["pointBorderColor"] = entry.get("borderColor")
            entry["pointBackgroundColor"] = "#fff"
        datasets.append(entry)

    options: Dict[str, Any] = {
        "responsive": True,
        "maintainAspectRatio": False,
        "plugins": {
            "title": {
                "display": True,
                "text": chart.title or f"{chart_type.capitalize()} Chart",
                "font": {"size": 16, "weight": "bold"},
            },
            "subtitle": {
                "display": bool(chart.subtitle),
                "text": chart.subtitle or "",
                "font": {"size": 14},
                "padding": {"bottom": 10},
            },
            "legend": {
                "display": True,
                "position": "right" if chart_type == "pie" else "top",
                "labels": {"usePointStyle": True, "padding": 15},
            },
            "tooltip": {
                "predictedDatasets": [
                    index for index, entry in enumerate(datasets) if entry.get("predictedData")
                ],
                "predictedFooter": "This is a predicted value",
            },
        },
    }

    if chart_type == "line":
        options["elements"] = {"line": {"tension": 0.3}}
        options["scales"] = {"y": {"beginAtZero": False}}
    elif chart_type == "bar":
        options["scales"] = {"y": {"beginAtZero": True}}

    return {
        "type": chart_type,
        "data": {"labels": list(chart.labels), "datasets": datasets},
        "options": options,
    }


class VisualizationService:
    """Generates the chart set for the current analysis and publishes renderer configs."""

    AGENT_NAME = "visualization"
    COMMENTARY_AGENT_NAME = "commentary"

    def __init__(self, llm_service: Any, event_bus: Any) -> None:
        self.llm_service = llm_service
        self.event_bus = event_bus

    def generate(
        self,
        files: Optional[Sequence[FileRecord]],
        messages: Sequence[Message],
    ) -> Optional[VisualizationSpec]:
        """
        Ask for chart data using the most recent non-system messages as context.

        Returns the decoded (or fallback) spec, or None when the remote call failed.
        """
        if not files:
            return None

        context = non_system_messages(messages)[-VISUALIZATION_CONTEXT_SIZE:]
        request = [Message.system(build_visualization_instruction()), *context]
        try:
            reply = self.llm_service.complete_for_agent(self.AGENT_NAME, request, json_mode=True)
        except Exception as exc:  # noqa: BLE001 - renderer failures stay local
            logger.error("Visualization request failed: %s", exc)
            self.event_bus.dispatch(
                Event(
                    event_type=VISUALIZATION_UPDATED,
                    payload={"ok": False, "message": VISUALIZATION_FAILURE_TEXT},
                )
            )
            return None

        spec = decode_with_fallback(
            reply.display_text(),
            _decode_visualization,
            fallback_visualization,
            label="chart data",
        )
        # New timestamp on every run so renderers never reuse stale charts.
        spec = spec.model_copy(update={"timestamp": int(time.time() * 1000)})

        charts = {chart_type: build_chart_config(chart_type, chart) for chart_type, chart in spec.charts().items()}
        self.event_bus.dispatch(
            Event(
                event_type=VISUALIZATION_UPDATED,
                payload={"ok": True, "charts": copy.deepcopy(charts), "spec": spec.to_payload()},
            )
        )
        return spec

    def generate_commentary(self, chart_type: str, chart: ChartSpec) -> str:
        """Detailed commentary for one chart; returns a fixed text on failure."""
        summary = {
            "chartType": chart_type,
            "title": chart.title,
            "description": chart.description,
            "labels": chart.labels,
            "data": chart.datasets[0].data,
        }
        request = [
            Message.system(build_commentary_instruction(chart_type)),
            Message.user(json.dumps(summary)),
        ]
        try:
            return self.llm_service.complete_for_agent(self.COMMENTARY_AGENT_NAME, request).display_text()
        except Exception as exc:  # noqa: BLE001 - commentary is optional
            logger.error("Commentary request for %s chart failed: %s", chart_type, exc)
            return COMMENTARY_FAILURE_TEXT
