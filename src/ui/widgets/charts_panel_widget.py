from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from PySide6.QtCharts import (
    QBarCategoryAxis,
    QBarSeries,
    QBarSet,
    QChart,
    QChartView,
    QLineSeries,
    QPieSeries,
    QValueAxis,
)
from PySide6.QtCore import QPointF, Qt, Signal
from PySide6.QtGui import QColor, QPainter, QPen
from PySide6.QtWidgets import QLabel, QPushButton, QScrollArea, QVBoxLayout, QWidget

logger = logging.getLogger(__name__)

CHART_ORDER = ("pie", "line", "bar")


def _first_color(value: Any, fallback: str = "#4285F4") -> str:
    if isinstance(value, list):
        value = value[0] if value else fallback
    return value if isinstance(value, str) else fallback


def _qcolor(value: str) -> QColor:
    """QColor from ``#rrggbb`` or ``rgba(r, g, b, a)`` strings."""
    if value.startswith("rgb"):
        inner = value[value.index("(") + 1:value.rindex(")")]
        parts = [part.strip() for part in inner.split(",")]
        color = QColor(int(parts[0]), int(parts[1]), int(parts[2]))
        if len(parts) > 3:
            color.setAlphaF(float(parts[3]))
        return color
    return QColor(value)


def build_pie_chart(config: Dict[str, Any]) -> QChart:
    chart = QChart()
    labels = config["data"]["labels"]
    dataset = config["data"]["datasets"][0]
    colors = dataset.get("backgroundColor")
    series = QPieSeries()
    for index, (label, value) in enumerate(zip(labels, dataset.get("data", []))):
        if value is None:
            continue
        pie_slice = series.append(label, float(value))
        if isinstance(colors, list) and index < len(colors):
            pie_slice.setBrush(_qcolor(colors[index]))
    chart.addSeries(series)
    chart.legend().setAlignment(Qt.AlignRight)
    return chart


def build_line_chart(config: Dict[str, Any]) -> QChart:
    chart = QChart()
    labels = config["data"]["labels"]
    axis_x = QBarCategoryAxis()
    axis_x.append(labels)
    axis_y = QValueAxis()
    chart.addAxis(axis_x, Qt.AlignBottom)
    chart.addAxis(axis_y, Qt.AlignLeft)

    values: List[float] = []
    for dataset in config["data"]["datasets"]:
        series = QLineSeries()
        series.setName(dataset.get("label", ""))
        for index, value in enumerate(dataset.get("data", [])):
            if value is None:
                continue
            series.append(QPointF(index, float(value)))
            values.append(float(value))
        pen = QPen(_qcolor(_first_color(dataset.get("borderColor"))))
        pen.setWidth(2)
        if dataset.get("borderDash"):
            pen.setStyle(Qt.DashLine)
        series.setPen(pen)
        chart.addSeries(series)
        series.attachAxis(axis_x)
        series.attachAxis(axis_y)

    if values:
        axis_y.setRange(min(values), max(values))
    return chart


def build_bar_chart(config: Dict[str, Any]) -> QChart:
    chart = QChart()
    labels = config["data"]["labels"]
    series = QBarSeries()
    for dataset in config["data"]["datasets"]:
        bar_set = QBarSet(dataset.get("label", ""))
        bar_set.append([float(value or 0) for value in dataset.get("data", [])])
        bar_set.setColor(_qcolor(_first_color(dataset.get("backgroundColor"))))
        series.append(bar_set)
    chart.addSeries(series)

    axis_x = QBarCategoryAxis()
    axis_x.append(labels)
    axis_y = QValueAxis()
    axis_y.setMin(0)
    chart.addAxis(axis_x, Qt.AlignBottom)
    chart.addAxis(axis_y, Qt.AlignLeft)
    series.attachAxis(axis_x)
    series.attachAxis(axis_y)
    return chart


CHART_BUILDERS = {
    "pie": build_pie_chart,
    "line": build_line_chart,
    "bar": build_bar_chart,
}


class ChartsPanelWidget(QScrollArea):
    """
    Renders the pie, line and bar charts of the latest analysis with their
    descriptions, adaptive commentary and a button asking for a detailed explanation.
    """

    commentary_requested = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setWidgetResizable(True)
        self._container = QWidget()
        self._layout = QVBoxLayout(self._container)
        self._layout.setSpacing(12)
        self.setWidget(self._container)
        self._commentary_labels: Dict[str, QLabel] = {}
        self.show_message("Upload data to see visualizations.")

    def show_message(self, message: str) -> None:
        self._clear()
        label = QLabel(message)
        label.setObjectName("placeholder_label")
        label.setAlignment(Qt.AlignCenter)
        label.setWordWrap(True)
        self._layout.addWidget(label)
        self._layout.addStretch(1)

    def show_charts(self, charts: Dict[str, Dict[str, Any]], spec: Dict[str, Any]) -> None:
        self._clear()
        for chart_type in CHART_ORDER:
            config = charts.get(chart_type)
            if not config:
                continue
            details = spec.get(f"{chart_type}Chart") or {}
            self._add_chart(chart_type, config, details)
        self._layout.addStretch(1)

    def show_commentary(self, chart_type: str, text: str) -> None:
        label = self._commentary_labels.get(chart_type)
        if label is not None:
            label.setText(text)

    def _add_chart(self, chart_type: str, config: Dict[str, Any], details: Dict[str, Any]) -> None:
        try:
            chart = CHART_BUILDERS[chart_type](config)
        except (KeyError, ValueError, TypeError) as exc:
            logger.error("Cannot render %s chart: %s", chart_type, exc)
            return
        chart.setTitle(config["options"]["plugins"]["title"]["text"])
        chart.setAnimationOptions(QChart.SeriesAnimations)

        view = QChartView(chart)
        view.setRenderHint(QPainter.Antialiasing)
        view.setMinimumHeight(260)
        self._layout.addWidget(view)

        description = QLabel(details.get("description", ""))
        description.setWordWrap(True)
        self._layout.addWidget(description)

        commentary = QLabel(details.get("adaptiveCommentary", ""))
        commentary.setObjectName("commentary_label")
        commentary.setWordWrap(True)
        self._layout.addWidget(commentary)
        self._commentary_labels[chart_type] = commentary

        explain = QPushButton("Explain this chart")
        explain.clicked.connect(lambda _checked=False, kind=chart_type: self.commentary_requested.emit(kind))
        self._layout.addWidget(explain)

    def _clear(self) -> None:
        self._commentary_labels = {}
        while self._layout.count():
            item = self._layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()
