"""Chart specifications produced by the visualization service."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ChartDataset(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    label: str = ""
    data: List[Optional[float]] = Field(default_factory=list)
    background_color: Optional[Union[str, List[str]]] = Field(None, alias="backgroundColor")
    border_color: Optional[str] = Field(None, alias="borderColor")
    border_dash: Optional[List[int]] = Field(None, alias="borderDash")
    fill: Optional[bool] = None
    predicted_data: bool = Field(False, alias="predictedData")


class ChartSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    subtitle: Optional[str] = None
    description: str = ""
    adaptive_commentary: str = Field("", alias="adaptiveCommentary")
    labels: List[str] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(..., min_length=1)


class VisualizationSpec(BaseModel):
    """The three charts generated for an analyzed batch."""

    model_config = ConfigDict(populate_by_name=True)

    pie_chart: ChartSpec = Field(..., alias="pieChart")
    line_chart: ChartSpec = Field(..., alias="lineChart")
    bar_chart: ChartSpec = Field(..., alias="barChart")
    timestamp: Optional[int] = None

    def charts(self) -> Dict[str, ChartSpec]:
        return {"pie": self.pie_chart, "line": self.line_chart, "bar": self.bar_chart}

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
