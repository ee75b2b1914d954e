"""
Pydantic models for request/response validation.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from labsight.services.recommendations import RecommendationBundle


class ParseRequest(BaseModel):
    """Raw report text to run through the pipeline."""
    text: str = Field(..., description="Lab report text as extracted from the document")

    @field_validator('text', mode='before')
    def coerce_text(cls, v):
        return "" if v is None else str(v)


class ReferenceRangeOut(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    text: Optional[str] = None
    critical_min: Optional[float] = None
    critical_max: Optional[float] = None


class ParameterOut(BaseModel):
    """A classified parameter as stored for a report."""
    id: str
    name: str = Field(..., description="Canonical parameter name")
    value: float = Field(..., description="Value in the canonical unit")
    unit: str
    reference_range: ReferenceRangeOut
    reference_range_text: Optional[str] = Field(None, description="Human readable normal range")
    status: str = Field(..., description="normal, low, high, critical_low, critical_high or unknown")
    category: str
    document_id: Optional[str] = None
    user_id: Optional[str] = None
    extracted_from: str = Field("", description="Text span the value was read from")
    strategy: Optional[str] = None
    created_at: str


class ParseResponse(BaseModel):
    parameters: List[ParameterOut]
    recommendations: RecommendationBundle
    extracted_text: str = ""


class ReportOut(BaseModel):
    id: str
    user_id: str
    original_name: str
    mime_type: str
    file_size: int
    uploaded_at: str
    extracted: bool


class HealthContentOut(BaseModel):
    is_health_related: bool
    confidence: float
    found_keywords: List[str] = Field(default_factory=list)
    text_length: int = 0


class UploadResponse(BaseModel):
    """Response for an uploaded or re-processed report."""
    report: ReportOut
    parameters: List[ParameterOut]
    recommendations: RecommendationBundle
    health_content: HealthContentOut
    text_preview: str = Field("", description="Start of the extracted text, or why there is none")


class ReportListResponse(BaseModel):
    reports: List[ReportOut]
    count: int


class FileTypeCount(BaseModel):
    mime_type: str
    count: int


class ReportTextResponse(BaseModel):
    report_id: str
    extracted: bool
    raw_text: str


class TrendPoint(BaseModel):
    value: float
    unit: str
    date: str
    report_id: Optional[str] = None
    status: str


class TrendsResponse(BaseModel):
    days: int
    trends: Dict[str, List[TrendPoint]]


class ParameterStat(BaseModel):
    name: str
    count: int
    latest_value: float
    latest_unit: str
    latest_status: str
    latest_date: str


class DashboardResponse(BaseModel):
    total_reports: int
    total_parameters: int
    recent_reports: List[ReportOut]
    recent_parameters: List[ParameterOut]
    parameter_stats: List[ParameterStat]


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    status: str = Field(default="error", description="Response status")
    details: Optional[str] = Field(None, description="Additional error details")
