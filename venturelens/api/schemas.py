from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import (
    UUID4,
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from venturelens.analysis.normalizer import AnalysisResult

_http_url = TypeAdapter(AnyHttpUrl)


# INBOUND – founder submission form (multipart fields next to the PDF)
class StartupSubmission(BaseModel):
    founder_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default="", max_length=500)
    industry: str = Field(..., min_length=1)
    stage: str = Field(..., min_length=1)
    website_url: Optional[str] = ""
    linkedin_url: Optional[str] = ""
    funding_raised: Optional[str] = None

    @field_validator("name", "industry", "stage", "founder_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("website_url", "linkedin_url")
    @classmethod
    def _empty_or_url(cls, value: Optional[str]) -> str:
        value = (value or "").strip()
        if value:
            try:
                _http_url.validate_python(value)
            except ValidationError:
                raise ValueError("Please enter a valid URL") from None
        return value


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)

    @field_validator("message")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# OUTBOUND – normalized analysis
class AnomalyClaimsOut(BaseModel):
    deck: Optional[str] = None
    website: Optional[str] = None


class NormalizedAnomalyOut(BaseModel):
    id: str
    category: str
    severity: str
    priority: str
    title: str
    description: str
    claims: AnomalyClaimsOut


class AnalysisResultOut(BaseModel):
    scores: Dict[str, float]
    reasoning: Dict[str, str]
    aggregate_score: int
    trust_signal: str
    anomalies: List[NormalizedAnomalyOut] = []

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "AnalysisResultOut":
        return cls(**result.to_dict())


# OUTBOUND – rows in startups / startup_anomalies
class AnomalyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    startup_id: UUID4
    external_id: Optional[str] = None
    type: str
    message: str
    category: Optional[str] = None
    priority: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    deck_claim: Optional[str] = None
    website_claim: Optional[str] = None
    created_at: datetime


class StartupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    name: str
    description: Optional[str] = None
    industry: Optional[str] = None
    stage: Optional[str] = None
    website_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    funding_raised: Optional[str] = None
    founder_id: str
    deck_url: Optional[str] = None
    ai_score: int = 0
    trust_signal: str = "weak"
    scores: Optional[Dict[str, float]] = None
    reasoning: Optional[Dict[str, str]] = None
    created_at: datetime


class StartupDetailOut(StartupOut):
    anomalies: List[AnomalyOut] = []


class SubmissionResponse(BaseModel):
    """Returned by POST /api/startups once the deck is analyzed and saved."""
    startup: StartupOut
    analysis: AnalysisResultOut
    page_count: int
    ingested: bool = False


class AnalyzeDeckResponse(BaseModel):
    analysis: AnalysisResultOut
    raw: Any = None


# OUTBOUND – dashboards
class DealFlowResponse(BaseModel):
    total_startups: int
    average_score: int
    high_risk_count: int
    startups: List[StartupOut]


class PortfolioResponse(BaseModel):
    top_startups: int
    average_score: int
    total_funding: float
    startups: List[StartupOut]


class AlertOut(BaseModel):
    id: UUID4
    startup_id: UUID4
    startup_name: str
    type: str
    message: str
    title: Optional[str] = None
    priority: Optional[str] = None
    created_at: datetime


class AlertsResponse(BaseModel):
    critical_count: int
    warning_count: int
    verified_count: int
    alerts: List[AlertOut]


class RadarPoint(BaseModel):
    axis: str
    value: float
    full_mark: int = 100


class FeedbackItem(BaseModel):
    title: str
    description: str
    priority: str
    category: str


class FounderDashboardResponse(BaseModel):
    startup: Optional[StartupOut] = None
    has_analysis: bool = False
    fresh_analysis: bool = False
    readiness_score: int = 0
    trust_signal: str = "weak"
    radar: List[RadarPoint]
    reasoning: Dict[str, str] = {}
    feedback: List[FeedbackItem] = []


class ChatResponse(BaseModel):
    message: str
