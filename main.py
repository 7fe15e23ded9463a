"""
FastAPI Backend for the Bazi chart engine.

Provides RESTful API endpoints for mobile app integration.
"""
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from config import AIConfig
from errors import BaziError
from logic import DEFAULT_BIRTH_DATE, DEFAULT_BIRTH_TIME, assemble_chart
from models import EightCharChart, FocusSelector
from narrative import analyze_chart
from text_utils import extract_suggestions, format_chart_to_text

# --- Pydantic Models for Request/Response ---

class BirthInput(BaseModel):
    """Birth data for Bazi calculation."""
    name: str = Field("缘主", description="Name")
    birth_date: str = Field(DEFAULT_BIRTH_DATE, description="Birth date, YYYY-MM-DD")
    birth_time: str = Field(DEFAULT_BIRTH_TIME, description="Birth time, HH:MM")
    gender: str = Field(..., pattern="^(男|女|Male|Female)$", description="Gender (男/女)")
    strict: bool = Field(False, description="Reject invalid dates instead of falling back to the default")


class FocusInput(BaseModel):
    """Selected DaYun / LiuNian / LiuYue by index."""
    decade_index: int = Field(..., ge=0)
    annual_index: Optional[int] = Field(None, ge=0)
    month_index: Optional[int] = Field(None, ge=0)


class ChartTextRequest(BaseModel):
    user_data: BirthInput
    focus: Optional[FocusInput] = None


class AnalysisRequest(BaseModel):
    user_data: BirthInput
    focus: Optional[FocusInput] = None
    model: Optional[str] = Field(None, description="Override the configured model")
    stream: bool = Field(True, description="Stream plain text, or return the collected reply as JSON")


class PillarOut(BaseModel):
    """A single pillar (Gan+Zhi)."""
    label: str
    stem: str = Field(..., description="Heavenly Stem (天干)")
    branch: str = Field(..., description="Earthly Branch (地支)")
    na_yin: str = Field(..., description="Nayin (纳音)")
    main_star: str = Field(..., description="Ten God of the stem, 日主 for the day pillar")
    hidden_stems: List[str] = Field(..., description="Hidden stems in the branch (藏干)")
    hidden_stem_stars: List[str] = Field(..., description="Ten Gods of the hidden stems")
    life_stage: str = Field(..., description="Twelve Life Stages (星运)")
    self_seated: str = Field(..., description="Stem against its own branch (自坐)")
    void_branches: List[str] = Field(..., description="Empty/Void branches (空亡)")
    shen_sha: List[str] = Field(..., description="Spirit Stars (神煞)")


class MonthOut(BaseModel):
    month_label: str
    gan_zhi: str


class AnnualOut(BaseModel):
    year: int
    age: int
    gan_zhi: str
    monthly_periods: List[MonthOut]


class DecadeOut(BaseModel):
    start_year: int
    end_year: int
    start_age: int
    end_age: int
    gan_zhi: str
    annual_periods: List[AnnualOut]


class ChartResponse(BaseModel):
    """Response for /api/chart endpoint."""
    name: str
    gender: str
    solar_date: str
    lunar_date: str
    year_pillar: PillarOut
    month_pillar: PillarOut
    day_pillar: PillarOut
    hour_pillar: PillarOut
    luck_cycle: List[DecadeOut]


class ChartTextResponse(BaseModel):
    text: str


class AnalysisResponse(BaseModel):
    """Response for /api/analysis when stream is false."""
    markdown_content: str
    suggestions: List[str] = Field(default_factory=list, description="Follow-up questions (猜你想问)")


# --- FastAPI App Initialization ---

app = FastAPI(
    title="八字排盘 API",
    description="八字排盘、神煞推导与命理解读",
    version="0.1.0"
)

# Configure CORS for mobile/web access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict to specific domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Helper Functions ---

def _assemble(data: BirthInput) -> EightCharChart:
    try:
        return assemble_chart(data.name, data.birth_date, data.birth_time, data.gender, strict=data.strict)
    except (BaziError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Bazi calculation error: {str(e)}")


def _focus(focus: Optional[FocusInput]) -> Optional[FocusSelector]:
    if focus is None:
        return None
    return FocusSelector(focus.decade_index, focus.annual_index, focus.month_index)


def chart_to_response(chart: EightCharChart) -> ChartResponse:
    def pillar_out(p):
        return PillarOut(
            label=p.label,
            stem=p.stem,
            branch=p.branch,
            na_yin=p.na_yin,
            main_star=p.main_star,
            hidden_stems=list(p.hidden_stems),
            hidden_stem_stars=list(p.hidden_stem_stars),
            life_stage=p.life_stage,
            self_seated=p.self_seated,
            void_branches=list(p.void_branches),
            shen_sha=list(p.shen_sha),
        )

    return ChartResponse(
        name=chart.name,
        gender=chart.gender.label,
        solar_date=chart.solar_date_label,
        lunar_date=chart.lunar_date_label,
        year_pillar=pillar_out(chart.year),
        month_pillar=pillar_out(chart.month),
        day_pillar=pillar_out(chart.day),
        hour_pillar=pillar_out(chart.hour),
        luck_cycle=[
            DecadeOut(
                start_year=d.start_year,
                end_year=d.end_year,
                start_age=d.start_age,
                end_age=d.end_age,
                gan_zhi=d.gan_zhi,
                annual_periods=[
                    AnnualOut(
                        year=a.year,
                        age=a.age,
                        gan_zhi=a.gan_zhi,
                        monthly_periods=[MonthOut(month_label=m.month_label, gan_zhi=m.gan_zhi) for m in a.monthly_periods],
                    )
                    for a in d.annual_periods
                ],
            )
            for d in chart.luck_cycle
        ],
    )


# --- API Endpoints ---

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "八字排盘 API is running"}


@app.post("/api/chart", response_model=ChartResponse)
async def get_bazi_chart(data: BirthInput):
    """
    Calculate Bazi Four Pillars and return structured data.

    This endpoint returns the core Bazi chart without LLM interpretation.
    """
    return chart_to_response(_assemble(data))


@app.post("/api/chart/text", response_model=ChartTextResponse)
async def get_bazi_chart_text(request: ChartTextRequest):
    """Return the plain-text rendering used as LLM prompt context."""
    chart = _assemble(request.user_data)
    return ChartTextResponse(text=format_chart_to_text(chart, _focus(request.focus)))


@app.post("/api/analysis")
async def get_analysis(request: AnalysisRequest):
    """
    Stream an AI-powered reading of the chart.

    Provider and key come from the environment (see config.AIConfig.from_env).
    With stream=false the reply is collected and the 【猜你想问】 block is
    returned separately as suggestions.
    """
    chart = _assemble(request.user_data)
    config = AIConfig.from_env()
    if request.model:
        config = config.with_model(request.model)
    if not config.is_configured:
        raise HTTPException(status_code=500, detail=f"{config.provider} API key not configured")
    chunks = analyze_chart(chart, config, focus=_focus(request.focus))
    if request.stream:
        return StreamingResponse(chunks, media_type="text/plain; charset=utf-8")

    # Collect streamed response
    content, suggestions = extract_suggestions("".join(chunks))
    return AnalysisResponse(markdown_content=content, suggestions=suggestions)


# --- Run with: uvicorn main:app --reload ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
