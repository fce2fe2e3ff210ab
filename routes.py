import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from analyzer.pipeline import MultiStageAnalyzer, RecommendationPipeline
from models import (
    AnalyzeRequest,
    AnalyzeResponse,
    IndustryBenchmark,
    ParseRequest,
    ParseResponse,
    ROIRequest,
    ROIResponse,
    StoreMetrics,
    TotalROI,
    TotalROIRequest,
)
from utils.display import describe_recommendation
from utils.errors import (
    EmptyRecommendationSetError,
    InvalidMetricsError,
    LLMServiceError,
    MalformedResponseError,
)
from utils.roi.calculator import (
    calculate_realistic_roi,
    calculate_total_roi,
    format_roi_for_display,
    get_industry_benchmark,
)
from utils.validation.recommendation_validator import get_validation_stats

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {
        "service": "Conversion Advisor",
        "status": "running",
        "endpoints": {
            "parse": "/recommendations/parse (POST)",
            "roi": "/roi (POST)",
            "roi_total": "/roi/total (POST)",
            "benchmark": "/roi/benchmark (POST)",
            "analyze": "/analyze (POST)",
        },
    }


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.post("/recommendations/parse", response_model=ParseResponse)
async def parse_recommendations(request: ParseRequest):
    """
    Runs one raw Claude response through the recommendation pipeline.

    An empty result is not an error: the response carries empty=true and
    retry_suggested=true so the caller can re-prompt.
    """
    pipeline = RecommendationPipeline()

    try:
        candidates = pipeline.parse(request.response_text)
    except MalformedResponseError as e:
        logger.error(f"Unparseable LLM response: {str(e)} | preview: {e.preview[:200]}")
        raise HTTPException(status_code=422, detail=f"Response parsing failed: {str(e)}")

    try:
        recommendations = pipeline.refine(candidates, request.metrics)
    except EmptyRecommendationSetError as e:
        logger.warning(f"No recommendations survived the {e.stage} stage: {str(e)}")
        return ParseResponse(
            recommendations=[],
            stats=get_validation_stats(candidates, []),
            empty=True,
            retry_suggested=True,
        )
    except InvalidMetricsError as e:
        raise HTTPException(status_code=400, detail=f"Invalid store metrics: {str(e)}")

    return ParseResponse(
        recommendations=recommendations,
        stats=get_validation_stats(candidates, recommendations),
        display=[describe_recommendation(rec) for rec in recommendations],
    )


@router.post("/roi", response_model=ROIResponse)
async def roi(request: ROIRequest):
    try:
        result = calculate_realistic_roi(
            request.impact_score, request.effort_score, request.category, request.metrics
        )
    except InvalidMetricsError as e:
        raise HTTPException(status_code=400, detail=f"Invalid store metrics: {str(e)}")

    return ROIResponse(roi=result, formatted=format_roi_for_display(result))


@router.post("/roi/total", response_model=TotalROI)
async def roi_total(request: TotalROIRequest):
    try:
        return calculate_total_roi(request.recommendations, request.metrics)
    except EmptyRecommendationSetError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidMetricsError as e:
        raise HTTPException(status_code=400, detail=f"Invalid store metrics: {str(e)}")


@router.post("/roi/benchmark", response_model=IndustryBenchmark)
async def roi_benchmark(metrics: StoreMetrics):
    try:
        return get_industry_benchmark(metrics)
    except InvalidMetricsError as e:
        raise HTTPException(status_code=400, detail=f"Invalid store metrics: {str(e)}")


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_store(request: AnalyzeRequest):
    """
    Full multi-stage analysis for one store.

    Stage failures degrade to fallback recommendations; only errors that
    leave nothing to return surface as HTTP errors.
    """
    analyzer = MultiStageAnalyzer()

    try:
        recommendations = await analyzer.analyze(
            request.shop_data, request.metrics, request.screenshots
        )
    except InvalidMetricsError as e:
        raise HTTPException(status_code=400, detail=f"Invalid store metrics: {str(e)}")
    except LLMServiceError as e:
        logger.exception(f"Anthropic API failure for {request.shop_data.domain}")
        raise HTTPException(status_code=502, detail=f"AI analysis service failed: {str(e)}")

    logger.info(analyzer.usage.format_usage_report(request.shop_data.domain))

    return AnalyzeResponse(
        shop=request.shop_data.domain,
        analyzed_at=datetime.now(timezone.utc).isoformat(),
        recommendations=recommendations,
        usage=analyzer.usage.session_spend(request.shop_data.domain),
    )
