"""
Analysis Endpoints

/ai-dev-assistant/analyze       POST  code string   (60 req/min per IP)
/ai-dev-assistant/analyze-file  POST  server file   (30 req/min per IP)
/ai-dev-assistant/analyzers     GET   analyzer names
/ai-dev-assistant/suggestions   POST  optional AI suggestions
"""
from fastapi import APIRouter, Depends

from core.exceptions import InvalidCodeError
from schemas.requests import AnalyzeCodeRequest, AnalyzeFileRequest, SuggestionsRequest
from schemas.responses import AnalysisResult, SuggestionsResponse
from routes.dependencies import get_services, rate_limited
from services.factory import AssistantServices

router = APIRouter(prefix="/ai-dev-assistant", tags=["Analysis"])


@router.post(
    "/analyze",
    response_model=AnalysisResult,
    summary="Analyze a code string",
    dependencies=[Depends(rate_limited("analyze", "rate_limit_per_minute"))],
)
async def analyze_code(
    body: AnalyzeCodeRequest,
    services: AssistantServices = Depends(get_services)
):
    """
    Run the selected analyzers over the submitted code

    Errors are mapped by the AssistantError handler:
    - 400 empty code / unknown analyzer, 413 code too large
    - 422 invalid syntax, 503 no provider reachable
    """
    size = len(body.code.encode("utf-8"))
    if size > services.config.max_file_size:
        raise InvalidCodeError(
            f"Code too large ({size} bytes, max {services.config.max_file_size})",
            {"size": size, "max_size": services.config.max_file_size},
            http_status=413,
        )

    return await services.code_analyzer.analyze_code(
        body.code,
        filename=body.filename,
        enabled_analyzers=body.analyzers,
        options=body.options,
        use_cache=body.use_cache,
    )


@router.post(
    "/analyze-file",
    response_model=AnalysisResult,
    summary="Analyze a file on the server",
    dependencies=[Depends(rate_limited("analyze-file", "rate_limit_file_per_minute"))],
)
async def analyze_file(
    body: AnalyzeFileRequest,
    services: AssistantServices = Depends(get_services)
):
    """File must exist, be readable, within the size limit and a supported type"""
    return await services.code_analyzer.analyze_file(
        body.file_path,
        enabled_analyzers=body.analyzers,
    )


@router.get("/analyzers", summary="Available analyzers")
async def list_analyzers(services: AssistantServices = Depends(get_services)):
    return {
        "analyzers": services.code_analyzer.get_analyzer_names(),
        "enabled": services.config.enabled_analyzers,
    }


@router.post(
    "/suggestions",
    response_model=SuggestionsResponse,
    summary="AI improvement suggestions",
    dependencies=[Depends(rate_limited("suggestions", "rate_limit_per_minute"))],
)
async def suggestions(
    body: SuggestionsRequest,
    services: AssistantServices = Depends(get_services)
):
    """Empty result when no provider could answer"""
    data = await services.code_analyzer.get_ai_suggestions(body.code, body.issues)
    items = data.get("suggestions")
    return SuggestionsResponse(suggestions=items if isinstance(items, list) else [])
