"""
Auto-Create Routes

Multipart submission of files/topic/link, plus quota and provider status.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from autoquiz.api.deps import get_identity, get_pipeline
from autoquiz.errors import AutoCreateError
from autoquiz.models import ErrorKind, FileSource, Submission
from autoquiz.pipeline import AutoCreatePipeline, error_envelope

router = APIRouter(prefix="/auto-create")

STATUS_CODES = {
    ErrorKind.INPUT: 400,
    ErrorKind.EXTRACTION: 422,
    ErrorKind.VALIDATION: 422,
    ErrorKind.QUOTA: 429,
    ErrorKind.GENERATION: 502,
}


def _error_response(error: AutoCreateError) -> JSONResponse:
    body = error_envelope(error).model_dump(by_alias=True, exclude_none=True, mode="json")
    return JSONResponse(status_code=STATUS_CODES[error.error_kind], content=body)


@router.post("/process-content")
async def process_content(
    numberOfQuestions: str = Form(...),
    difficulty: str = Form(...),
    language: str = Form("English"),
    topicPrompt: str | None = Form(None),
    linkUrl: str | None = Form(None),
    files: list[UploadFile] | None = File(None),
    identity: str = Depends(get_identity),
    pipeline: AutoCreatePipeline = Depends(get_pipeline),
):
    """
    Generate quiz questions from uploaded files, a topic and/or a link.

    Returns:
        ``{success, data: {questions, metadata}}`` on success, otherwise
        ``{success: false, message, errorKind}`` with a matching status code.
    """
    # Read one byte past the ceiling so oversized files are still detected
    read_limit = pipeline.settings.max_file_size_bytes + 1
    sources = []
    for upload in files or []:
        if not upload.filename:
            continue
        data = await upload.read(read_limit)
        sources.append(FileSource(filename=upload.filename, data=data, mime_hint=upload.content_type))

    submission = Submission(
        files=sources,
        topic=topicPrompt,
        url=linkUrl,
        number_of_questions=numberOfQuestions,
        difficulty=difficulty,
        language=language,
    )

    try:
        response = await pipeline.run(submission, identity)
    except AutoCreateError as e:
        return _error_response(e)

    return response.model_dump(by_alias=True, mode="json")


@router.get("/usage-status")
def usage_status(
    identity: str = Depends(get_identity),
    pipeline: AutoCreatePipeline = Depends(get_pipeline),
):
    """Remaining quota for the caller, without consuming any."""
    decision = pipeline.guard.status(identity)
    return {"success": True, "data": decision.model_dump(by_alias=True, mode="json")}


@router.get("/usage-stats")
def usage_stats(
    identity: str = Depends(get_identity),
    pipeline: AutoCreatePipeline = Depends(get_pipeline),
):
    """Usage for today, this week, this month and all time."""
    stats = pipeline.guard.stats(identity)
    return {"success": True, "data": stats.model_dump(by_alias=True, mode="json")}


@router.get("/ai-health")
async def ai_health(pipeline: AutoCreatePipeline = Depends(get_pipeline)):
    """Which generation providers are configured, in fallback order."""
    providers = pipeline.generator.provider_status()
    return {
        "success": True,
        "data": {
            "available": any(p["configured"] for p in providers),
            "providers": providers,
        },
    }
