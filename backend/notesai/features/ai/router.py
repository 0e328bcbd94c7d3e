"""
AI feature: API routes for summarization, image analysis and image upload.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from langchain_core.language_models import BaseChatModel
from supabase import Client

from notesai.config import get_settings
from notesai.core.dependencies import get_current_user_id, get_db, get_llm, get_media_store
from notesai.core.exceptions import ValidationError
from notesai.core.responses import paginated_response, success_response
from notesai.core.storage import MediaStore, validate_image_upload
from notesai.features.ai.schemas import DEFAULT_IMAGE_PROMPT, SummarizeRequest
from notesai.features.ai.service import AIService

router = APIRouter()


@router.post("/summarize-text")
async def summarize_text(
    data: SummarizeRequest,
    user_id: str = Depends(get_current_user_id),
    llm: BaseChatModel = Depends(get_llm),
):
    """Summarize a text (50 to 10,000 characters)."""
    service = AIService(llm)
    summary = await service.summarize_text(data.text, data.summary_length)
    return success_response(summary)


@router.post("/analyze-image")
async def analyze_image(
    image: UploadFile = File(...),
    user_prompt: str = Form(DEFAULT_IMAGE_PROMPT),
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    llm: BaseChatModel = Depends(get_llm),
):
    """Describe an uploaded image, focusing on the user's question."""
    settings = get_settings()
    contents = await image.read()
    validate_image_upload(image.content_type, len(contents), settings.MEDIA_MAX_BYTES)
    if not user_prompt.strip():
        raise ValidationError("No valid question or prompt was sent.")

    service = AIService(llm, db)
    analysis = await service.analyze_image(
        user_id=user_id,
        image_bytes=contents,
        mime_type=image.content_type,
        user_prompt=user_prompt.strip(),
        original_name=image.filename,
    )
    return success_response(analysis)


@router.post("/upload-image")
async def upload_image(
    image: UploadFile = File(...),
    position: int | None = Form(None),
    user_id: str = Depends(get_current_user_id),
    media: MediaStore = Depends(get_media_store),
):
    """Store an image and return the metadata to embed in a note's `images`."""
    settings = get_settings()
    contents = await image.read()
    validate_image_upload(image.content_type, len(contents), settings.MEDIA_MAX_BYTES)

    stored = media.store(contents, image.content_type)
    stored.update({
        "original_name": image.filename,
        "position": position,
        "uploaded_at": datetime.now(timezone.utc).isoformat(),
    })
    return success_response(stored, "Image uploaded")


@router.get("/analysis-history")
async def analysis_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """List the current user's previous image analyses."""
    page_size = min(page_size, get_settings().MAX_PAGE_SIZE)
    service = AIService(None, db)
    analyses, total = service.analysis_history(user_id, page, page_size)
    return paginated_response(analyses, total, page, page_size, key="analyses")
