"""Listing assistant endpoints.

Both parse endpoints take the same request and return the same response; they
differ only in extraction mode. The session context travels with every request
and response: the server keeps none of it. Enhancement is stateless and takes
no context.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from models.schemas import (
    AddItemRequest,
    ContextCreateRequest,
    ContextResponse,
    EnhanceRequest,
    EnhanceResponse,
    ParseRequest,
    ParseResponse,
)
from services.listing_assistant import ListingAssistant, ParseResult, get_listing_assistant
from utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _to_response(result: ParseResult) -> ParseResponse:
    return ParseResponse(
        success=result.success,
        form_updates=result.form_updates,
        field_updates=result.field_updates,
        context_used=result.context_used,
        updated_context=result.updated_context,
        missing_fields=result.missing_fields,
        suggestions=result.suggestions,
    )


@router.post("/parse-voice", response_model=ParseResponse)
async def parse_voice(
    request: ParseRequest,
    assistant: ListingAssistant = Depends(get_listing_assistant),
):
    """Per-field extraction: one completion call per relevant field."""
    result = await assistant.parse_fields(
        request.user_input,
        request.current_form,
        request.categories,
        context=request.context,
        initial_description=request.initial_description,
        item_id=request.item_id,
        target_field=request.target_field,
    )
    return _to_response(result)


@router.post("/contextual-parse", response_model=ParseResponse)
async def contextual_parse(
    request: ParseRequest,
    assistant: ListingAssistant = Depends(get_listing_assistant),
):
    """Combined extraction: one contextual call with repair and fallback."""
    result = await assistant.parse_contextual(
        request.user_input,
        request.current_form,
        request.categories,
        context=request.context,
        initial_description=request.initial_description,
        item_id=request.item_id,
        target_field=request.target_field,
    )
    return _to_response(result)


@router.post("/enhance-listing", response_model=EnhanceResponse)
async def enhance_listing(
    request: EnhanceRequest,
    assistant: ListingAssistant = Depends(get_listing_assistant),
):
    """Draft a listing from a spoken description, or polish the current one."""
    result = await assistant.enhance_listing(
        request.enhancement_type,
        request.current_form,
        request.categories,
        raw_input=request.raw_input,
    )
    return EnhanceResponse(**asdict(result))


@router.post("/context", response_model=ContextResponse)
async def create_context(
    request: ContextCreateRequest,
    assistant: ListingAssistant = Depends(get_listing_assistant),
):
    """Start a new listing session."""
    store = assistant.create_context(request.initial_description)
    return ContextResponse(context=store.serialize(), context_text=store.get_context_for_ai())


@router.post("/context/items", response_model=ContextResponse)
async def add_item(
    request: AddItemRequest,
    assistant: ListingAssistant = Depends(get_listing_assistant),
):
    """Register an item's image analysis with a session context."""
    store = assistant.add_item(
        request.context,
        request.item_id,
        request.image_analysis,
        request.user_description,
    )
    logger.info("Registered item", extra={"item_id": request.item_id})
    return ContextResponse(
        context=store.serialize(),
        context_text=store.get_context_for_ai(request.item_id),
    )
