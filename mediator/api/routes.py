"""API routes for the Wiki Mediator."""
import asyncio
from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional, Union
import logging

from mediator.api.limits import limit_concurrency
from mediator.services.wiki_client import WikiClientError
from mediator.services.wiki_mediator import WikiMediator, create_mediator

router = APIRouter(dependencies=[Depends(limit_concurrency)])
logger = logging.getLogger(__name__)
mediator = create_mediator()

VALID_TYPES = {"simpleSearch", "getPage"}
MAX_LIMIT = 500


def get_mediator() -> WikiMediator:
    return mediator


class MediatorRequest(BaseModel):
    """One client request, mirroring the JSON envelope of the socket protocol."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"id": "1", "type": "simpleSearch", "query": "Barack Obama", "limit": 5}
        },
    )

    id: str = Field(..., description="Client-chosen request id, echoed back")
    type: str = Field(..., description="simpleSearch or getPage")
    query: Optional[str] = None
    limit: int = Field(default=10, ge=0, le=MAX_LIMIT)
    page_title: Optional[str] = Field(default=None, alias="pageTitle")
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds before giving up")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        if v not in VALID_TYPES:
            raise ValueError(
                f"Invalid request type: {v}. Valid options: {', '.join(sorted(VALID_TYPES))}"
            )
        return v

    @model_validator(mode="after")
    def validate_arguments(self):
        if self.type == "simpleSearch" and self.query is None:
            raise ValueError("simpleSearch requires 'query'")
        if self.type == "getPage" and self.page_title is None:
            raise ValueError("getPage requires 'pageTitle'")
        return self


class MediatorResponse(BaseModel):
    """Response envelope: status is "success" or "failed"."""
    id: str
    status: str
    response: Union[List[str], str]


class SearchResponse(BaseModel):
    query: str
    limit: int
    titles: List[str]


class PageResponse(BaseModel):
    title: str
    text: str


async def _dispatch(request: MediatorRequest, service: WikiMediator) -> Union[List[str], str]:
    if request.type == "simpleSearch":
        return await service.simple_search(request.query, request.limit)
    return await service.get_page(request.page_title)


@router.post("/request", response_model=MediatorResponse)
async def handle_request(request: MediatorRequest, service: WikiMediator = Depends(get_mediator)):
    """
    Serve one simpleSearch/getPage request.

    Failures are reported in the envelope with status "failed" rather than
    as HTTP errors, so clients always get their request id back.
    """
    logger.info(f"Received request: id={request.id}, type={request.type}")

    try:
        if request.timeout is not None:
            result = await asyncio.wait_for(_dispatch(request, service), timeout=request.timeout)
        else:
            result = await _dispatch(request, service)
    except asyncio.TimeoutError:
        logger.warning(f"Request timed out after {request.timeout}s: id={request.id}")
        return MediatorResponse(id=request.id, status="failed", response="Operation timed out")
    except WikiClientError as e:
        logger.error(f"Upstream lookup failed: id={request.id}: {e}")
        return MediatorResponse(id=request.id, status="failed", response=str(e))

    return MediatorResponse(id=request.id, status="success", response=result)


@router.get("/search", response_model=SearchResponse)
async def search(
    query: str = Query(..., min_length=1, description="Search terms"),
    limit: int = Query(10, ge=0, le=MAX_LIMIT, description="Maximum number of titles"),
    service: WikiMediator = Depends(get_mediator),
):
    """Search page titles."""
    try:
        titles = await service.simple_search(query, limit)
    except WikiClientError as e:
        logger.error(f"Search failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return SearchResponse(query=query, limit=limit, titles=titles)


@router.get("/page/{title:path}", response_model=PageResponse)
async def page(
    title: str = Path(..., min_length=1, description="Page title"),
    service: WikiMediator = Depends(get_mediator),
):
    """Fetch the wikitext of a page. Missing pages return empty text."""
    try:
        text = await service.get_page(title)
    except WikiClientError as e:
        logger.error(f"Page fetch failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return PageResponse(title=title, text=text)


@router.get("/cache/stats")
async def cache_stats(service: WikiMediator = Depends(get_mediator)) -> Dict[str, Any]:
    """Current cache counters."""
    return asdict(service.cache.stats())
