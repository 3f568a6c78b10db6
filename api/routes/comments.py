import logging
import sys
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from api.services import get_orchestrator, get_store
from comment_aggregator.comment_ranker import rank_comments
from comment_aggregator.summary_orchestrator import SummaryMode, SummaryOrchestrator
from storage.parcel_store import ParcelStore
from storage.schemas import CommentRecord

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

router = APIRouter()


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommentCreate(RequestModel):
    parcel_id: int
    author_id: int
    content: str = Field(max_length=5000)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value


class VoteRequest(RequestModel):
    vote_type: Literal["upvote", "downvote"]


class SummaryRequest(RequestModel):
    parcel_id: int
    mode: SummaryMode = SummaryMode.STRUCTURED
    debug: bool = False
    mock: bool = False


def _summarize(request: SummaryRequest, orchestrator: SummaryOrchestrator) -> dict:
    if request.mock:
        result = orchestrator.mock_result(request.parcel_id, request.mode)
    else:
        result = orchestrator.summarize(request.parcel_id, request.mode)
    return result.to_payload(include_debug=request.debug)


@router.get("/comments/summary")
def get_summary(
    parcel_id: int = Query(..., alias="parcelId"),
    mode: SummaryMode = Query(SummaryMode.STRUCTURED),
    debug: bool = Query(False),
    mock: bool = Query(False),
    orchestrator: SummaryOrchestrator = Depends(get_orchestrator),
):
    request = SummaryRequest(parcel_id=parcel_id, mode=mode, debug=debug, mock=mock)
    return _summarize(request, orchestrator)


@router.post("/comments/summary")
def post_summary(
    request: SummaryRequest,
    orchestrator: SummaryOrchestrator = Depends(get_orchestrator),
):
    return _summarize(request, orchestrator)


@router.get("/comments", response_model=list[CommentRecord])
def list_comments(
    parcel_id: int | None = Query(None, alias="parcelId"),
    store: ParcelStore = Depends(get_store),
):
    """Comments on one parcel, best net score first."""
    if parcel_id is None:
        raise HTTPException(status_code=400, detail="parcelId is required")
    return rank_comments(store.list_comments([parcel_id]))


@router.post("/comments", response_model=CommentRecord, status_code=201)
def create_comment(
    body: CommentCreate,
    store: ParcelStore = Depends(get_store),
    orchestrator: SummaryOrchestrator = Depends(get_orchestrator),
):
    comment = store.create_comment(body.parcel_id, body.author_id, body.content)
    # The next summary request for this parcel must recompute
    orchestrator.invalidate(body.parcel_id)
    logger.info(f"Comment {comment.id} created on parcel {body.parcel_id}")
    return comment


@router.patch("/comments/{comment_id}/vote", response_model=CommentRecord)
def vote_on_comment(
    comment_id: int,
    body: VoteRequest,
    store: ParcelStore = Depends(get_store),
):
    return store.vote(comment_id, body.vote_type)
