"""Hostel review endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from roomlink.api.deps import get_current_principal, get_pagination, get_review_service
from roomlink.api.responses import ok, paginated
from roomlink.core.pagination import PaginationParams
from roomlink.core.permissions import Principal
from roomlink.schemas.common import MessageResponse, PaginatedResponse, SuccessResponse
from roomlink.schemas.review import ReviewCreate, ReviewReply, ReviewResponse, ReviewUpdate
from roomlink.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("", response_model=SuccessResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
):
    review = service.create_review(principal, payload)
    return ok(ReviewResponse.model_validate(review), "Review submitted")


@router.get("/hostel/{hostel_id}", response_model=PaginatedResponse[ReviewResponse])
def list_hostel_reviews(
    hostel_id: str,
    sort: str = "newest",
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    params: PaginationParams = Depends(get_pagination),
    service: ReviewService = Depends(get_review_service),
):
    result = service.list_hostel_reviews(hostel_id, params, sort=sort, min_rating=min_rating)
    return paginated(result, ReviewResponse)


@router.patch("/{review_id}", response_model=SuccessResponse[ReviewResponse])
def update_review(
    review_id: str,
    payload: ReviewUpdate,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
):
    review = service.update_review(principal, review_id, payload)
    return ok(ReviewResponse.model_validate(review), "Review updated")


@router.post("/{review_id}/reply", response_model=SuccessResponse[ReviewResponse])
def reply_to_review(
    review_id: str,
    payload: ReviewReply,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
):
    review = service.reply_to_review(principal, review_id, payload.text)
    return ok(ReviewResponse.model_validate(review), "Reply posted")


@router.post("/{review_id}/helpful", response_model=SuccessResponse[ReviewResponse])
def mark_helpful(
    review_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
):
    return ok(ReviewResponse.model_validate(service.mark_helpful(principal, review_id)))


@router.delete("/{review_id}", response_model=MessageResponse)
def delete_review(
    review_id: str,
    principal: Principal = Depends(get_current_principal),
    service: ReviewService = Depends(get_review_service),
):
    service.delete_review(principal, review_id)
    return MessageResponse(message="Review deleted")
