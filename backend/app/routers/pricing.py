# backend/app/routers/pricing.py
# Same mechanics as /services: ordered cards, toggle, move, physical delete.

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status

from ..database import get_pricing_repository
from ..schemas.pricing import (
    PricingCreate,
    PricingUpdate,
    PricingRead,
)
from ..services.catalog import CatalogRepository
from ..services.errors import ReservationError

router = APIRouter(prefix="/pricing", tags=["pricing"])


def _http_error(e: ReservationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/", response_model=list[PricingRead])
def list_pricing(
    active_only: bool = False,
    repo: CatalogRepository = Depends(get_pricing_repository),
):
    try:
        return repo.list(active_only=active_only)
    except ReservationError as e:
        raise _http_error(e)


@router.get("/{id}", response_model=PricingRead)
def get_pricing(id: str, repo: CatalogRepository = Depends(get_pricing_repository)):
    try:
        return repo.get(id)
    except ReservationError as e:
        raise _http_error(e)


@router.post("/", response_model=PricingRead, status_code=status.HTTP_201_CREATED)
def create_pricing(
    data: PricingCreate,
    repo: CatalogRepository = Depends(get_pricing_repository),
):
    try:
        return repo.create(data.model_dump())
    except ReservationError as e:
        raise _http_error(e)


@router.patch("/{id}", response_model=PricingRead)
def update_pricing(
    id: str,
    data: PricingUpdate,
    repo: CatalogRepository = Depends(get_pricing_repository),
):
    try:
        return repo.update(id, data.model_dump(exclude_unset=True))
    except ReservationError as e:
        raise _http_error(e)


@router.post("/{id}/toggle", response_model=PricingRead)
def toggle_pricing(id: str, repo: CatalogRepository = Depends(get_pricing_repository)):
    try:
        return repo.toggle(id)
    except ReservationError as e:
        raise _http_error(e)


@router.post("/{id}/move")
def move_pricing(
    id: str,
    direction: Literal["up", "down"],
    repo: CatalogRepository = Depends(get_pricing_repository),
):
    try:
        return {"moved": repo.move(id, direction)}
    except ReservationError as e:
        raise _http_error(e)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pricing(id: str, repo: CatalogRepository = Depends(get_pricing_repository)):
    try:
        repo.delete(id)
    except ReservationError as e:
        raise _http_error(e)
