# backend/app/routers/services.py
# DELETE is physical; hide a card from the public page with /toggle instead.

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status

from ..database import get_services_repository
from ..schemas.services import (
    ServiceCreate,
    ServiceUpdate,
    ServiceRead,
)
from ..services.catalog import CatalogRepository
from ..services.errors import ReservationError

router = APIRouter(prefix="/services", tags=["services"])


def _http_error(e: ReservationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/", response_model=list[ServiceRead])
def list_services(
    active_only: bool = False,
    repo: CatalogRepository = Depends(get_services_repository),
):
    try:
        return repo.list(active_only=active_only)
    except ReservationError as e:
        raise _http_error(e)


@router.get("/{id}", response_model=ServiceRead)
def get_service(id: str, repo: CatalogRepository = Depends(get_services_repository)):
    try:
        return repo.get(id)
    except ReservationError as e:
        raise _http_error(e)


@router.post("/", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    repo: CatalogRepository = Depends(get_services_repository),
):
    try:
        return repo.create(data.model_dump())
    except ReservationError as e:
        raise _http_error(e)


@router.patch("/{id}", response_model=ServiceRead)
def update_service(
    id: str,
    data: ServiceUpdate,
    repo: CatalogRepository = Depends(get_services_repository),
):
    try:
        return repo.update(id, data.model_dump(exclude_unset=True))
    except ReservationError as e:
        raise _http_error(e)


@router.post("/{id}/toggle", response_model=ServiceRead)
def toggle_service(id: str, repo: CatalogRepository = Depends(get_services_repository)):
    try:
        return repo.toggle(id)
    except ReservationError as e:
        raise _http_error(e)


@router.post("/{id}/move")
def move_service(
    id: str,
    direction: Literal["up", "down"],
    repo: CatalogRepository = Depends(get_services_repository),
):
    try:
        return {"moved": repo.move(id, direction)}
    except ReservationError as e:
        raise _http_error(e)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(id: str, repo: CatalogRepository = Depends(get_services_repository)):
    try:
        repo.delete(id)
    except ReservationError as e:
        raise _http_error(e)
