"""FastAPI application exposing CRUD endpoints for agencies."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_serializer

from .config import ServiceSettings, load_settings
from .models import Agency
from .registration import RegistrationProviderError, RegistrationStatusProvider
from .service import AgencyService, AgencyValidationError
from .store import InMemoryAgencyStore

logger = logging.getLogger("agencies.api")


class AgencyRequest(BaseModel):
    name: Optional[str] = None
    legal_name: Optional[str] = Field(default=None, alias="legalName")
    tax_id: Optional[str] = Field(default=None, alias="taxId")

    class Config:
        populate_by_name = True


class AgencyResponse(BaseModel):
    id: int
    name: Optional[str] = None
    legal_name: Optional[str] = Field(default=None, alias="legalName")
    tax_id: Optional[str] = Field(default=None, alias="taxId")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    class Config:
        populate_by_name = True

    @field_serializer("created_at", "updated_at", when_used="json")
    def _serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat()


def request_to_agency(payload: AgencyRequest) -> Agency:
    return Agency(name=payload.name, legal_name=payload.legal_name, tax_id=payload.tax_id)


def agency_to_response(agency: Agency) -> AgencyResponse:
    return AgencyResponse(
        id=agency.id,
        name=agency.name,
        legal_name=agency.legal_name,
        tax_id=agency.tax_id,
        created_at=agency.created_at,
        updated_at=agency.updated_at,
    )


def build_service(
    settings: ServiceSettings,
    *,
    provider: RegistrationStatusProvider | None = None,
) -> AgencyService:
    """Wire the default store and registration provider into a service."""

    if provider is None:
        provider = RegistrationStatusProvider(settings.registration)
    return AgencyService(InMemoryAgencyStore(), provider)


def create_app(
    *,
    service: AgencyService | None = None,
    settings: ServiceSettings | None = None,
) -> FastAPI:
    if service is None:
        if settings is None:
            settings = load_settings()
        service = build_service(settings)

    app = FastAPI(
        title="Agency Registry",
        description="CRUD API for agencies with tax registration checks",
        version="1.0.0",
    )
    app.state.service = service

    def get_service() -> AgencyService:
        return service

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    router = APIRouter()

    @router.get("/agencies", response_model=List[AgencyResponse])
    async def list_agencies(
        page: Optional[int] = Query(default=None, ge=0),
        size: Optional[int] = Query(default=None, ge=1),
        svc: AgencyService = Depends(get_service),
    ):
        if page is not None or size is not None:
            return JSONResponse(
                status_code=status.HTTP_501_NOT_IMPLEMENTED,
                content={"detail": "Pagination is not implemented"},
            )
        return [agency_to_response(agency) for agency in svc.list_all()]

    # Plain ``def`` so the blocking registration lookup runs in the threadpool.
    @router.post("/agencies", response_model=AgencyResponse, status_code=status.HTTP_201_CREATED)
    def create_agency(
        payload: AgencyRequest,
        svc: AgencyService = Depends(get_service),
    ) -> AgencyResponse:
        created = svc.create(request_to_agency(payload))
        return agency_to_response(created)

    @router.get("/agencies/{agency_id}", response_model=AgencyResponse)
    async def read_agency(agency_id: int, svc: AgencyService = Depends(get_service)):
        agency = svc.find_by_id(agency_id)
        if agency is None:
            return Response(status_code=status.HTTP_404_NOT_FOUND)
        return agency_to_response(agency)

    @router.put("/agencies/{agency_id}", response_model=AgencyResponse)
    async def update_agency(
        agency_id: int,
        payload: AgencyRequest,
        svc: AgencyService = Depends(get_service),
    ):
        updated = svc.update(agency_id, payload.model_dump(exclude_none=True))
        if updated is None:
            return Response(status_code=status.HTTP_404_NOT_FOUND)
        return agency_to_response(updated)

    @router.delete("/agencies/{agency_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_agency(agency_id: int, svc: AgencyService = Depends(get_service)) -> Response:
        if not svc.delete(agency_id):
            return Response(status_code=status.HTTP_404_NOT_FOUND)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    app.include_router(router)

    @app.exception_handler(AgencyValidationError)
    async def handle_validation_error(_: Request, exc: AgencyValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc)},
        )

    @app.exception_handler(RegistrationProviderError)
    async def handle_provider_error(_: Request, exc: RegistrationProviderError):
        logger.warning("Registration lookup failed: %s", exc)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})

    return app


__all__ = [
    "AgencyRequest",
    "AgencyResponse",
    "agency_to_response",
    "build_service",
    "create_app",
    "request_to_agency",
]
