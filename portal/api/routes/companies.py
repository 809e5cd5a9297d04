"""
api/routes/companies.py
-----------------------
Company (tenant) management. Admin only.

GET    /companies                 — List companies, newest first.
GET    /companies/{id}            — Fetch one company.
POST   /companies                 — Create a company.
PUT    /companies/{id}            — Partial update.
DELETE /companies/{id}[?hard=1]   — Deactivate, or delete with everything it owns.
"""

from typing import Optional

from fastapi import APIRouter, Query, status

from portal.dependencies import CurrentAdmin, Store
from portal.schemas.common import DeleteResult
from portal.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate
from portal.services.company_service import CompanyService

router = APIRouter(prefix="/companies", tags=["Companies"])


@router.get("", response_model=list[CompanyRead], summary="List companies")
async def list_companies(
    store: Store,
    admin: CurrentAdmin,
    is_active: Optional[bool] = Query(default=None),
) -> list[CompanyRead]:
    companies = await CompanyService(store).list_companies(is_active=is_active)
    return [CompanyRead.model_validate(c) for c in companies]


@router.get("/{company_id}", response_model=CompanyRead, summary="Get a company")
async def get_company(company_id: str, store: Store, admin: CurrentAdmin) -> CompanyRead:
    return CompanyRead.model_validate(await CompanyService(store).get_company(company_id))


@router.post(
    "",
    response_model=CompanyRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a company",
)
async def create_company(body: CompanyCreate, store: Store, admin: CurrentAdmin) -> CompanyRead:
    return CompanyRead.model_validate(await CompanyService(store).create_company(body))


@router.put("/{company_id}", response_model=CompanyRead, summary="Update a company")
async def update_company(
    company_id: str,
    body: CompanyUpdate,
    store: Store,
    admin: CurrentAdmin,
) -> CompanyRead:
    company = await CompanyService(store).update_company(company_id, body)
    return CompanyRead.model_validate(company)


@router.delete("/{company_id}", response_model=DeleteResult, summary="Delete a company")
async def delete_company(
    company_id: str,
    store: Store,
    admin: CurrentAdmin,
    hard: bool = Query(default=False, description="Irreversibly delete users, dashboards and grants too"),
) -> DeleteResult:
    """
    Soft delete by default: the company is deactivated and blocks new grants,
    nothing else changes. ``?hard=true`` removes the company together with
    all of its users, dashboards and their grants.
    """
    service = CompanyService(store)
    if hard:
        removed = await service.hard_delete_company(company_id)
        return DeleteResult(id=company_id, hard=True, removed=removed)
    await service.deactivate_company(company_id)
    return DeleteResult(id=company_id, hard=False)
