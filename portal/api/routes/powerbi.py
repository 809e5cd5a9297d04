"""
api/routes/powerbi.py
---------------------
Direct access to the Power BI workspace. Admin only; used when registering
reports as dashboards.

GET /powerbi/workspaces                           — Workspaces the service principal sees.
GET /powerbi/workspaces/{workspace_id}/reports    — Reports of one workspace.
GET /powerbi/reports                              — Reports of the default workspace.
GET /powerbi/reports/{report_id}                  — One report of the default workspace.
GET /powerbi/reports/{report_id}/embed-token      — Embed token (?accessLevel=View|Edit).
GET /powerbi/companies/{company_id}/reports       — Reports of the workspace named after a company.
"""

from typing import Optional

from fastapi import APIRouter, Query

from portal.dependencies import CurrentAdmin, PowerBI, Store
from portal.schemas.powerbi import (
    EmbedToken,
    Report,
    Workspace,
    WorkspaceReports,
    parse_access_level,
)
from portal.services.company_service import CompanyService

router = APIRouter(prefix="/powerbi", tags=["Power BI"])


@router.get("/workspaces", response_model=list[Workspace], summary="List workspaces")
async def list_workspaces(powerbi: PowerBI, admin: CurrentAdmin) -> list[Workspace]:
    return await powerbi.list_workspaces()


@router.get(
    "/workspaces/{workspace_id}/reports",
    response_model=list[Report],
    summary="List the reports of a workspace",
)
async def list_workspace_reports(
    workspace_id: str, powerbi: PowerBI, admin: CurrentAdmin
) -> list[Report]:
    return await powerbi.list_reports(workspace_id)


@router.get("/reports", response_model=list[Report], summary="List reports")
async def list_reports(powerbi: PowerBI, admin: CurrentAdmin) -> list[Report]:
    return await powerbi.list_reports()


@router.get("/reports/{report_id}", response_model=Report, summary="Get a report")
async def get_report(report_id: str, powerbi: PowerBI, admin: CurrentAdmin) -> Report:
    return await powerbi.get_report(report_id)


@router.get(
    "/reports/{report_id}/embed-token",
    response_model=EmbedToken,
    summary="Issue an embed token for a report",
)
async def report_embed_token(
    report_id: str,
    powerbi: PowerBI,
    admin: CurrentAdmin,
    access_level: Optional[str] = Query(default=None, alias="accessLevel"),
) -> EmbedToken:
    return await powerbi.issue_embed_token(report_id, parse_access_level(access_level))


@router.get(
    "/companies/{company_id}/reports",
    response_model=WorkspaceReports,
    summary="List the reports of a company's workspace",
)
async def company_reports(
    company_id: str,
    store: Store,
    powerbi: PowerBI,
    admin: CurrentAdmin,
    exact: bool = Query(default=True, description="Require the workspace name to match exactly"),
) -> WorkspaceReports:
    company = await CompanyService(store).get_company(company_id)
    return await powerbi.list_reports_for_company(company.name, exact=exact)
