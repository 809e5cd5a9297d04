"""
services/powerbi_service.py
---------------------------
Client for the Power BI REST API, authenticated as an Azure AD service
principal (OAuth2 client-credentials flow).

The client is built once at startup from settings and handed to routes as a
dependency (see dependencies.get_powerbi_client). Tests pass their own
httpx.AsyncClient with a MockTransport.

The AAD access token is cached in memory until five minutes before it
expires.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from portal.core.config import Settings
from portal.core.errors import NotFoundError, PowerBIError, PowerBINotConfiguredError
from portal.core.logging import get_logger
from portal.schemas.powerbi import (
    AccessLevel,
    EmbedToken,
    Report,
    Workspace,
    WorkspaceReports,
)

logger = get_logger(__name__)

# Tenants that only work for delegated (user) sign-in, never client credentials
RESERVED_TENANTS = frozenset({"common", "organizations", "consumers"})
TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60

_GUID = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_RESHARE_MARKER = "Only folder user with reshare permissions"
_RESHARE_HINT = (
    "The service principal may not generate embed tokens for this workspace. "
    "Add it as an Admin of the workspace and make sure the workspace runs on "
    "a Premium (Premium Per User or Premium capacity) license."
)
_SECRET_HINT = (
    "AZURE_CLIENT_SECRET was rejected. Use the secret VALUE shown when the "
    "secret is created, not its Secret ID."
)


@dataclass(frozen=True)
class PowerBIConfig:
    client_id: str
    client_secret: str
    tenant_id: str
    workspace_id: str
    authority_host: str = "https://login.microsoftonline.com"
    scope: str = "https://analysis.windows.net/powerbi/api/.default"
    api_url: str = "https://api.powerbi.com/v1.0/myorg"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PowerBIConfig":
        return cls(
            client_id=settings.AZURE_CLIENT_ID.strip(),
            client_secret=settings.AZURE_CLIENT_SECRET.strip(),
            tenant_id=settings.AZURE_TENANT_ID.strip(),
            workspace_id=settings.POWERBI_WORKSPACE_ID.strip(),
            authority_host=settings.AZURE_AUTHORITY_HOST.rstrip("/"),
            scope=settings.POWERBI_SCOPE,
            api_url=settings.POWERBI_API_URL.rstrip("/"),
            timeout=settings.POWERBI_TIMEOUT_SECONDS,
        )

    @property
    def token_url(self) -> str:
        return f"{self.authority_host}/{self.tenant_id}/oauth2/v2.0/token"

    def problems(self) -> list[str]:
        """Human-readable reasons the configuration cannot work; empty if fine."""
        problems = [
            f"{name} is not set"
            for name, value in (
                ("AZURE_CLIENT_ID", self.client_id),
                ("AZURE_CLIENT_SECRET", self.client_secret),
                ("AZURE_TENANT_ID", self.tenant_id),
                ("POWERBI_WORKSPACE_ID", self.workspace_id),
            )
            if not value
        ]
        if self.tenant_id.lower() in RESERVED_TENANTS:
            problems.append(
                f"AZURE_TENANT_ID '{self.tenant_id}' is reserved and cannot be used "
                "with client credentials"
            )
        if _GUID.match(self.client_secret):
            problems.append("AZURE_CLIENT_SECRET looks like a Secret ID, not a secret value")
        return problems


class PowerBIClient:

    def __init__(
        self,
        config: PowerBIConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

        for problem in config.problems():
            logger.warning("Power BI not configured", reason=problem)

    async def aclose(self) -> None:
        await self._http.aclose()

    def is_configured(self) -> bool:
        return not self.config.problems()

    # ── Authentication ───────────────────────────────────────────────────────

    async def get_access_token(self) -> str:
        if not self.is_configured():
            raise PowerBINotConfiguredError(
                "Power BI is not configured: " + "; ".join(self.config.problems())
            )
        if self._token and self._clock() < self._token_expires_at:
            return self._token

        try:
            response = await self._http.post(
                self.config.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "scope": self.config.scope,
                },
            )
        except httpx.HTTPError as exc:
            logger.error("Power BI token request failed", error=str(exc))
            raise PowerBIError(f"Could not reach Azure AD: {exc}") from exc

        payload = _json(response)
        if response.is_error or "access_token" not in payload:
            if payload.get("error") == "invalid_client":
                raise PowerBIError(_SECRET_HINT)
            description = payload.get("error_description") or response.text
            logger.error(
                "Power BI authentication failed", status=response.status_code, error=description
            )
            raise PowerBIError(f"Power BI authentication failed: {description}")

        expires_in = float(payload.get("expires_in", 3600))
        self._token = payload["access_token"]
        self._token_expires_at = self._clock() + expires_in - TOKEN_REFRESH_MARGIN_SECONDS
        logger.info("Power BI access token acquired", expires_in=expires_in)
        return self._token

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict[str, Any]:
        token = await self.get_access_token()
        try:
            response = await self._http.request(
                method,
                f"{self.config.api_url}{path}",
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Power BI request failed", path=path, error=str(exc))
            raise PowerBIError(f"Could not reach Power BI: {exc}") from exc

        payload = _json(response)
        if response.is_error:
            error = payload.get("error")
            message = (error.get("message") if isinstance(error, dict) else error) or response.text
            logger.error(
                "Power BI API error", path=path, status=response.status_code, error=message
            )
            if _RESHARE_MARKER in message:
                raise PowerBIError(_RESHARE_HINT, upstream=message)
            if response.status_code == 401:
                # Cached token was rejected; the next call fetches a new one.
                self._token = None
            if response.status_code == 404:
                raise NotFoundError("resource", path)
            raise PowerBIError(f"Power BI request failed: {message}")
        return payload

    # ── Workspaces ───────────────────────────────────────────────────────────

    async def list_workspaces(self) -> list[Workspace]:
        payload = await self._request("GET", "/groups")
        return [
            Workspace(
                id=item["id"],
                name=item["name"],
                is_read_only=item.get("isReadOnly"),
                is_on_dedicated_capacity=item.get("isOnDedicatedCapacity"),
                type=item.get("type"),
            )
            for item in payload.get("value", [])
        ]

    async def find_workspace_by_name(self, name: str, exact: bool = True) -> Optional[Workspace]:
        """
        Case-insensitive lookup. With ``exact=False`` either name may contain
        the other ("Acme" matches "Acme Reports").
        """
        wanted = name.strip().lower()
        if not wanted:
            return None
        for workspace in await self.list_workspaces():
            candidate = workspace.name.strip().lower()
            if not candidate:
                continue
            if candidate == wanted:
                return workspace
            if not exact and (wanted in candidate or candidate in wanted):
                return workspace
        return None

    # ── Reports ──────────────────────────────────────────────────────────────

    async def list_reports(self, workspace_id: Optional[str] = None) -> list[Report]:
        workspace_id = workspace_id or self.config.workspace_id
        payload = await self._request("GET", f"/groups/{workspace_id}/reports")
        return [_report(item, workspace_id) for item in payload.get("value", [])]

    async def get_report(self, report_id: str, workspace_id: Optional[str] = None) -> Report:
        workspace_id = workspace_id or self.config.workspace_id
        payload = await self._request("GET", f"/groups/{workspace_id}/reports/{report_id}")
        return _report(payload, workspace_id)

    async def list_reports_for_company(
        self, company_name: str, exact: bool = True
    ) -> WorkspaceReports:
        """Reports of the workspace named after the company."""
        workspace = await self.find_workspace_by_name(company_name, exact)
        if workspace is None:
            raise NotFoundError("workspace", company_name)
        return WorkspaceReports(
            workspace=workspace, reports=await self.list_reports(workspace.id)
        )

    async def issue_embed_token(
        self,
        report_id: str,
        access_level: AccessLevel = AccessLevel.view,
        workspace_id: Optional[str] = None,
    ) -> EmbedToken:
        workspace_id = workspace_id or self.config.workspace_id
        report = await self.get_report(report_id, workspace_id)
        payload = await self._request(
            "POST",
            f"/groups/{workspace_id}/reports/{report_id}/GenerateToken",
            json={
                "accessLevel": access_level.value,
                "allowSaveAs": access_level is AccessLevel.edit,
            },
        )
        logger.info(
            "Embed token issued",
            report_id=report_id,
            workspace_id=workspace_id,
            access_level=access_level.value,
        )
        return EmbedToken(
            embed_url=report.embed_url,
            access_token=payload["token"],
            embed_id=report_id,
            expiration=payload.get("expiration"),
            token_type=payload.get("tokenType") or "Bearer",
        )


def _json(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _report(item: dict[str, Any], workspace_id: str) -> Report:
    return Report(
        id=item["id"],
        name=item["name"],
        embed_url=item.get("embedUrl"),
        web_url=item.get("webUrl"),
        workspace_id=item.get("workspaceId") or workspace_id,
        dataset_id=item.get("datasetId"),
    )
