"""
Platform API Client: bridge between the Deployment BFF and the platform API.
Handles environment, release binding and deployment pipeline reads, plus the
write calls behind promote / suspend / undeploy / release / deploy.
"""

import logging
from typing import Optional, Dict, List, Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from deployment_bff.config.settings import settings
from deployment_bff.environments.models import (
    DeploymentPipeline,
    EnvironmentRecord,
    ReleaseBinding,
    ReleaseState,
)
from deployment_bff.platform_client.errors import PlatformAPIError

logger = logging.getLogger(__name__)

RELEASE_BINDING_API_VERSION = "openchoreo.dev/v1alpha1"


def _seg(value: str) -> str:
    return quote(value, safe="")


def _component_path(organization: str, project: str, component: str) -> str:
    return f"/orgs/{_seg(organization)}/projects/{_seg(project)}/components/{_seg(component)}"


def _items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        return []
    return data.get("items") or []


class PlatformClient:
    """Client for the platform API. Holds a connection pool, never a user identity."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.platform_api_url).rstrip("/")
        self._service_token = token if token is not None else settings.platform_api_token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.platform_api_timeout_seconds,
            transport=transport,
        )
        logger.info(f"[Platform Client] Initialized with base_url={self.base_url}")

    # ── Plumbing ──────────────────────────────────────────────────

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        bearer = token or self._service_token
        return {"Authorization": f"Bearer {bearer}"} if bearer else {}

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, json=json, headers=self._headers(token))
        except httpx.HTTPError as e:
            raise PlatformAPIError(operation, f"Failed to {operation}: {e}") from e

        if resp.status_code >= 400:
            raise PlatformAPIError(
                operation,
                f"Failed to {operation}: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as e:
            raise PlatformAPIError(operation, f"Failed to {operation}: invalid JSON response",
                                   status_code=resp.status_code) from e
        if not isinstance(payload, dict):
            return {"data": payload}
        if payload.get("success") is False:
            message = payload.get("error") or payload.get("message") or "unsuccessful response"
            raise PlatformAPIError(operation, f"Failed to {operation}: {message}", status_code=resp.status_code)
        return payload

    # ── Health ────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        """Check if the platform API is reachable."""
        try:
            resp = await self._client.get("/health")
            return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"[Platform Client] Health check failed: {e}")
            return False

    # ── Topology sources ──────────────────────────────────────────

    async def list_environments(self, organization: str, token: Optional[str] = None) -> List[EnvironmentRecord]:
        """List all environments of an organization."""
        operation = "fetch environments"
        payload = await self._request(operation, "GET", f"/orgs/{_seg(organization)}/environments", token)
        try:
            return [EnvironmentRecord.model_validate(item) for item in _items(payload)]
        except ValidationError as e:
            raise PlatformAPIError(operation, f"Malformed environment record: {e}") from e

    async def list_release_bindings(
        self, organization: str, project: str, component: str, token: Optional[str] = None,
    ) -> List[ReleaseBinding]:
        """List the release bindings of a component, one per environment it runs in."""
        operation = "fetch release bindings"
        path = f"{_component_path(organization, project, component)}/release-bindings"
        payload = await self._request(operation, "GET", path, token)
        try:
            return [ReleaseBinding.model_validate(item) for item in _items(payload)]
        except ValidationError as e:
            raise PlatformAPIError(operation, f"Malformed release binding: {e}") from e

    async def get_deployment_pipeline(
        self, organization: str, project: str, token: Optional[str] = None,
    ) -> Optional[DeploymentPipeline]:
        """Fetch the project's deployment pipeline. Returns None when the project has none."""
        operation = "fetch deployment pipeline"
        path = f"/orgs/{_seg(organization)}/projects/{_seg(project)}/deployment-pipeline"
        try:
            payload = await self._request(operation, "GET", path, token)
        except PlatformAPIError as e:
            if e.status_code == 404:
                return None
            raise
        data = payload.get("data")
        if not data:
            return None
        try:
            return DeploymentPipeline.model_validate(data)
        except ValidationError as e:
            raise PlatformAPIError(operation, f"Malformed deployment pipeline: {e}") from e

    # ── Writes ────────────────────────────────────────────────────

    async def promote(
        self, organization: str, project: str, component: str,
        source_env: str, target_env: str, token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Promote the component's release from one environment to another."""
        path = f"{_component_path(organization, project, component)}/promote"
        payload = await self._request(
            "promote component", "POST", path, token,
            json={"sourceEnv": source_env, "targetEnv": target_env},
        )
        items = _items(payload)
        logger.info(f"[Platform Client] Promoted {component}: {source_env} -> {target_env} "
                    f"({len(items)} binding responses)")
        return items

    async def update_binding_release_state(
        self, organization: str, project: str, component: str,
        binding_name: str, release_state: ReleaseState, token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Set a binding's release state (Active, Suspend or Undeploy)."""
        path = f"{_component_path(organization, project, component)}/bindings/{_seg(binding_name)}"
        payload = await self._request(
            "update binding", "PATCH", path, token,
            json={"releaseState": ReleaseState(release_state).value},
        )
        logger.info(f"[Platform Client] Binding {binding_name} set to {ReleaseState(release_state).value}")
        return payload

    async def delete_release_binding(
        self, organization: str, binding_name: str, token: Optional[str] = None,
    ) -> None:
        """Delete a ReleaseBinding resource."""
        body = {
            "apiVersion": RELEASE_BINDING_API_VERSION,
            "kind": "ReleaseBinding",
            "metadata": {"name": binding_name, "namespace": organization},
        }
        await self._request("delete release binding", "DELETE", "/delete", token, json=body)
        logger.info(f"[Platform Client] Deleted release binding: {binding_name}")

    async def create_release(
        self, organization: str, project: str, component: str,
        release_name: Optional[str] = None, token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a component release. The platform generates a name when none is given."""
        body: Dict[str, Any] = {}
        if release_name:
            body["releaseName"] = release_name
        path = f"{_component_path(organization, project, component)}/component-releases"
        payload = await self._request("create component release", "POST", path, token, json=body)
        created = (payload.get("data") or {}).get("name") if isinstance(payload.get("data"), dict) else None
        logger.info(f"[Platform Client] Created release: {created or release_name or '<generated>'}")
        return payload

    async def deploy_release(
        self, organization: str, project: str, component: str,
        release_name: str, token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Deploy a release to the first environment of the pipeline."""
        path = f"{_component_path(organization, project, component)}/deploy"
        return await self._request("deploy release", "POST", path, token, json={"releaseName": release_name})

    async def patch_release_binding_overrides(
        self, organization: str, project: str, component: str,
        binding_name: str, overrides: Dict[str, Any], token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Patch a binding's component-type environment overrides."""
        path = f"{_component_path(organization, project, component)}/release-bindings/{_seg(binding_name)}"
        return await self._request(
            "patch release binding", "PATCH", path, token,
            json={"componentTypeEnvOverrides": overrides},
        )

    # ── Pass-through reads ────────────────────────────────────────

    async def fetch_release_bindings(
        self, organization: str, project: str, component: str, token: Optional[str] = None,
    ) -> Dict[str, Any]:
        path = f"{_component_path(organization, project, component)}/release-bindings"
        return await self._request("fetch release bindings", "GET", path, token)

    async def fetch_environment_release(
        self, organization: str, project: str, component: str,
        environment: str, token: Optional[str] = None,
    ) -> Dict[str, Any]:
        path = f"{_component_path(organization, project, component)}/environments/{_seg(environment)}/release"
        return await self._request("fetch environment release", "GET", path, token)

    async def fetch_component_release_schema(
        self, organization: str, project: str, component: str,
        release_name: str, token: Optional[str] = None,
    ) -> Dict[str, Any]:
        path = f"{_component_path(organization, project, component)}/component-releases/{_seg(release_name)}/schema"
        return await self._request("fetch component release schema", "GET", path, token)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
