"""
Deployment BFF: FastAPI Server
REST API behind the developer portal's deployment view: pipeline-ordered
environment topology for a component, promotions, binding state changes,
releases and deploys. All data lives in the platform API.
"""

import logging
from typing import Optional, Dict, Any, List
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints, ValidationError
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from deployment_bff.config.settings import settings
from deployment_bff.environments import DeploymentTopologyService, ReleaseState, ResolvedEnvironment, TopologyRefreshError
from deployment_bff.platform_client import PlatformAPIError, PlatformClient

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Global Instances (initialized in lifespan) ────────────────────────────────

platform_client: Optional[PlatformClient] = None
topology_service: Optional[DeploymentTopologyService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the platform client and topology service; close the client on shutdown."""
    global platform_client, topology_service
    platform_client = PlatformClient()
    topology_service = DeploymentTopologyService(platform_client, settings.preferred_order)
    print(f"[DEPLOYMENT BFF] Platform API: {platform_client.base_url}")
    print(f"[DEPLOYMENT BFF] Environment: {settings.environment}")
    try:
        yield
    finally:
        await platform_client.close()
        platform_client = None
        topology_service = None
        print("[DEPLOYMENT BFF] Shutdown complete")


_openapi_tags = [
    {"name": "System", "description": "Health checks"},
    {"name": "Deployments", "description": "Pipeline-ordered environment topology for a component"},
    {"name": "Promotions", "description": "Promote, suspend, resume, undeploy and remove bindings"},
    {"name": "Releases", "description": "Create and deploy component releases, binding overrides"},
]

app = FastAPI(
    title="Deployment BFF",
    description=(
        "## Deployment topology backend-for-frontend\n\n"
        "Resolves where a component runs across its deployment pipeline and "
        "applies promotions and release changes through the platform API.\n\n"
        "---\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=_openapi_tags,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error handling ────────────────────────────────────────────────────────────

@app.exception_handler(PlatformAPIError)
async def platform_error_handler(request: Request, exc: PlatformAPIError):
    status_code = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
    content: Dict[str, Any] = {
        "detail": exc.message,
        "operation": exc.operation,
        "upstreamStatus": exc.status_code,
    }
    if isinstance(exc, TopologyRefreshError):
        status_code = 502
        content["writeSucceeded"] = True
    return JSONResponse(status_code=status_code, content=content)


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_topology_service() -> DeploymentTopologyService:
    if topology_service is None:
        raise RuntimeError("Topology service is not initialized")
    return topology_service


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """User token forwarded to the platform API, if the portal sent one."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


def _view(environments: List[ResolvedEnvironment]) -> List[Dict[str, Any]]:
    return [env.to_api() for env in environments]


# ── Request/Response Models ───────────────────────────────────────────────────

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    platform_api_url: str = ""
    platform_api_reachable: bool = False


class ComponentRef(_CamelRequest):
    """Component coordinates. The portal sends namespaceName/projectName/componentName."""
    organization: NonEmptyStr = Field(validation_alias=AliasChoices("namespaceName", "organization"))
    project: NonEmptyStr = Field(validation_alias=AliasChoices("projectName", "project"))
    component: NonEmptyStr = Field(validation_alias=AliasChoices("componentName", "component"))


class PromoteRequest(ComponentRef):
    source_env: NonEmptyStr
    target_env: NonEmptyStr


class DeleteBindingRequest(ComponentRef):
    environment: NonEmptyStr


class UpdateBindingRequest(ComponentRef):
    binding_name: NonEmptyStr
    release_state: ReleaseState


class CreateReleaseRequest(_CamelRequest):
    release_name: Optional[str] = None


class DeployReleaseRequest(_CamelRequest):
    release_name: NonEmptyStr


class PatchBindingRequest(ComponentRef):
    environment: NonEmptyStr
    component_type_env_overrides: Dict[str, Any] = Field(default_factory=dict)


def component_query(
    namespace_name: Optional[str] = Query(default=None, alias="namespaceName"),
    project_name: Optional[str] = Query(default=None, alias="projectName"),
    component_name: Optional[str] = Query(default=None, alias="componentName"),
    organization: Optional[str] = Query(default=None),
    project: Optional[str] = Query(default=None),
    component: Optional[str] = Query(default=None),
) -> ComponentRef:
    """Component coordinates from the query string, portal names first."""
    try:
        return ComponentRef.model_validate({
            "namespaceName": namespace_name or organization,
            "projectName": project_name or project,
            "componentName": component_name or component,
        })
    except ValidationError:
        raise HTTPException(
            status_code=422,
            detail="componentName, projectName and namespaceName are required query parameters",
        )


# ══════════════════════════════════════════════════════════════════════════════
# SYSTEM
# ══════════════════════════════════════════════════════════════════════════════

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health():
    """Liveness plus platform API reachability."""
    reachable = await platform_client.health_check() if platform_client else False
    return HealthResponse(
        platform_api_url=platform_client.base_url if platform_client else "",
        platform_api_reachable=reachable,
    )


# ══════════════════════════════════════════════════════════════════════════════
# DEPLOYMENT TOPOLOGY
# ══════════════════════════════════════════════════════════════════════════════

@app.get("/deploy", tags=["Deployments"])
async def get_deployment_topology(
    ref: ComponentRef = Depends(component_query),
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Environments in pipeline order with their current deployment state."""
    return _view(await service.resolve_deployment_topology(ref.organization, ref.project, ref.component, token=token))


# ── Promotions & binding state ────────────────────────────────────────────

@app.post("/promote-deployment", tags=["Promotions"])
async def promote_deployment(
    req: PromoteRequest,
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Promote the component from one environment to another."""
    return _view(await service.promote_component(
        req.organization, req.project, req.component, req.source_env, req.target_env, token=token,
    ))


@app.delete("/delete-release-binding", tags=["Promotions"])
async def delete_release_binding(
    req: DeleteBindingRequest,
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Remove the component's release binding from an environment."""
    return _view(await service.delete_release_binding(
        req.organization, req.project, req.component, req.environment, token=token,
    ))


@app.patch("/update-binding", tags=["Promotions"])
async def update_binding(
    req: UpdateBindingRequest,
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Set a binding's release state: Active, Suspend or Undeploy."""
    return _view(await service.update_component_binding(
        req.organization, req.project, req.component, req.binding_name, req.release_state, token=token,
    ))


# ── Releases ──────────────────────────────────────────────────────────────

@app.post("/create-release", tags=["Releases"])
async def create_release(
    req: CreateReleaseRequest,
    ref: ComponentRef = Depends(component_query),
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Create a component release (name generated by the platform when omitted)."""
    return _view(await service.create_component_release(
        ref.organization, ref.project, ref.component, req.release_name or None, token=token,
    ))


@app.post("/deploy-release", tags=["Releases"])
async def deploy_release(
    req: DeployReleaseRequest,
    ref: ComponentRef = Depends(component_query),
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Deploy a release to the first environment of the pipeline."""
    return _view(await service.deploy_release(
        ref.organization, ref.project, ref.component, req.release_name, token=token,
    ))


@app.patch("/patch-release-binding", tags=["Releases"])
async def patch_release_binding(
    req: PatchBindingRequest,
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Replace a binding's component-type environment overrides."""
    return _view(await service.patch_release_binding_overrides(
        req.organization, req.project, req.component, req.environment,
        req.component_type_env_overrides, token=token,
    ))


@app.get("/release-bindings", tags=["Releases"])
async def list_release_bindings(
    ref: ComponentRef = Depends(component_query),
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    return await service.fetch_release_bindings(ref.organization, ref.project, ref.component, token=token)


@app.get("/environment-release", tags=["Releases"])
async def get_environment_release(
    ref: ComponentRef = Depends(component_query),
    environment_name: Optional[str] = Query(default=None, alias="environmentName"),
    environment: Optional[str] = Query(default=None),
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    """Release currently rendered into an environment."""
    env_name = (environment_name or environment or "").strip()
    if not env_name:
        raise HTTPException(status_code=422, detail="environmentName is a required query parameter")
    return await service.fetch_environment_release(
        ref.organization, ref.project, ref.component, env_name, token=token,
    )


@app.get("/component-release-schema", tags=["Releases"])
async def get_component_release_schema(
    ref: ComponentRef = Depends(component_query),
    release_name: str = Query(..., min_length=1, alias="releaseName"),
    service: DeploymentTopologyService = Depends(get_topology_service),
    token: Optional[str] = Depends(bearer_token),
):
    return await service.fetch_component_release_schema(
        ref.organization, ref.project, ref.component, release_name, token=token,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
