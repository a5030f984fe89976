"""
Deployment topology models.
Platform-side records (environments, release bindings, deployment pipeline)
and the resolved per-environment view returned to the portal UI.
Wire format on both sides is camelCase; Python attributes are snake_case.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ══════════════════════════════════════════════════════════════════════════════
# Enums
# ══════════════════════════════════════════════════════════════════════════════

class DeploymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SUSPENDED = "suspended"
    PENDING = "pending"
    NOT_DEPLOYED = "not-deployed"


class ReleaseState(str, Enum):
    """Binding release state. Active and Suspend toggle; Undeploy is terminal."""
    ACTIVE = "Active"
    SUSPEND = "Suspend"
    UNDEPLOY = "Undeploy"


# ══════════════════════════════════════════════════════════════════════════════
# Platform API records
# ══════════════════════════════════════════════════════════════════════════════

class EnvironmentRecord(_CamelModel):
    """An environment as returned by the platform API."""
    uid: str = ""
    name: str  # resource name
    display_name: Optional[str] = None
    data_plane_ref: Optional[str] = None
    is_production: bool = False

    @property
    def canonical_name(self) -> str:
        return self.display_name or self.name


class ReleaseBinding(_CamelModel):
    """A release assigned to run in one environment for one component."""
    name: str = ""
    environment: str
    release_name: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    component_type_env_overrides: Optional[Dict[str, Any]] = None


class PromotionTarget(_CamelModel):
    name: str
    requires_approval: Optional[bool] = None
    is_manual_approval_required: Optional[bool] = None


class PromotionPath(_CamelModel):
    source_environment_ref: str
    target_environment_refs: List[PromotionTarget] = Field(default_factory=list)


class DeploymentPipeline(_CamelModel):
    name: Optional[str] = None
    promotion_paths: List[PromotionPath] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════════
# Topology view
# ══════════════════════════════════════════════════════════════════════════════

class EndpointInfo(_CamelModel):
    """Reserved for endpoint data once the platform API exposes it; views currently carry none."""
    name: str
    type: str
    url: str
    visibility: str = "project"


class DeploymentInfo(_CamelModel):
    status: DeploymentStatus = DeploymentStatus.NOT_DEPLOYED
    last_deployed: Optional[str] = None
    image: Optional[str] = None
    status_message: Optional[str] = None
    release_name: Optional[str] = None


class ResolvedEnvironment(_CamelModel):
    """One row of the topology view. Built fresh on every resolution."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    uid: str = ""
    name: str
    resource_name: str
    binding_name: Optional[str] = None
    has_component_type_overrides: Optional[bool] = None
    data_plane_ref: Optional[str] = None
    is_production: bool = False
    deployment: DeploymentInfo = Field(default_factory=DeploymentInfo)
    endpoints: List[EndpointInfo] = Field(default_factory=list)
    promotion_targets: Optional[List[PromotionTarget]] = None

    def to_api(self) -> Dict[str, Any]:
        """Serialise for the UI (camelCase, unset optionals dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
