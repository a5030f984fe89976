"""Deployment topology: pipeline-ordered environments with their release binding state."""
from .models import DeploymentStatus, ReleaseState, ResolvedEnvironment
from .topology_service import DeploymentTopologyService, TopologyRefreshError, build_topology_view

__all__ = [
    "DeploymentTopologyService", "TopologyRefreshError", "build_topology_view",
    "DeploymentStatus", "ReleaseState", "ResolvedEnvironment",
]
