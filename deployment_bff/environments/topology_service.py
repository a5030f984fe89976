"""
Deployment Topology Service. Resolves and mutates a component's deployment
topology across the environments of its deployment pipeline.

Every read fetches environments, release bindings and the pipeline afresh,
orders environments along the promotion graph and merges binding state in.
Every mutation performs exactly one platform write and then re-resolves;
there is no cached view to patch.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from deployment_bff.platform_client.errors import PlatformAPIError

from .fetch import TopologySources, fetch_topology_sources
from .merge import merge_bindings
from .models import (
    DeploymentPipeline,
    EnvironmentRecord,
    ReleaseBinding,
    ReleaseState,
    ResolvedEnvironment,
)
from .ordering import PREFERRED_ENVIRONMENT_ORDER, NameIndex, PromotionGraph, resolve_environment_order

logger = logging.getLogger(__name__)


class TopologyRefreshError(PlatformAPIError):
    """The write went through but the topology could not be re-resolved afterwards."""

    write_succeeded = True

    def __init__(self, operation: str, message: str):
        super().__init__(operation, message, status_code=None)


def build_topology_view(
    environments: Sequence[EnvironmentRecord],
    bindings: Sequence[ReleaseBinding],
    pipeline: Optional[DeploymentPipeline],
    preferred: Optional[Sequence[str]] = None,
) -> List[ResolvedEnvironment]:
    """Order environments along the pipeline and merge bindings in. Pure."""
    index = NameIndex.from_environments(environments)
    graph = PromotionGraph.from_pipeline(pipeline, index)
    ordered = resolve_environment_order(
        [env.canonical_name for env in environments],
        index=index, preferred=preferred, graph=graph,
    )
    return merge_bindings(ordered, environments, bindings, graph, index)


def binding_name_for(component: str, environment: str) -> str:
    """Platform naming convention for a component's binding in an environment."""
    return f"{component}-{environment.lower()}"


class DeploymentTopologyService:
    """
    Resolves deployment topology views and applies mutations against the
    platform API. Holds the gateway and ordering preferences only; request
    identity (organization, project, component, token) is passed per call.
    """

    def __init__(self, gateway, preferred_order: Optional[Sequence[str]] = None):
        self._gateway = gateway
        self._preferred = list(preferred_order) if preferred_order else list(PREFERRED_ENVIRONMENT_ORDER)

    # ── Resolution ────────────────────────────────────────────────

    async def _fetch(self, organization: str, project: str, component: str,
                     token: Optional[str]) -> TopologySources:
        return await fetch_topology_sources(self._gateway, organization, project, component, token=token)

    def _view(self, sources: TopologySources) -> List[ResolvedEnvironment]:
        return build_topology_view(
            sources.environments.value or [],
            sources.bindings.value or [],
            sources.pipeline.value,
            self._preferred,
        )

    async def resolve_deployment_topology(
        self, organization: str, project: str, component: str, token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        """
        Resolve the topology view for a component.
        Returns an empty list when environments cannot be fetched.
        """
        start = time.time()
        logger.debug(f"[Topology] Resolving {organization}/{project}/{component}")
        sources = await self._fetch(organization, project, component, token)
        if sources.fatal:
            logger.error(f"[Topology] Resolution failed for {organization}/{project}/{component} "
                         f"({round((time.time() - start) * 1000, 1)}ms): {sources.environments.error}")
            return []
        transform_start = time.time()
        view = self._view(sources)
        logger.debug(f"[Topology] Resolved {len(view)} environments for {component}: "
                     f"Parallel: {sources.parallel_ms}ms, "
                     f"Transform: {round((time.time() - transform_start) * 1000, 1)}ms, "
                     f"Total: {round((time.time() - start) * 1000, 1)}ms")
        return view

    async def _refresh(self, operation: str, organization: str, project: str, component: str,
                       token: Optional[str]) -> List[ResolvedEnvironment]:
        sources = await self._fetch(organization, project, component, token)
        if sources.fatal:
            raise TopologyRefreshError(
                operation,
                f"{operation} succeeded but the topology could not be refreshed: {sources.environments.error}",
            )
        return self._view(sources)

    async def _mutate(
        self,
        operation: str,
        organization: str,
        project: str,
        component: str,
        write: Callable[[], Awaitable[Any]],
        token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        start = time.time()
        ctx = f"{organization}/{project}/{component}"
        logger.info(f"[Topology] {operation} for {ctx}")
        try:
            await write()
        except Exception as e:
            logger.error(f"[Topology] {operation} failed for {ctx} "
                         f"({round((time.time() - start) * 1000, 1)}ms): {e}")
            raise
        try:
            view = await self._refresh(operation, organization, project, component, token)
        except Exception as e:
            logger.error(f"[Topology] Refresh after {operation} failed for {ctx} "
                         f"({round((time.time() - start) * 1000, 1)}ms): {e}")
            raise
        logger.debug(f"[Topology] {operation} completed for {ctx}: "
                     f"Total: {round((time.time() - start) * 1000, 1)}ms")
        return view

    # ── Mutations ─────────────────────────────────────────────────

    async def promote_component(
        self, organization: str, project: str, component: str,
        source_environment: str, target_environment: str, token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        """Promote the release running in one environment to the next."""
        return await self._mutate(
            f"promote {source_environment} -> {target_environment}",
            organization, project, component,
            lambda: self._gateway.promote(
                organization, project, component, source_environment, target_environment, token=token,
            ),
            token,
        )

    async def update_component_binding(
        self, organization: str, project: str, component: str,
        binding_name: str, release_state: ReleaseState, token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        """Suspend, resume or undeploy a binding."""
        state = ReleaseState(release_state)
        return await self._mutate(
            f"set {binding_name} to {state.value}",
            organization, project, component,
            lambda: self._gateway.update_binding_release_state(
                organization, project, component, binding_name, state, token=token,
            ),
            token,
        )

    async def delete_release_binding(
        self, organization: str, project: str, component: str,
        environment: str, token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        """Remove the component from an environment."""
        binding_name = binding_name_for(component, environment)
        return await self._mutate(
            f"delete binding {binding_name}",
            organization, project, component,
            lambda: self._gateway.delete_release_binding(organization, binding_name, token=token),
            token,
        )

    async def create_component_release(
        self, organization: str, project: str, component: str,
        release_name: Optional[str] = None, token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        return await self._mutate(
            f"create release {release_name or '<generated>'}",
            organization, project, component,
            lambda: self._gateway.create_release(organization, project, component, release_name, token=token),
            token,
        )

    async def deploy_release(
        self, organization: str, project: str, component: str,
        release_name: str, token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        """Deploy a release to the first environment of the pipeline."""
        return await self._mutate(
            f"deploy release {release_name}",
            organization, project, component,
            lambda: self._gateway.deploy_release(organization, project, component, release_name, token=token),
            token,
        )

    async def patch_release_binding_overrides(
        self, organization: str, project: str, component: str,
        environment: str, overrides: Dict[str, Any], token: Optional[str] = None,
    ) -> List[ResolvedEnvironment]:
        binding_name = binding_name_for(component, environment)
        return await self._mutate(
            f"patch overrides on {binding_name}",
            organization, project, component,
            lambda: self._gateway.patch_release_binding_overrides(
                organization, project, component, binding_name, overrides, token=token,
            ),
            token,
        )

    # ── Pass-through reads ────────────────────────────────────────

    async def fetch_release_bindings(self, organization: str, project: str, component: str,
                                     token: Optional[str] = None) -> Dict[str, Any]:
        return await self._gateway.fetch_release_bindings(organization, project, component, token=token)

    async def fetch_environment_release(self, organization: str, project: str, component: str,
                                        environment: str, token: Optional[str] = None) -> Dict[str, Any]:
        return await self._gateway.fetch_environment_release(
            organization, project, component, environment, token=token,
        )

    async def fetch_component_release_schema(self, organization: str, project: str, component: str,
                                             release_name: str, token: Optional[str] = None) -> Dict[str, Any]:
        return await self._gateway.fetch_component_release_schema(
            organization, project, component, release_name, token=token,
        )
