"""
Binding merge. Attaches each environment's current release binding and its
promotion targets to the ordered environment list.
"""

from typing import Dict, List, Optional, Sequence

from .models import (
    DeploymentInfo,
    DeploymentStatus,
    EnvironmentRecord,
    PromotionTarget,
    ReleaseBinding,
    ResolvedEnvironment,
)
from .ordering import NameIndex, PromotionGraph


def derive_deployment_status(status: Optional[str]) -> DeploymentStatus:
    """
    Map a binding's free-text status to a deployment status.
    Only called when a binding exists, so the result is never NOT_DEPLOYED.
    """
    text = (status or "").lower()
    if "failed" in text or "error" in text:
        return DeploymentStatus.FAILED
    if "suspend" in text:
        return DeploymentStatus.SUSPENDED
    # "notready" contains "ready"; it has to be checked before "ready"
    if "notready" in text or "not ready" in text:
        return DeploymentStatus.PENDING
    if "ready" in text or "active" in text:
        return DeploymentStatus.SUCCESS
    return DeploymentStatus.PENDING


def current_bindings(
    bindings: Sequence[ReleaseBinding],
    environments: Sequence[EnvironmentRecord],
) -> Dict[int, ReleaseBinding]:
    """
    Position of the owning environment record -> its current binding.
    A binding belongs to the record whose resource name matches, else the one
    whose display name matches. First match wins.
    """
    by_resource: Dict[str, int] = {}
    by_display: Dict[str, int] = {}
    for position, env in enumerate(environments):
        by_resource.setdefault(NameIndex.key(env.name), position)
        by_display.setdefault(NameIndex.key(env.canonical_name), position)

    by_env: Dict[int, ReleaseBinding] = {}
    for binding in bindings:
        key = NameIndex.key(binding.environment)
        owner = by_resource.get(key, by_display.get(key))
        if owner is not None:
            by_env.setdefault(owner, binding)
    return by_env


def build_resolved_environment(
    env: EnvironmentRecord,
    binding: Optional[ReleaseBinding] = None,
    promotion_targets: Optional[List[PromotionTarget]] = None,
) -> ResolvedEnvironment:
    deployment = DeploymentInfo()
    binding_name = None
    has_overrides = None
    if binding:
        deployment = DeploymentInfo(
            status=derive_deployment_status(binding.status),
            last_deployed=binding.created_at,
            status_message=binding.status,
            release_name=binding.release_name,
        )
        binding_name = binding.name or None
        has_overrides = bool(binding.component_type_env_overrides)

    return ResolvedEnvironment(
        uid=env.uid,
        name=env.canonical_name,
        resource_name=env.name,
        binding_name=binding_name,
        has_component_type_overrides=has_overrides,
        data_plane_ref=env.data_plane_ref,
        is_production=env.is_production,
        deployment=deployment,
        endpoints=[],
        promotion_targets=[t.model_copy() for t in promotion_targets] if promotion_targets else None,
    )


def merge_bindings(
    ordered_names: Sequence[str],
    environments: Sequence[EnvironmentRecord],
    bindings: Sequence[ReleaseBinding],
    graph: PromotionGraph,
    index: NameIndex,
) -> List[ResolvedEnvironment]:
    """Build the topology view in the given order. Every environment appears exactly once."""
    by_name: Dict[str, List[int]] = {}
    for position, env in enumerate(environments):
        by_name.setdefault(index.canonical(env.canonical_name), []).append(position)
    by_binding = current_bindings(bindings, environments)

    view: List[ResolvedEnvironment] = []
    for name in ordered_names:
        for position in by_name.pop(name, []):
            view.append(build_resolved_environment(
                environments[position], by_binding.get(position), graph.promotion_targets(name),
            ))
    # names the ordering did not produce (should not happen) keep input order
    for name, positions in by_name.items():
        for position in positions:
            view.append(build_resolved_environment(
                environments[position], by_binding.get(position), graph.promotion_targets(name),
            ))
    return view


def is_already_promoted(
    source: ResolvedEnvironment,
    target_name: str,
    environments: Sequence[ResolvedEnvironment],
) -> bool:
    """True when the target environment already runs the source's release."""
    key = NameIndex.key(target_name)
    target = next((e for e in environments if NameIndex.key(e.name) == key), None)
    if not source.deployment.release_name or not target or not target.deployment.release_name:
        return False
    return source.deployment.release_name == target.deployment.release_name
