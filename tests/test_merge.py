"""
Tests for binding merge and deployment status derivation.
Run: pytest tests/test_merge.py -v
"""
import pytest

from deployment_bff.environments import build_topology_view
from deployment_bff.environments.merge import derive_deployment_status, is_already_promoted
from deployment_bff.environments.models import DeploymentStatus
from fake_platform import binding, env, linear_pipeline, pipeline


class TestDeploymentStatus:

    @pytest.mark.parametrize("raw,expected", [
        ("Ready", DeploymentStatus.SUCCESS),
        ("Active", DeploymentStatus.SUCCESS),
        ("NotReady", DeploymentStatus.PENDING),
        ("Not Ready", DeploymentStatus.PENDING),
        ("Failed", DeploymentStatus.FAILED),
        ("Failed: image pull error", DeploymentStatus.FAILED),
        ("ReconcileError", DeploymentStatus.FAILED),
        ("Suspended", DeploymentStatus.SUSPENDED),
        ("Failed: NotReady", DeploymentStatus.FAILED),
        ("Error: pods NotReady", DeploymentStatus.FAILED),
        ("Suspended (NotReady)", DeploymentStatus.SUSPENDED),
        ("Progressing", DeploymentStatus.PENDING),
        ("", DeploymentStatus.PENDING),
        (None, DeploymentStatus.PENDING),
    ])
    def test_mapping(self, raw, expected):
        assert derive_deployment_status(raw) == expected

    def test_never_not_deployed(self):
        for raw in ["Ready", "weird", None, "undeployed"]:
            assert derive_deployment_status(raw) != DeploymentStatus.NOT_DEPLOYED


class TestBuildTopologyView:

    def test_environment_without_binding_is_not_deployed(self):
        view = build_topology_view([env("development"), env("staging")], [], linear_pipeline())
        assert [e.name for e in view] == ["development", "staging"]
        for e in view:
            assert e.deployment.status == DeploymentStatus.NOT_DEPLOYED
            assert e.binding_name is None
            assert e.deployment.release_name is None

    def test_binding_fields_merged(self):
        view = build_topology_view(
            [env("development")],
            [binding("development", "checkout-r1", overrides={"replicas": 2})],
            None,
        )
        dev = view[0]
        assert dev.binding_name == "checkout-development"
        assert dev.deployment.status == DeploymentStatus.SUCCESS
        assert dev.deployment.release_name == "checkout-r1"
        assert dev.deployment.last_deployed == "2026-10-01T12:00:00Z"
        assert dev.deployment.status_message == "Ready"
        assert dev.has_component_type_overrides is True

    def test_first_binding_wins(self):
        view = build_topology_view(
            [env("development")],
            [binding("development", "r1"), binding("Development", "r2")],
            None,
        )
        assert view[0].deployment.release_name == "r1"

    def test_binding_matched_through_resource_name(self):
        view = build_topology_view(
            [env("dev", display_name="Development")],
            [binding("dev", "r1")],
            pipeline(("Development", ["Staging"])),
        )
        assert view[0].name == "Development"
        assert view[0].resource_name == "dev"
        assert view[0].deployment.release_name == "r1"

    def test_colliding_names_keep_rows_separate(self):
        view = build_topology_view(
            [env("stg", display_name="Production"), env("production")],
            [binding("production", "prod-r1")],
            None,
        )
        rows = {e.resource_name: e for e in view}
        assert len(view) == 2
        assert rows["production"].deployment.release_name == "prod-r1"
        assert rows["production"].binding_name == "checkout-production"
        assert rows["stg"].deployment.status == DeploymentStatus.NOT_DEPLOYED
        assert rows["stg"].binding_name is None

    def test_resource_name_match_beats_display_name(self):
        view = build_topology_view(
            [env("stg", display_name="Production"), env("production")],
            [binding("stg", "stg-r1"), binding("Production", "prod-r1")],
            None,
        )
        rows = {e.resource_name: e for e in view}
        assert rows["stg"].deployment.release_name == "stg-r1"
        assert rows["production"].deployment.release_name == "prod-r1"

    def test_binding_for_unknown_environment_ignored(self):
        view = build_topology_view([env("development")], [binding("qa", "r1")], None)
        assert len(view) == 1
        assert view[0].deployment.status == DeploymentStatus.NOT_DEPLOYED

    def test_promotion_targets_attached(self):
        view = build_topology_view(
            [env("development"), env("staging"), env("production", production=True)], [], linear_pipeline(),
        )
        by_name = {e.name: e for e in view}
        assert [t.name for t in by_name["development"].promotion_targets] == ["staging"]
        assert [t.name for t in by_name["staging"].promotion_targets] == ["production"]
        assert by_name["production"].promotion_targets is None
        assert by_name["production"].is_production is True

    def test_every_environment_exactly_once(self):
        envs = [env("production"), env("perf"), env("development"), env("staging")]
        view = build_topology_view(envs, [binding("perf", "r9")], linear_pipeline())
        assert sorted(e.resource_name for e in view) == ["development", "perf", "production", "staging"]
        assert view[-1].name == "perf"

    def test_api_shape_is_camel_case(self):
        view = build_topology_view([env("development")], [binding("development", "r1")], linear_pipeline())
        data = view[0].to_api()
        assert data["resourceName"] == "development"
        assert data["bindingName"] == "checkout-development"
        assert data["isProduction"] is False
        assert data["deployment"]["status"] == "success"
        assert data["deployment"]["releaseName"] == "r1"
        assert data["endpoints"] == []
        assert "image" not in data["deployment"]


class TestAlreadyPromoted:

    def _view(self, bindings):
        return build_topology_view([env("development"), env("staging")], bindings, linear_pipeline())

    def test_same_release_is_promoted(self):
        view = self._view([binding("development", "r1"), binding("staging", "r1")])
        assert is_already_promoted(view[0], "Staging", view) is True

    def test_different_release(self):
        view = self._view([binding("development", "r2"), binding("staging", "r1")])
        assert is_already_promoted(view[0], "staging", view) is False

    def test_target_not_deployed(self):
        view = self._view([binding("development", "r1")])
        assert is_already_promoted(view[0], "staging", view) is False

    def test_unknown_target(self):
        view = self._view([binding("development", "r1")])
        assert is_already_promoted(view[0], "qa", view) is False
