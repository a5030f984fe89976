"""
Shared fixtures for the Deployment BFF test suite.
"""
import sys
import os
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

# Set env vars before any imports that read them
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("PLATFORM_API_URL", "http://platform.test/api/v1")
os.environ.setdefault("PLATFORM_API_TOKEN", "service-token")
os.environ.setdefault("LOG_LEVEL", "DEBUG")


@pytest.fixture
def fake_platform():
    """Three environments on a linear pipeline, checkout running in development only."""
    from fake_platform import FakePlatform, binding, env, linear_pipeline
    return FakePlatform(
        environments=[env("production", production=True), env("development"), env("staging")],
        bindings=[binding("development", "checkout-r1")],
        pipeline=linear_pipeline(),
    )


@pytest.fixture
def topology_service(fake_platform):
    """DeploymentTopologyService wired to the fake platform."""
    from deployment_bff.environments import DeploymentTopologyService
    return DeploymentTopologyService(fake_platform)
