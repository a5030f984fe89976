"""Platform API client for environments, release bindings and deployment pipelines."""
from .errors import PlatformAPIError
from .client import PlatformClient

__all__ = ["PlatformClient", "PlatformAPIError"]
