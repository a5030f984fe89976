"""
Concurrent fetch of the three topology sources.

Environments are mandatory; release bindings and the deployment pipeline are
enrichments. Each outcome is recorded as a SourceResult with its own timing
and an explicit status, so callers branch on the status instead of catching.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class SourceStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"  # failed or absent, replaced by an empty value
    FATAL = "fatal"


class SourceResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: str
    status: SourceStatus
    value: Any = None
    error: Optional[str] = None
    duration_ms: float = 0

    @property
    def ok(self) -> bool:
        return self.status == SourceStatus.OK


class TopologySources(BaseModel):
    environments: SourceResult
    bindings: SourceResult
    pipeline: SourceResult
    parallel_ms: float = 0

    @property
    def fatal(self) -> bool:
        return self.environments.status == SourceStatus.FATAL


async def _timed(source: str, call: Awaitable[Any]) -> SourceResult:
    start = time.time()
    try:
        value = await call
    except Exception as e:
        return SourceResult(
            source=source, status=SourceStatus.FATAL, error=str(e) or type(e).__name__,
            duration_ms=round((time.time() - start) * 1000, 1),
        )
    return SourceResult(
        source=source, status=SourceStatus.OK, value=value,
        duration_ms=round((time.time() - start) * 1000, 1),
    )


def _degrade(result: SourceResult, empty: Any) -> SourceResult:
    return result.model_copy(update={"status": SourceStatus.DEGRADED, "value": empty})


async def fetch_topology_sources(
    gateway,
    organization: str,
    project: str,
    component: str,
    token: Optional[str] = None,
) -> TopologySources:
    """
    Issue the environments, bindings and pipeline reads concurrently.

    `gateway` is anything exposing list_environments, list_release_bindings
    and get_deployment_pipeline coroutines (see PlatformClient).
    """
    ctx = f"{organization}/{project}/{component}"
    fetch_start = time.time()
    environments, bindings, pipeline = await asyncio.gather(
        _timed("environments", gateway.list_environments(organization, token=token)),
        _timed("bindings", gateway.list_release_bindings(organization, project, component, token=token)),
        _timed("pipeline", gateway.get_deployment_pipeline(organization, project, token=token)),
    )
    parallel_ms = round((time.time() - fetch_start) * 1000, 1)

    if not environments.ok:
        logger.error(f"[Topology] Failed to fetch environments for {ctx} "
                     f"({environments.duration_ms}ms): {environments.error}")
    elif environments.value is None:
        environments = environments.model_copy(update={"value": []})

    if not bindings.ok:
        logger.warning(f"[Topology] Failed to fetch bindings for {ctx} "
                       f"({bindings.duration_ms}ms), treating as not deployed: {bindings.error}")
        bindings = _degrade(bindings, [])
    elif bindings.value is None:
        bindings = bindings.model_copy(update={"value": []})

    if not pipeline.ok:
        logger.warning(f"[Topology] Failed to fetch deployment pipeline for {ctx} "
                       f"({pipeline.duration_ms}ms), using default ordering: {pipeline.error}")
        pipeline = _degrade(pipeline, None)
    elif pipeline.value is None:
        logger.warning(f"[Topology] No deployment pipeline found for {organization}/{project}, "
                       f"using default ordering")
        pipeline = _degrade(pipeline, None)

    logger.debug(f"[Topology] Source timings for {ctx} - Environments: {environments.duration_ms}ms, "
                 f"Bindings: {bindings.duration_ms}ms, Pipeline: {pipeline.duration_ms}ms, "
                 f"Parallel: {parallel_ms}ms")
    return TopologySources(
        environments=environments, bindings=bindings, pipeline=pipeline, parallel_ms=parallel_ms,
    )
