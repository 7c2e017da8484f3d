"""FastAPI integration.

:class:`ExperimentMiddleware` gathers the visitor attributes the container
targets from each request, picks an experiment and a variation, and stores
them on ``request.state``. :func:`experiments_router` exposes the container
contents over HTTP.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from pickpick.config import get_settings
from pickpick.container import ExperimentContainer
from pickpick.experiment import Experiment


@dataclass(frozen=True)
class PickResult:
    """Experiment and variation picked for a request."""

    experiment: Experiment
    variation: Any


class ContainerResponse(BaseModel):
    """Serialized container."""

    experiments: list[dict[str, Any]] = Field(..., description="Experiment entries with weights")
    seed: int | None = Field(None, description="Container seed")


class FeaturesResponse(BaseModel):
    """Targeting features collected by the container."""

    features: list[str] = Field(..., description="Visitor attributes read by targeting")


def _request_value(request: Request, feature: str) -> Any:
    if feature in ("path", "url"):
        return request.url.path
    if feature == "method":
        return request.method
    if feature == "host":
        return request.url.hostname

    if feature in request.query_params:
        return request.query_params[feature]

    header = feature.replace("_", "-")
    if header in request.headers:
        return request.headers[header]

    return request.cookies.get(feature)


def collect_visitor(request: Request, features: Iterable[str]) -> dict[str, Any]:
    """Build the visitor record for a request, skipping empty values."""
    visitor = {}
    for feature in features:
        value = _request_value(request, feature)
        if value:
            visitor[feature] = value
    return visitor


def get_pick(request: Request, state_attr: str | None = None) -> PickResult | None:
    """Read the middleware's pick for a request, if any."""
    return getattr(request.state, state_attr or get_settings().request_state_attr, None)


class ExperimentMiddleware(BaseHTTPMiddleware):
    """Picks an experiment and variation for every request."""

    def __init__(self, app, container: ExperimentContainer, state_attr: str | None = None):
        super().__init__(app)
        self.container = container
        self.state_attr = state_attr or get_settings().request_state_attr

    async def dispatch(self, request: Request, call_next):
        visitor = collect_visitor(request, self.container.targeting_features)
        experiment = self.container.pick(visitor)

        if experiment is not None:
            result = PickResult(experiment=experiment, variation=experiment.pick())
            setattr(request.state, self.state_attr, result)

        return await call_next(request)


def experiments_router(container: ExperimentContainer) -> APIRouter:
    """Create read-only routes over a container."""
    router = APIRouter(prefix="/experiments", tags=["experiments"])

    @router.get("", response_model=ContainerResponse)
    async def list_experiments():
        """List all experiments with their container weights."""
        return container.to_json()

    @router.get("/features", response_model=FeaturesResponse)
    async def list_features():
        """List the visitor attributes used by any targeting."""
        return FeaturesResponse(features=sorted(container.targeting_features))

    @router.get("/{experiment_id}")
    async def get_experiment(experiment_id: str) -> dict[str, Any]:
        """Get a single experiment.

        Args:
            experiment_id: Experiment id.
        """
        experiment = container.get(experiment_id)
        if experiment is None:
            raise HTTPException(
                status_code=404,
                detail=f"Experiment '{experiment_id}' not found",
            )
        return experiment.to_json()

    return router


def install(app: FastAPI, container: ExperimentContainer, state_attr: str | None = None) -> None:
    """Add the experiment middleware and routes to an application."""
    app.add_middleware(ExperimentMiddleware, container=container, state_attr=state_attr)
    app.include_router(experiments_router(container))
    logger.info(
        f"Experiments installed: {len(container)} experiments, "
        f"features {sorted(container.targeting_features)}"
    )
