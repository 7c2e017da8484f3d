"""Pytest fixtures for tests."""

import pytest

from pickpick import Experiment, ExperimentContainer


@pytest.fixture
def variations() -> list[int]:
    """Plain payloads, weight 1 each."""
    return [1, 2, 3]


@pytest.fixture
def container() -> ExperimentContainer:
    """Empty unseeded container."""
    return ExperimentContainer.create()


@pytest.fixture
def seeded_container() -> ExperimentContainer:
    """Empty container with a fixed seed."""
    return ExperimentContainer.create(seed=42)


@pytest.fixture
def visitors() -> list[dict[str, str]]:
    """Sample visitor records."""
    return [
        {"geo": "US", "page": "buy"},
        {"geo": "MX", "page": "buy"},
        {"geo": "IL", "page": "about"},
        {"page": "index"},
    ]


@pytest.fixture
def geo_experiments(variations) -> tuple[Experiment, Experiment]:
    """One experiment targeting US visitors, one targeting MX visitors."""
    us = Experiment.create(id="us-id", name="us", variations=variations, targeting={"geo": "US"})
    mx = Experiment.create(id="mx-id", name="mx", variations=variations, targeting={"geo": "MX"})
    return us, mx
