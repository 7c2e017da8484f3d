"""A/B testing experiment engine.

Components:
- Targeting: decides which visitors an experiment applies to
- Variation: a weighted payload
- Experiment: variations behind a targeting, picked round-robin
- ExperimentContainer: picks one matching experiment per visitor
"""

from pickpick import matchers
from pickpick.config import Settings, configure_logging, get_settings
from pickpick.container import ExperimentContainer
from pickpick.exceptions import (
    DuplicateExperimentError,
    ExpressionError,
    PickPickError,
    ValidationError,
)
from pickpick.experiment import Experiment, create_experiment
from pickpick.targeting import ExpressionTargeting, MatcherTargeting, Targeting
from pickpick.variation import PayloadKind, Variation

__all__ = [
    "matchers",
    "Settings",
    "configure_logging",
    "get_settings",
    "ExperimentContainer",
    "DuplicateExperimentError",
    "ExpressionError",
    "PickPickError",
    "ValidationError",
    "Experiment",
    "create_experiment",
    "ExpressionTargeting",
    "MatcherTargeting",
    "Targeting",
    "PayloadKind",
    "Variation",
]
