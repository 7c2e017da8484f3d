"""Exception types raised by the experiment engine."""


class PickPickError(Exception):
    """Base class for all pickpick errors."""


class ValidationError(PickPickError, ValueError):
    """Invalid experiment, variation, targeting or matcher definition."""


class ExpressionError(ValidationError):
    """A targeting expression could not be compiled."""


class DuplicateExperimentError(ValidationError):
    """An experiment id is already registered in a container."""

    def __init__(self, experiment_id: str):
        self.experiment_id = experiment_id
        super().__init__(f"Experiment '{experiment_id}' already exists in container")
