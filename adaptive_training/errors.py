"""Error taxonomy for the adaptive training engine."""


class TrainingEngineError(Exception):
    """Base class for engine errors returned to callers."""


class ValidationError(TrainingEngineError):
    """Malformed or missing required input."""


class NotFoundError(TrainingEngineError):
    """Referenced user, plan, template or workout does not exist."""


class ConflictError(TrainingEngineError):
    """Concurrent mutation of the same user or workout."""


class ComputationError(TrainingEngineError):
    """A formula requires a scalar that is not available."""
