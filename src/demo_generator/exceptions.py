"""Error taxonomy for demo generation and patching.

Messages are user-facing (French); ``errors`` / ``blockers`` carry the
itemized detail that API responses return verbatim.
"""
from __future__ import annotations


class DemoGeneratorError(Exception):
    """Base class for every error raised by the demo generator."""

    default_message = "Erreur du generateur de demo."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ConfigError(DemoGeneratorError, ValueError):
    """Invalid configuration or request shape. Raised before any job exists."""

    default_message = "Configuration invalide."


class PlanValidationError(DemoGeneratorError, ValueError):
    default_message = "Plan mensuel invalide."

    def __init__(self, errors: list, message: str | None = None):
        super().__init__(message)
        self.errors = list(errors)


class TenantIneligibleError(DemoGeneratorError):
    """The tenant was not created by the demo generator."""

    default_message = "Ce tenant n'est pas un tenant de demo."


class PatchBlockedError(DemoGeneratorError):
    default_message = "Le patch ne peut pas etre applique."

    def __init__(self, blockers: list, message: str | None = None):
        super().__init__(message)
        self.blockers = list(blockers)


class JobConflictError(DemoGeneratorError):
    default_message = "Un job est deja en cours pour ce tenant."


class GenerationFailure(DemoGeneratorError):
    """A job failed while running. The message is stored on the job row."""

    default_message = "La generation a echoue."


class ChunkTimeoutRisk(DemoGeneratorError):
    """Internal: the time budget is nearly spent, checkpoint and yield."""

    default_message = "Budget de temps epuise."


class LeaseLost(DemoGeneratorError):
    """Internal: another invocation took over the job's lease."""

    default_message = "Le verrou du job a ete repris par une autre execution."
