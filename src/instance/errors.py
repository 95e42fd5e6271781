"""Errors raised while tracking and deciding instance rollouts."""


class InstanceError(Exception):
    """Base exception for instance errors.

    Attributes:
        code: Short reason, also used as the event name for warnings
        message: Human readable explanation
        fatal: True for data-integrity violations that must never be retried
    """

    fatal = False

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class PlanNotFoundError(InstanceError):
    """A plan that must run is not defined by the package version."""

    def __init__(self, message: str):
        super().__init__("PlanNotFound", message)


class AmbiguousTriggerError(InstanceError):
    """A parameter change triggers more than one distinct plan."""

    def __init__(self, plans: list[str]):
        self.plans = plans
        super().__init__(
            "AmbiguousTrigger",
            f"triggering multiple plans: [{', '.join(plans)}] at once is not allowed",
        )


class InconsistentStateError(InstanceError):
    """Plans have executed but no snapshot of the applied spec exists."""

    fatal = True

    def __init__(self, message: str):
        super().__init__("InconsistentState", message)


class SnapshotCorruptedError(InstanceError):
    """The stored snapshot cannot be parsed."""

    fatal = True

    def __init__(self, message: str):
        super().__init__("SnapshotCorrupted", message)


class ImmutableParameterError(InstanceError):
    """An immutable parameter was changed after installation."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(
            "ImmutableParameter",
            f"parameters are immutable and can not be updated: {', '.join(names)}",
        )
