"""Engine error types."""


class EngineInvariantError(AssertionError):
    """
    An internal invariant was violated.

    This is an engine bug, not a player mistake. It is never converted
    into a rejection and must propagate to the caller.
    """
