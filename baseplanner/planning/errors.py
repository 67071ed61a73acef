class PlannerError(Exception):
    """Base class for errors raised at the planner's boundaries."""


class PlanStoreError(PlannerError):
    """Persisted plan data could not be read or written."""


class SnapshotError(PlannerError):
    """A world snapshot is malformed."""
