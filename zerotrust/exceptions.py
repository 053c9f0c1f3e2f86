"""Exception hierarchy for the zero trust engine."""


class ZeroTrustError(Exception):
    """Base class for engine errors."""


class ContextBuildError(ZeroTrustError):
    """Raw request attributes could not be turned into an evaluation context."""


class AuditSinkError(ZeroTrustError):
    """An audit sink failed to persist a record."""
