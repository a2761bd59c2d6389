"""Custom exception classes for stackapply."""

from typing import List, Optional


class StackApplyError(Exception):
    """Base exception for all stackapply errors."""
    pass


class ConfigError(StackApplyError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(StackApplyError):
    """Raised when the resource template fails validation at load time."""
    pass


class CycleError(StackApplyError):
    """Raised when the reference graph contains a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class UnresolvedReferenceError(StackApplyError):
    """Raised when a reference cannot be resolved from the available state."""
    pass


class ProviderError(StackApplyError):
    """Raised when a provider call fails for one resource."""

    def __init__(self, message: str, address: Optional[str] = None, transient: bool = False):
        self.address = address
        self.transient = transient
        super().__init__(message)


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its deadline."""

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message, address=address, transient=True)


class ResourceNotFoundError(ProviderError):
    """Raised when the provider has no record of a resource."""
    pass


class DependencyFailedError(StackApplyError):
    """Raised for actions skipped because something they depend on failed."""

    def __init__(self, address: str, blocked_by: List[str]):
        self.address = address
        self.blocked_by = list(blocked_by)
        super().__init__(f"{address} skipped: dependency failed ({', '.join(self.blocked_by)})")


class ApplyCanceledError(StackApplyError):
    """Raised for actions that were never started because apply was canceled."""
    pass


class StateCorruptionError(StackApplyError):
    """Raised when the persisted state snapshot fails an integrity check."""
    pass


class StateWriteError(StackApplyError):
    """Raised when a state snapshot cannot be written."""
    pass


class SecretSinkError(StackApplyError):
    """Raised when private key material cannot be written safely."""
    pass


class IncompleteStateError(StackApplyError):
    """Raised when outputs are requested before the instance exists."""
    pass
