"""
Kernel error taxonomy.

Every error raised by the kernel derives from KernelError so callers at the
edges (CLI, API) can catch one base class. Generator and provider failures
share GeneratorError so the pipeline can capture them on the queue item.
"""

from typing import List, Optional

import httpx


class KernelError(Exception):
    """Base class for all kernel errors."""


class InvariantViolation(KernelError):
    """A snapshot would break an entity invariant."""


class InvalidTransition(KernelError):
    """A queue item transition is not allowed from the current status."""


class NotFound(KernelError, KeyError):
    """Entity is absent from the store."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")

    def __str__(self) -> str:
        return f"{self.kind} {self.entity_id} not found"


class ComplianceBlocked(KernelError):
    """Approval refused because compliance issues remain."""

    def __init__(self, item_id: str, issues: List[str]):
        self.item_id = item_id
        self.issues = list(issues)
        super().__init__(
            f"Cannot approve video {item_id}: Compliance issues remain - {', '.join(self.issues)}"
        )


class QueueFull(KernelError):
    """Queue is at max_queue_size."""


class GeneratorError(KernelError):
    """External generator or catalog provider failure."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class ProviderUnavailable(GeneratorError):
    """Provider unreachable, failing or timed out."""


class QuotaExceeded(GeneratorError):
    """Provider refused the call because a quota is exhausted."""


class InvalidInput(GeneratorError, ValueError):
    """Provider rejected the request payload."""


class Cancelled(KernelError):
    """A pending generator call was cancelled cooperatively."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Generation for {item_id} was cancelled")


def from_http_error(error: httpx.HTTPError, provider: str) -> GeneratorError:
    """
    Map an httpx failure onto the generator error taxonomy.

    429 becomes QuotaExceeded, other 4xx InvalidInput, anything else
    ProviderUnavailable.
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        detail = error.response.text[:200]
        if status == 429:
            return QuotaExceeded(f"{provider} quota exceeded: {detail}", provider=provider)
        if 400 <= status < 500:
            return InvalidInput(f"{provider} rejected request ({status}): {detail}", provider=provider)
        return ProviderUnavailable(f"{provider} error ({status}): {detail}", provider=provider)

    if isinstance(error, httpx.TimeoutException):
        return ProviderUnavailable(f"{provider} timed out: {error}", provider=provider)

    return ProviderUnavailable(f"{provider} unreachable: {error}", provider=provider)
