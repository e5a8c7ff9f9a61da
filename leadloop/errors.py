"""
Error taxonomy for the lead engine.

Invalid URLs are not errors; they come back as a rejected
CanonicalizationResult. Page-fetch and escalation failures are recovered
where they happen and never reach the caller.
"""


class LeadLoopError(Exception):
    """Base class for errors surfaced to the caller."""


class ConfigurationError(LeadLoopError):
    """Missing or invalid settings. Raised before any work starts."""


class ProviderError(LeadLoopError):
    """An upstream search provider answered with a non-success status."""

    def __init__(self, provider, message, status_code=None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class NoEligibleItemsError(LeadLoopError):
    """No enabled queries or templates to allocate across."""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"No enabled {kind} available")


class InvalidOutcomeError(LeadLoopError):
    """Outcome value is not one of WON / LOST."""


class AttemptNotFoundError(LeadLoopError):
    """No outreach attempt matches the given id or lead."""
