"""Error taxonomy for the section approval workflow.

Validation errors mean "fix your input" and are always raised before any
record is touched. PersistenceError means "retry the operation": the
in-memory registry already holds the new state but the durable copy may not.
"""


class ApprovalError(Exception):
    """Base class for every error raised by the review workflow."""


class ApprovalValidationError(ApprovalError):
    """The request was rejected before anything changed."""


class UnknownVendorError(ApprovalValidationError, LookupError):
    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(f"Vendor '{vendor_id}' has no approval record.")


class UnknownSectionError(ApprovalValidationError, ValueError):
    def __init__(self, section: str, allowed: tuple[str, ...] = ()):
        self.section = section
        self.allowed = allowed
        msg = f"Unknown section '{section}'."
        if allowed:
            msg += f" Expected one of: {', '.join(allowed)}."
        super().__init__(msg)


class InvalidStateError(ApprovalValidationError, ValueError):
    def __init__(self, state: str):
        self.state = state
        super().__init__(
            f"Invalid approval state '{state}'. "
            "Must be one of: pending, under_review, approved, rejected."
        )


class PersistenceError(ApprovalError):
    """The persistence collaborator failed to store an applied update."""

    def __init__(self, vendor_id: str, reason: str):
        self.vendor_id = vendor_id
        self.reason = reason
        super().__init__(f"Failed to persist approval record for vendor '{vendor_id}': {reason}")
