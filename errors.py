from typing import Optional


class PlanLedgerError(ValueError):
    kind = "error"

    def __init__(
        self, message: str, *, entity: str, entity_id: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id

    def as_dict(self) -> dict[str, object]:
        return {
            "error": self.kind,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "message": self.message,
        }


class NotFound(PlanLedgerError):
    """A referenced plan, record or parent record does not exist."""

    kind = "not_found"


class Conflict(PlanLedgerError):
    """A record already exists for the bucket, or a plan already has a sub-plan."""

    kind = "conflict"


class HasDependents(PlanLedgerError):
    """Deletion blocked by child plans or records."""

    kind = "has_dependents"


class InvalidPeriod(PlanLedgerError):
    """Period type unknown, or not compatible with the parent plan's period."""

    kind = "invalid_period"
