"""
Audit Models for Household Ledger

Every mutation of ledger state is logged for audit purposes, whether it
succeeded or failed. Update events carry the old and new values so a
household can reconstruct who changed what.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from household_ledger.models.common import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Movements
    MOVEMENT_CREATED = "movement_created"
    MOVEMENT_UPDATED = "movement_updated"
    MOVEMENT_DELETED = "movement_deleted"
    MOVEMENT_GENERATED = "movement_generated"

    # Templates
    TEMPLATE_CREATED = "template_created"
    TEMPLATE_UPDATED = "template_updated"
    TEMPLATE_DELETED = "template_deleted"

    # Budgets
    BUDGET_SET = "budget_set"
    BUDGET_DELETED = "budget_deleted"
    BUDGETS_COPIED = "budgets_copied"
    BUDGET_RAISED_BY_TEMPLATES = "budget_raised_by_templates"

    # Credit card payments
    CREDIT_CARD_PAYMENT_CREATED = "credit_card_payment_created"
    CREDIT_CARD_PAYMENT_DELETED = "credit_card_payment_deleted"

    # Membership
    MEMBER_REMOVED = "member_removed"
    MEMBER_ROLE_UPDATED = "member_role_updated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _dump(value: Any) -> str:
    return json.dumps(value, default=str) if value else ""


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every mutation, successful or not, creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and where
    household_id: Optional[UUID] = None
    actor_id: Optional[UUID] = Field(
        default=None,
        description="User that triggered the event (None for system jobs)"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'movement', 'template', 'budget')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    success: bool = True

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "household_id": str(self.household_id) if self.household_id else None,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "success": self.success,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, household_id, actor_id,
         entity_type, entity_id, description, success, details_json,
         old_values_json, new_values_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.household_id) if self.household_id else "",
            str(self.actor_id) if self.actor_id else "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.description,
            str(self.success),
            _dump(self.details),
            _dump(self.old_values),
            _dump(self.new_values),
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.movement_created(movement, actor_id)
        event = AuditEventBuilder.movement_failed("update", actor_id, household_id, error)
    """

    @staticmethod
    def movement_created(
        movement_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        movement_type: str,
        amount: str,
        new_values: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_CREATED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="movement",
            entity_id=movement_id,
            description=f"{movement_type} movement created: {amount}",
            details={"movement_type": movement_type, "amount": amount},
            new_values=new_values,
        )

    @staticmethod
    def movement_updated(
        movement_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        old_values: dict,
        new_values: dict,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_UPDATED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="movement",
            entity_id=movement_id,
            description="Movement updated",
            old_values=old_values,
            new_values=new_values,
        )

    @staticmethod
    def movement_deleted(
        movement_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        old_values: dict,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_DELETED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="movement",
            entity_id=movement_id,
            description="Movement deleted",
            old_values=old_values,
        )

    @staticmethod
    def movement_generated(
        movement_id: UUID,
        template_id: UUID,
        household_id: UUID,
        actor_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_GENERATED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="movement",
            entity_id=movement_id,
            description="Movement generated from recurring template",
            details={"template_id": str(template_id)},
        )

    @staticmethod
    def operation_failed(
        event_type: AuditEventType,
        entity_type: str,
        actor_id: Optional[UUID],
        household_id: Optional[UUID],
        error_code: str,
        error_message: str,
        entity_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """A failed attempt at an audited operation."""
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            household_id=household_id,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{event_type.value} failed: {error_code}",
            success=False,
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def template_changed(
        event_type: AuditEventType,
        template_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="template",
            entity_id=template_id,
            description=f"Recurring template {event_type.value.split('_')[-1]}",
            old_values=old_values,
            new_values=new_values,
        )

    @staticmethod
    def budget_set(
        budget_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        month: str,
        amount: str,
        previous_amount: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget for {month} set to {amount}",
            old_values={"amount": previous_amount} if previous_amount is not None else None,
            new_values={"amount": amount, "month": month},
        )

    @staticmethod
    def budget_deleted(
        budget_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        old_values: dict,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="budget",
            entity_id=budget_id,
            description="Budget deleted",
            old_values=old_values,
        )

    @staticmethod
    def budget_raised(
        budget_id: UUID,
        household_id: UUID,
        actor_id: Optional[UUID],
        month: str,
        previous_amount: Optional[str],
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_RAISED_BY_TEMPLATES,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget for {month} raised to template floor {amount}",
            old_values={"amount": previous_amount},
            new_values={"amount": amount},
        )

    @staticmethod
    def budgets_copied(
        household_id: UUID,
        actor_id: UUID,
        from_month: str,
        to_month: str,
        count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_COPIED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="budget",
            description=f"Copied {count} budgets from {from_month} to {to_month}",
            details={"from_month": from_month, "to_month": to_month, "count": count},
        )

    @staticmethod
    def credit_card_payment_created(
        payment_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        amount: str,
        credit_card_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_CARD_PAYMENT_CREATED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="credit_card_payment",
            entity_id=payment_id,
            description=f"Credit card payment created: {amount}",
            details={"credit_card_id": str(credit_card_id), "amount": amount},
        )

    @staticmethod
    def credit_card_payment_deleted(
        payment_id: UUID,
        household_id: UUID,
        actor_id: UUID,
        old_values: dict,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_CARD_PAYMENT_DELETED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="credit_card_payment",
            entity_id=payment_id,
            description="Credit card payment deleted",
            old_values=old_values,
        )

    @staticmethod
    def member_removed(
        household_id: UUID,
        actor_id: UUID,
        member_user_id: UUID,
        role: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_REMOVED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="member",
            entity_id=member_user_id,
            description="Member removed from household",
            old_values={"role": role},
        )

    @staticmethod
    def member_role_updated(
        household_id: UUID,
        actor_id: UUID,
        member_user_id: UUID,
        old_role: str,
        new_role: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ROLE_UPDATED,
            household_id=household_id,
            actor_id=actor_id,
            entity_type="member",
            entity_id=member_user_id,
            description=f"Member role changed from {old_role} to {new_role}",
            old_values={"role": old_role},
            new_values={"role": new_role},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        household_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            household_id=household_id,
            description=f"System error: {error_type}",
            success=False,
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            success=False,
            error_message=error_message,
            details={"service": service},
        )
