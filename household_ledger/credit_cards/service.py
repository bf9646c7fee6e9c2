"""
Credit Card Payment Service

Records money moved from a savings account to pay a credit card.

Validation order is fixed, first failure wins:
1. amount > 0                             -> InvalidAmountError
2. the card exists                        -> CreditCardNotFoundError
3. it is a credit card                    -> NotACreditCardError
4. it belongs to the actor's household    -> NotAuthorizedError
5. the source account exists and is savings -> SourceMustBeSavingsError
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from household_ledger.audit import AuditLogger
from household_ledger.authorization import Action, AuthorizationGuard
from household_ledger.errors import (
    CreditCardNotFoundError,
    InvalidAmountError,
    LedgerError,
    NotACreditCardError,
    NotAuthorizedError,
    NotFoundError,
    SourceMustBeSavingsError,
)
from household_ledger.models.audit import AuditEventBuilder, AuditEventType
from household_ledger.models.credit_card import (
    CreateCreditCardPaymentInput,
    CreditCardPayment,
    CreditCardPaymentFilter,
    CreditCardPaymentListResult,
)
from household_ledger.models.household import AccountType, PaymentMethodType
from household_ledger.services.storage import (
    AccountRepository,
    CreditCardPaymentRepository,
    HouseholdRepository,
    PaymentMethodRepository,
    TransactionManager,
)

logger = structlog.get_logger(__name__)


class CreditCardPaymentService:

    def __init__(
        self,
        payments: CreditCardPaymentRepository,
        payment_methods: PaymentMethodRepository,
        accounts: AccountRepository,
        households: HouseholdRepository,
        guard: AuthorizationGuard,
        transactions: TransactionManager,
        audit_logger: AuditLogger,
    ):
        self._payments = payments
        self._payment_methods = payment_methods
        self._accounts = accounts
        self._households = households
        self._guard = guard
        self._tx = transactions
        self._audit = audit_logger

    async def create(
        self,
        actor_id: UUID,
        data: CreateCreditCardPaymentInput,
    ) -> CreditCardPayment:
        """Validate in the documented order and persist the payment."""
        household_id = None
        try:
            if data.amount <= 0:
                raise InvalidAmountError(value=data.amount)

            async with self._tx.transaction():
                household_id = await self._households.get_user_household_id(actor_id)
                if household_id is None:
                    raise NotAuthorizedError(field="household_id")

                card = await self._payment_methods.get_by_id(data.credit_card_id)
                if card is None:
                    raise CreditCardNotFoundError(value=data.credit_card_id)
                if card.type != PaymentMethodType.CREDIT_CARD:
                    raise NotACreditCardError(value=data.credit_card_id)
                if card.household_id != household_id:
                    raise NotAuthorizedError(field="credit_card_id", value=data.credit_card_id)

                source = await self._accounts.get_by_id(data.source_account_id)
                if (
                    source is None
                    or source.household_id != household_id
                    or source.type != AccountType.SAVINGS
                ):
                    raise SourceMustBeSavingsError(value=data.source_account_id)

                payment = await self._payments.create(CreditCardPayment(
                    household_id=household_id,
                    credit_card_id=card.id,
                    credit_card_name=card.name,
                    amount=data.amount,
                    payment_date=data.payment_date,
                    source_account_id=source.id,
                    notes=data.notes,
                    created_by=actor_id,
                ))
        except LedgerError as e:
            self._audit_failure(AuditEventType.CREDIT_CARD_PAYMENT_CREATED, actor_id, household_id, e)
            raise

        logger.info(
            "credit_card_payment_created",
            payment_id=str(payment.id),
            credit_card_id=str(payment.credit_card_id),
            amount=str(payment.amount),
        )
        self._audit.log_async(AuditEventBuilder.credit_card_payment_created(
            payment_id=payment.id,
            household_id=household_id,
            actor_id=actor_id,
            amount=str(payment.amount),
            credit_card_id=payment.credit_card_id,
        ))
        return payment

    async def delete(self, actor_id: UUID, payment_id: UUID) -> None:
        """Creator or household owner only. Balances are not reconstructed."""
        household_id = None
        try:
            async with self._tx.transaction():
                payment = await self._payments.get_by_id(payment_id)
                if payment is None:
                    raise NotFoundError(field="payment_id", value=payment_id)
                household_id = payment.household_id
                await self._guard.authorize(actor_id, household_id, Action.DELETE, payment)
                await self._payments.delete(payment_id)
        except LedgerError as e:
            self._audit_failure(
                AuditEventType.CREDIT_CARD_PAYMENT_DELETED, actor_id, household_id, e, payment_id
            )
            raise

        self._audit.log_async(AuditEventBuilder.credit_card_payment_deleted(
            payment_id=payment_id,
            household_id=household_id,
            actor_id=actor_id,
            old_values=payment.model_dump(
                mode="json",
                include={"credit_card_id", "amount", "payment_date", "source_account_id"},
            ),
        ))

    async def get(self, actor_id: UUID, payment_id: UUID) -> CreditCardPayment:
        payment = await self._payments.get_by_id(payment_id)
        if payment is None:
            raise NotFoundError(field="payment_id", value=payment_id)
        await self._guard.authorize(actor_id, payment.household_id, Action.READ)
        return payment

    async def list_payments(
        self,
        actor_id: UUID,
        household_id: UUID,
        payment_filter: Optional[CreditCardPaymentFilter] = None,
    ) -> CreditCardPaymentListResult:
        await self._guard.authorize(actor_id, household_id, Action.READ)
        payments = await self._payments.list_by_household(household_id, payment_filter)
        return CreditCardPaymentListResult(
            items=payments,
            total=sum((p.amount for p in payments), Decimal("0.00")),
        )

    def _audit_failure(
        self,
        event_type: AuditEventType,
        actor_id: UUID,
        household_id: Optional[UUID],
        error: LedgerError,
        payment_id: Optional[UUID] = None,
    ) -> None:
        self._audit.log_async(AuditEventBuilder.operation_failed(
            event_type=event_type,
            entity_type="credit_card_payment",
            actor_id=actor_id,
            household_id=household_id,
            entity_id=payment_id,
            error_code=error.kind,
            error_message=error.message,
        ))
