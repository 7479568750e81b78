"""Payment gateway adapter - listing fees through Square, with a free-payment bypass."""

import asyncio
from typing import Any, Optional

from ulid import ULID

from listing_engine.models.listing import ListingCategory, ListingDuration
from listing_engine.models.payment import (
    CreatePaymentResult,
    FreePaymentResult,
    LinkPaymentResult,
    PaymentRecord,
    PaymentStatus,
    PaymentVerification,
    ReconciliationStatus,
)
from listing_engine.services.listing_store import ListingStore
from listing_engine.services.square_client import SquareClient
from listing_engine.utils.clock import Clock, utc_now
from listing_engine.utils.config import EngineConfig
from listing_engine.utils.errors import (
    PaymentCreationFailedError,
    PaymentNotFoundError,
    SquareAPIError,
    SupabaseError,
)
from listing_engine.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)

FREE_PAYMENT_PREFIX = "sqp_"

OPEN_STATUSES = (PaymentStatus.CREATED, PaymentStatus.PENDING, PaymentStatus.ERROR)

# Square tender/payment states
CAPTURED_STATES = {"CAPTURED", "COMPLETED"}
FAILED_STATES = {"FAILED", "VOIDED", "CANCELED"}


def generate_payment_id() -> str:
    """Generate a text-based payment ID (ULID format)."""
    return str(ULID())


def translate_provider_status(payload: dict[str, Any]) -> tuple[PaymentVerification, Optional[PaymentStatus]]:
    """
    Map a Square payment-link/order payload to a verification result.

    Returns the verification and the record status it implies (None when the
    record should stay as it is).
    """
    order = payload.get("order")
    if not order:
        # Link exists, checkout never started
        return PaymentVerification.PENDING, None

    state = (order.get("state") or "").upper()
    if state == "COMPLETED":
        return PaymentVerification.COMPLETED, PaymentStatus.COMPLETED
    if state == "CANCELED":
        return PaymentVerification.FAILED, PaymentStatus.CANCELED

    tender_states = []
    for tender in order.get("tenders") or []:
        card_details = tender.get("card_details") or {}
        tender_states.append((card_details.get("status") or tender.get("status") or "").upper())

    if any(s in CAPTURED_STATES for s in tender_states):
        return PaymentVerification.COMPLETED, PaymentStatus.COMPLETED
    if tender_states and all(s in FAILED_STATES for s in tender_states):
        return PaymentVerification.FAILED, PaymentStatus.ERROR
    if tender_states:
        # Payment exists at the provider but is not settled yet
        return PaymentVerification.PENDING_BUT_ACCEPTABLE, None

    return PaymentVerification.PENDING, None


class PaymentGatewayAdapter:
    """Create and verify listing payments."""

    def __init__(
        self,
        store: ListingStore,
        square_client: Optional[SquareClient] = None,
        verify_timeout: Optional[float] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.square_client = square_client or SquareClient()
        self.verify_timeout = verify_timeout if verify_timeout is not None else EngineConfig.PAYMENT_VERIFY_TIMEOUT_SECONDS
        self.clock = clock

    async def get_payment(self, payment_id: str) -> PaymentRecord:
        payment = await self.store.get_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError(f"Payment record not found: {payment_id}")
        return payment

    async def create_payment(
        self,
        amount_cents: int,
        category: ListingCategory,
        duration: ListingDuration,
        redirect_url: Optional[str],
        listing_id: str,
        discount_code: Optional[str] = None,
        buyer_email: Optional[str] = None,
    ) -> CreatePaymentResult:
        """
        Create the payment for one publish attempt.

        A zero amount never reaches Square: a completed free record with a
        synthetic ``sqp_`` reference is stored instead. Both paths return a
        ``payment_id`` that callers verify and confirm the same way.
        """
        now = self.clock()
        payment_id = generate_payment_id()
        category = ListingCategory(category)
        duration = ListingDuration(duration)

        if amount_cents <= 0:
            record = PaymentRecord(
                payment_id=payment_id,
                listing_id=listing_id,
                external_link_id=f"{FREE_PAYMENT_PREFIX}{ULID()}",
                amount_cents=0,
                is_free=True,
                status=PaymentStatus.COMPLETED,
                discount_code=discount_code,
                listing_category=category,
                listing_duration=duration,
                created_at=now,
                updated_at=now,
            )
            try:
                await self.store.create_payment(record)
            except SupabaseError as e:
                raise PaymentCreationFailedError(f"Failed to store free payment record: {e}") from e

            logger.info(
                "Free listing payment record created",
                payment_id=payment_id,
                listing_id=listing_id,
                discount_code=discount_code,
                external_link_id=record.external_link_id
            )
            return FreePaymentResult(payment_id=payment_id)

        idempotency_key = f"listing_{listing_id}_{ULID()}"
        try:
            with log_timing("square_create_payment_link", logger=logger, payment_id=payment_id):
                link = await self.square_client.create_payment_link(
                    amount_cents=amount_cents,
                    redirect_url=redirect_url or EngineConfig.DEFAULT_REDIRECT_URL,
                    idempotency_key=idempotency_key,
                    name=f"{category.value} listing fee ({duration.value})",
                    buyer_email=buyer_email,
                )
        except SquareAPIError as e:
            logger.error(
                "Square payment link creation failed",
                payment_id=payment_id,
                listing_id=listing_id,
                amount_cents=amount_cents,
                status_code=e.status_code,
                error=str(e)
            )
            raise PaymentCreationFailedError(f"Failed to create payment link: {e}") from e

        # The record starts Pending: a link now exists at the provider
        record = PaymentRecord(
            payment_id=payment_id,
            listing_id=listing_id,
            external_link_id=link["id"],
            order_id=link.get("order_id"),
            payable_url=link["url"],
            amount_cents=amount_cents,
            status=PaymentStatus.PENDING,
            discount_code=discount_code,
            listing_category=category,
            listing_duration=duration,
            created_at=now,
            updated_at=self.clock(),
        )
        try:
            await self.store.create_payment(record)
        except SupabaseError as e:
            logger.error(
                "Payment link created but record could not be stored",
                payment_id=payment_id,
                listing_id=listing_id,
                external_link_id=link["id"],
                error=str(e)
            )
            raise PaymentCreationFailedError(f"Failed to store payment record: {e}") from e

        logger.info(
            "Payment link created",
            payment_id=payment_id,
            listing_id=listing_id,
            amount_cents=amount_cents,
            external_link_id=link["id"]
        )
        return LinkPaymentResult(payment_id=payment_id, payable_url=link["url"])

    async def query_provider(self, payment: PaymentRecord) -> tuple[PaymentVerification, Optional[PaymentStatus]]:
        """
        Ask Square about a payment under the verification timeout.

        Timeouts, transport errors, not-found and unreadable payloads come back
        as PENDING_BUT_ACCEPTABLE and are logged as ``payment_ambiguous``.
        """
        if not payment.external_link_id:
            self._log_ambiguous(payment, "missing_external_link_id")
            return PaymentVerification.PENDING_BUT_ACCEPTABLE, None

        try:
            payload = await asyncio.wait_for(
                self.square_client.retrieve_payment_status(payment.external_link_id, payment.order_id),
                timeout=self.verify_timeout,
            )
            return translate_provider_status(payload)
        except asyncio.TimeoutError:
            self._log_ambiguous(payment, "timeout")
        except SquareAPIError as e:
            self._log_ambiguous(payment, "provider_error", status_code=e.status_code, error=str(e))
        except (AttributeError, TypeError, ValueError) as e:
            self._log_ambiguous(payment, "malformed_payload", error=str(e))
        return PaymentVerification.PENDING_BUT_ACCEPTABLE, None

    def _log_ambiguous(self, payment: PaymentRecord, cause: str, **context: Any) -> None:
        logger.warning(
            "payment_ambiguous",
            payment_id=payment.payment_id,
            listing_id=payment.listing_id,
            external_link_id=payment.external_link_id,
            amount_cents=payment.amount_cents,
            cause=cause,
            **context
        )

    async def verify_payment(self, payment_id: str) -> PaymentVerification:
        """
        Verify a payment.

        Completed and free records return COMPLETED without contacting Square;
        canceled records return FAILED. Only an explicit provider
        cancellation or failure yields FAILED for an open record.
        """
        payment = await self.get_payment(payment_id)

        if payment.is_free or payment.status == PaymentStatus.COMPLETED:
            logger.debug("Payment already completed", payment_id=payment_id, is_free=payment.is_free)
            return PaymentVerification.COMPLETED
        if payment.status == PaymentStatus.CANCELED:
            return PaymentVerification.FAILED

        verification, record_status = await self.query_provider(payment)

        if record_status is not None:
            updated = await self.store.compare_and_set_payment(
                payment_id,
                OPEN_STATUSES,
                {"status": record_status, "updated_at": self.clock()},
            )
            if updated is None:
                # Lost a race with a concurrent verification or cancellation
                current = await self.get_payment(payment_id)
                if current.status == PaymentStatus.COMPLETED:
                    verification = PaymentVerification.COMPLETED
                elif current.status == PaymentStatus.CANCELED:
                    verification = PaymentVerification.FAILED

        logger.info(
            "Payment verified",
            payment_id=payment_id,
            listing_id=payment.listing_id,
            verification=verification.value,
            record_status=record_status.value if record_status else payment.status.value
        )
        return verification

    async def mark_assumed_completed(self, payment_id: str) -> PaymentRecord:
        """Complete an open record on an ambiguous verification and flag it for reconciliation."""
        updated = await self.store.compare_and_set_payment(
            payment_id,
            OPEN_STATUSES,
            {
                "status": PaymentStatus.COMPLETED,
                "assumed_completed": True,
                "reconciliation_status": ReconciliationStatus.UNRESOLVED,
                "updated_at": self.clock(),
            },
        )
        if updated is not None:
            logger.warning(
                "Payment accepted without provider confirmation",
                payment_id=payment_id,
                listing_id=updated.listing_id,
                amount_cents=updated.amount_cents,
                reconciliation_status=updated.reconciliation_status.value
            )
            return updated
        return await self.get_payment(payment_id)

    async def cancel_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        """Cancel an open record. Terminal records are left as they are."""
        updated = await self.store.compare_and_set_payment(
            payment_id,
            OPEN_STATUSES,
            {"status": PaymentStatus.CANCELED, "updated_at": self.clock()},
        )
        if updated is not None:
            logger.info("Payment canceled", payment_id=payment_id, listing_id=updated.listing_id)
        return updated
