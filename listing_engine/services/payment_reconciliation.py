"""Re-check payments that were accepted without provider confirmation."""

from typing import Optional

from pydantic import BaseModel

from listing_engine.models.payment import PaymentVerification, ReconciliationStatus
from listing_engine.services.listing_store import ListingStore
from listing_engine.services.payment_gateway import PaymentGatewayAdapter
from listing_engine.utils.clock import Clock, utc_now
from listing_engine.utils.config import EngineConfig
from listing_engine.utils.logging import get_correlation_id, get_structured_logger

logger = get_structured_logger(__name__)


class ReconciliationResult(BaseModel):
    checked: int = 0
    confirmed: int = 0
    disputed: int = 0
    unresolved: int = 0
    errors: int = 0


class PaymentReconciler:
    """
    Settle ``assumed_completed`` payments against Square.

    Only ``reconciliation_status`` changes. The payment stays Completed and the
    listing stays published; disputes are logged for manual follow-up.
    """

    def __init__(self, store: ListingStore, gateway: PaymentGatewayAdapter, clock: Clock = utc_now):
        self.store = store
        self.gateway = gateway
        self.clock = clock

    async def reconcile(self, limit: Optional[int] = None) -> ReconciliationResult:
        limit = limit or EngineConfig.RECONCILIATION_BATCH_SIZE
        correlation_id = get_correlation_id()
        result = ReconciliationResult()

        payments = await self.store.list_payments_for_reconciliation(limit)
        for payment in payments:
            result.checked += 1
            try:
                verification, _ = await self.gateway.query_provider(payment)

                if verification == PaymentVerification.COMPLETED:
                    await self.store.update_payment_reconciliation(
                        payment.payment_id, ReconciliationStatus.CONFIRMED, self.clock()
                    )
                    result.confirmed += 1
                    logger.info(
                        "Assumed payment confirmed",
                        correlation_id=correlation_id,
                        payment_id=payment.payment_id,
                        listing_id=payment.listing_id
                    )
                elif verification == PaymentVerification.FAILED:
                    await self.store.update_payment_reconciliation(
                        payment.payment_id, ReconciliationStatus.DISPUTED, self.clock()
                    )
                    result.disputed += 1
                    logger.error(
                        "Listing was activated on a payment the provider reports as failed",
                        correlation_id=correlation_id,
                        payment_id=payment.payment_id,
                        listing_id=payment.listing_id,
                        amount_cents=payment.amount_cents
                    )
                else:
                    result.unresolved += 1
            except Exception as e:
                result.errors += 1
                logger.error(
                    "Error reconciling payment",
                    correlation_id=correlation_id,
                    payment_id=payment.payment_id,
                    error=str(e),
                    exc_info=True
                )

        logger.info(
            "Payment reconciliation completed",
            correlation_id=correlation_id,
            **result.model_dump()
        )
        return result
