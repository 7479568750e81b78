"""Payment verification endpoint for Vercel (checkout redirect target)."""

from http.server import BaseHTTPRequestHandler

from listing_engine.services.engine import build_engine
from listing_engine.utils.errors import ListingEngineError, error_payload, http_status_for
from listing_engine.utils.http import read_json_body, run_async, send_json
from listing_engine.utils.logging import correlation_context, get_structured_logger
from listing_engine.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


class handler(BaseHTTPRequestHandler):
    """Verify a payment and activate its listing. Body: {payment_id}."""

    def do_POST(self):
        with correlation_context(self.headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER)):
            try:
                body = read_json_body(self)
                payment_id = body.get("payment_id")
                if not payment_id:
                    send_json(self, 400, {"error": "payment_id is required"})
                    return

                engine = build_engine()
                listing = run_async(engine.manager.confirm_payment(payment_id))
                send_json(self, 200, {
                    "ok": True,
                    "payment_id": payment_id,
                    "listing": listing.model_dump(mode="json"),
                })

            except ListingEngineError as e:
                status = http_status_for(e)
                logger.info(
                    "Payment not confirmed",
                    status_code=status,
                    error_type=type(e).__name__,
                    error=str(e)
                )
                send_json(self, status, error_payload(e))
            except ValueError as e:
                send_json(self, 400, {"error": "invalid request", "detail": str(e)})
            except Exception as e:
                logger.error("Error verifying payment", error=str(e), exc_info=True)
                send_json(self, 500, {"error": "internal server error"})
