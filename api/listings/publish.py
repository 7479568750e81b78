"""Listing publish endpoint for Vercel."""

from http.server import BaseHTTPRequestHandler

from listing_engine.services.engine import build_engine
from listing_engine.utils.errors import ListingEngineError, error_payload, http_status_for
from listing_engine.utils.http import read_json_body, run_async, send_json
from listing_engine.utils.logging import correlation_context, get_structured_logger
from listing_engine.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


class handler(BaseHTTPRequestHandler):
    """
    Submit a listing for publication.

    Body: {listing_id, category?, duration?, discount_code?, redirect_url?,
    save_as_draft?}. With ``save_as_draft`` the selection is stored on the
    draft and nothing is charged.
    """

    def do_POST(self):
        with correlation_context(self.headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER)):
            try:
                body = read_json_body(self)
                listing_id = body.get("listing_id")
                if not listing_id:
                    send_json(self, 400, {"error": "listing_id is required"})
                    return

                engine = build_engine()
                if body.get("save_as_draft"):
                    listing = run_async(engine.manager.save_as_draft(
                        listing_id,
                        category=body.get("category"),
                        duration=body.get("duration"),
                        discount_code=body.get("discount_code"),
                    ))
                    send_json(self, 200, {"ok": True, "listing": listing.model_dump(mode="json")})
                    return

                result = run_async(engine.manager.submit_for_publish(
                    listing_id,
                    category=body.get("category"),
                    duration=body.get("duration"),
                    discount_code=body.get("discount_code"),
                    redirect_url=body.get("redirect_url"),
                ))
                send_json(self, 200, {"ok": True, **result.model_dump(mode="json")})

            except ListingEngineError as e:
                status = http_status_for(e)
                logger.warning(
                    "Publish request rejected",
                    status_code=status,
                    error_type=type(e).__name__,
                    error=str(e)
                )
                send_json(self, status, error_payload(e))
            except ValueError as e:
                # Unknown category/duration values or malformed JSON
                send_json(self, 400, {"error": "invalid request", "detail": str(e)})
            except Exception as e:
                logger.error("Error publishing listing", error=str(e), exc_info=True)
                send_json(self, 500, {"error": "internal server error"})
