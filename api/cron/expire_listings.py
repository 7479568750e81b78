"""Expiration sweep endpoint (called via Vercel cron)."""

import json

from listing_engine.services.engine import build_engine
from listing_engine.utils.http import run_async
from listing_engine.utils.logging import correlation_context, get_structured_logger

logger = get_structured_logger(__name__)


def handler(request):
    """
    Run one expiration sweep and one payment reconciliation batch.

    Can be called manually or via Vercel cron job.
    """
    with correlation_context():
        try:
            query_params = request.get("query", {}) or {}
            reconcile_limit = int(query_params.get("reconcile_limit", "50"))

            engine = build_engine()
            sweep = run_async(engine.scheduler.sweep())
            reconciliation = run_async(engine.reconciler.reconcile(reconcile_limit))

            return {
                "statusCode": 200,
                "headers": {"Content-Type": "application/json"},
                "body": json.dumps({
                    "ok": True,
                    "sweep": sweep.model_dump(),
                    "reconciliation": reconciliation.model_dump(),
                })
            }

        except Exception as e:
            logger.error("Error running expiration sweep", error=str(e), exc_info=True)
            return {
                "statusCode": 500,
                "headers": {"Content-Type": "application/json"},
                "body": json.dumps({"error": str(e)})
            }
