"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler

from listing_engine.utils.http import send_json


class handler(BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        """Handle GET request."""
        send_json(self, 200, {"status": "ok", "service": "listing-engine"})

    def do_POST(self):
        """Handle POST request (same as GET for health check)."""
        self.do_GET()
