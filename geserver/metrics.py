from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from flask import Response, request, current_app
import time

# Watcher Metrics
poll_cycles_total = Counter("geserver_poll_cycles_total", "Completed poll cycles")

poll_cycle_duration_seconds = Histogram("geserver_poll_cycle_duration_seconds", "Duration of a full poll cycle")

title_checks_total = Counter("geserver_title_checks_total", "Per-title reconciliations", ["title_id", "status"])

updates_detected_total = Counter("geserver_updates_detected_total", "New versions detected", ["title_id"])

# Store / Launcher Metrics
tracked_titles = Gauge("geserver_tracked_titles", "Titles with a stored version history")

announcements_total = Gauge("geserver_announcements", "Announcements in the feed")

launcher_pending = Gauge("geserver_launcher_pending_instructions", "Launch instructions waiting in the mailbox")

# API Metrics
api_request_duration_seconds = Histogram(
    "geserver_api_request_duration_seconds", "API request duration", ["endpoint", "method"]
)

api_requests_total = Counter("geserver_api_requests_total", "Total API requests", ["endpoint", "method", "status_code"])


def update_store_metrics(store, mailbox=None):
    tracked_titles.set(len(store.get("titles") or {}))
    announcements_total.set(len(store.get("announcements") or []))
    if mailbox is not None:
        launcher_pending.set(mailbox.pending())


def init_metrics(app):
    @app.route("/metrics")
    def metrics():
        update_store_metrics(current_app.store, getattr(current_app, "mailbox", None))
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    @app.before_request
    def before_request():
        request.start_time = time.time()

    @app.after_request
    def after_request(response):
        duration = time.time() - getattr(request, "start_time", time.time())
        api_request_duration_seconds.labels(endpoint=request.endpoint or "unknown", method=request.method).observe(
            duration
        )
        api_requests_total.labels(
            endpoint=request.endpoint or "unknown", method=request.method, status_code=response.status_code
        ).inc()
        return response

    app.logger.info("Prometheus metrics initialized at /metrics")
