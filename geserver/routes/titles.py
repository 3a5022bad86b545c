"""
Title Routes - version reports, current version and history for each game
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from geserver.api_responses import not_found_response, validation_error_response
from geserver.auth import admin_required
from geserver.constants import KEY_TITLES
from geserver.exceptions import UpstreamException
from geserver.reconciler import record_reported_version
from geserver.utils import sanitize_sensitive_data
import logging

logger = logging.getLogger("main")

titles_bp = Blueprint("titles", __name__)


@titles_bp.route("/webhook/update/<title_id>", methods=["POST"])
def report_version(title_id):
    data = request.get_json(silent=True) or {}
    logger.info(f"Version report for {title_id}: {sanitize_sensitive_data(data)}")
    record_reported_version(current_app.store, title_id, data.get("version"), data.get("patchNotes"))
    return jsonify({"success": True})


@titles_bp.route("/titles/<title_id>/version", methods=["GET"])
def current_version(title_id):
    entry = (current_app.store.get(KEY_TITLES) or {}).get(title_id)
    if not entry:
        return not_found_response("Title", title_id)

    return jsonify({
        "current": entry.get("version"),
        "lastUpdated": entry.get("lastUpdated"),
        "patchNotes": entry.get("patchNotes"),
    })


@titles_bp.route("/titles/<title_id>/versions", methods=["GET"])
def version_history(title_id):
    entry = (current_app.store.get(KEY_TITLES) or {}).get(title_id)
    versions = (entry or {}).get("versions") or []

    # Nothing stored yet for a tracked title: ask itch.io right now
    if not versions and title_id in current_app.watcher.title_ids:
        logger.info(f"No stored versions for {title_id}, reconciling on demand")
        result = current_app.reconciler.reconcile(title_id)
        if result.error:
            logger.warning(f"On-demand reconcile for {title_id} failed: {result.error}")
        entry = (current_app.store.get(KEY_TITLES) or {}).get(title_id)
        versions = (entry or {}).get("versions") or []

    return jsonify({"versions": versions})


@titles_bp.route("/titles/<title_id>/versions/download", methods=["GET"])
def version_download(title_id):
    upload_id = request.args.get("version")
    if not upload_id:
        return validation_error_response("version", "version query parameter is required")

    result = current_app.itch_client.fetch_download_url(upload_id)
    if not result.ok:
        raise UpstreamException(f"Failed to get download link for {title_id} version {upload_id}: {result.error}")
    return jsonify({"url": result.url})


@titles_bp.route("/admin/titles", methods=["GET"])
@admin_required
def all_titles():
    logger.debug(f"Title dump requested by {current_user.username}")
    return jsonify(current_app.store.get(KEY_TITLES) or {})
