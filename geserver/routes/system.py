"""
System Routes - health, watcher status, backup and restore
"""

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user
import json
import logging

from geserver.api_responses import validation_error_response
from geserver.auth import admin_required
from geserver.constants import BUILD_VERSION
from geserver.utils import now_iso, now_utc

logger = logging.getLogger("main")

system_bp = Blueprint("system", __name__)


@system_bp.route("/", methods=["GET"])
def root():
    return jsonify({"status": "ok", "time": now_iso()})


@system_bp.route("/status", methods=["GET"])
def status():
    return jsonify({
        "server": {
            "status": "ok",
            "time": now_iso(),
            "version": BUILD_VERSION,
        },
        "watcher": current_app.watcher.status.snapshot(),
    })


@system_bp.route("/admin/backup", methods=["GET"])
@admin_required
def download_backup():
    snapshot = current_app.store.snapshot()
    filename = f"localstorage_{now_utc().strftime('%Y%m%d_%H%M%S')}.json"
    logger.info(f"Store snapshot downloaded by {current_user.username}")
    return Response(
        json.dumps(snapshot, ensure_ascii=False, indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@system_bp.route("/admin/backups", methods=["GET"])
@admin_required
def list_backups():
    return jsonify(current_app.backup_manager.list_backups())


@system_bp.route("/admin/restore", methods=["POST"])
@admin_required
def restore_backup():
    upload = request.files.get("file")
    if upload is not None:
        raw = upload.read()
    else:
        raw = request.get_data()

    if not raw:
        return validation_error_response("file", "a backup file is required")

    keys = current_app.backup_manager.restore_from_bytes(raw)
    logger.info(f"Store restored by {current_user.username}")
    return jsonify({"success": True, "keys": keys})
