"""
Launcher Routes - hand a "launch this version" instruction to a polling launcher
"""

from flask import Blueprint, current_app, jsonify, request

from geserver.api_responses import validation_error_response
from geserver.auth import admin_required

launcher_bp = Blueprint("launcher", __name__, url_prefix="/launcher")


@launcher_bp.route("/poll", methods=["GET"])
def poll():
    title_id = request.args.get("titleId")
    if not title_id:
        return validation_error_response("titleId", "titleId query parameter is required")
    return jsonify(current_app.mailbox.poll(title_id, request.args.get("clientId")))


@launcher_bp.route("/launch", methods=["POST"])
@admin_required
def launch():
    data = request.get_json(silent=True) or {}
    if not data.get("titleId"):
        return validation_error_response("titleId", "titleId is required")
    if not data.get("version"):
        return validation_error_response("version", "version is required")

    instruction = current_app.mailbox.post(data["titleId"], data["version"])
    return jsonify({"success": True, "instruction": instruction})
