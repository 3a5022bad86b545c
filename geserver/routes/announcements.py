"""
Announcement Routes - public feed, operator CRUD and update templates
"""

from flask import Blueprint, current_app, jsonify, request

from geserver import announcements
from geserver.auth import admin_required

announcements_bp = Blueprint("announcements", __name__)


@announcements_bp.route("/announcements", methods=["GET"])
def feed():
    title_id = request.args.get("titleId")
    kind = request.args.get("kind")
    return jsonify(announcements.list_announcements(current_app.store, title_id=title_id, kind=kind))


@announcements_bp.route("/admin/announcements", methods=["POST"])
@admin_required
def create():
    data = request.get_json(silent=True) or {}
    entry = announcements.create_announcement(
        current_app.store,
        title=data.get("title"),
        content=data.get("content"),
        kind=data.get("kind"),
        title_id=data.get("titleId"),
    )
    return jsonify(entry), 201


@announcements_bp.route("/admin/announcements/<announcement_id>", methods=["PUT"])
@admin_required
def edit(announcement_id):
    data = request.get_json(silent=True) or {}
    entry = announcements.edit_announcement(
        current_app.store, announcement_id, title=data.get("title"), content=data.get("content")
    )
    return jsonify(entry)


@announcements_bp.route("/admin/announcements/<announcement_id>", methods=["DELETE"])
@admin_required
def delete(announcement_id):
    removed = announcements.delete_announcement(current_app.store, announcement_id)
    return jsonify({"success": True, "removed": removed})


@announcements_bp.route("/templates", methods=["GET"])
def templates():
    return jsonify(announcements.get_templates(current_app.store))


@announcements_bp.route("/admin/templates", methods=["POST"])
@admin_required
def set_template():
    data = request.get_json(silent=True) or {}
    updated = announcements.set_template(
        current_app.store, data.get("scope"), data.get("template"), title_id=data.get("titleId")
    )
    return jsonify(updated)
