"""
Announcement feed and update templates
"""
import logging
import uuid

from geserver.constants import (
    ANNOUNCEMENT_KIND_GLOBAL,
    ANNOUNCEMENT_KIND_TITLE,
    ANNOUNCEMENT_KINDS,
    DEFAULT_TEMPLATE,
    KEY_ANNOUNCEMENTS,
    KEY_TEMPLATES,
)
from geserver.exceptions import NotFoundException, ValidationException
from geserver.utils import now_iso

logger = logging.getLogger("main")


def render_template(template, title_id, version, patch_notes):
    """Literal substitution of every placeholder occurrence."""
    return (
        template.replace("{gameId}", str(title_id))
        .replace("{version}", str(version))
        .replace("{patchNotes}", patch_notes or "")
    )


def _empty_templates():
    return {"global": "", "perTitle": {}}


def resolve_template(templates, title_id):
    """Per-title override, then the global template, then the built-in default."""
    templates = templates or {}
    per_title = templates.get("perTitle") or {}
    return per_title.get(str(title_id)) or templates.get("global") or DEFAULT_TEMPLATE


def _new_entry(title, content, kind, title_id):
    return {
        "id": uuid.uuid4().hex,
        "title": title,
        "content": content,
        "kind": kind,
        "titleId": title_id,
        "date": now_iso(),
        "editedAt": None,
    }


class AnnouncementGenerator:
    """Builds the automatic announcement for a newly detected version"""

    def __init__(self, store):
        self.store = store

    def announce(self, title_id, version_id, patch_notes):
        templates = self.store.get(KEY_TEMPLATES)
        content = render_template(resolve_template(templates, title_id), title_id, version_id, patch_notes)
        entry = _new_entry(
            title=f"New Update: {title_id} - {version_id}",
            content=content,
            kind=ANNOUNCEMENT_KIND_TITLE,
            title_id=str(title_id),
        )
        self.store.update(KEY_ANNOUNCEMENTS, lambda items: [entry] + items, default=[])
        logger.info(f"Created automatic announcement for {title_id} version {version_id}")
        return entry


def list_announcements(store, title_id=None, kind=None):
    announcements = store.get(KEY_ANNOUNCEMENTS) or []
    if kind == ANNOUNCEMENT_KIND_TITLE and title_id:
        return [a for a in announcements if a.get("kind") == ANNOUNCEMENT_KIND_TITLE and a.get("titleId") == title_id]
    if kind == ANNOUNCEMENT_KIND_GLOBAL:
        return [a for a in announcements if a.get("kind") == ANNOUNCEMENT_KIND_GLOBAL]
    return announcements


def create_announcement(store, title, content, kind=ANNOUNCEMENT_KIND_GLOBAL, title_id=None):
    if not title or not content:
        raise ValidationException("title and content are required")
    kind = kind or ANNOUNCEMENT_KIND_GLOBAL
    if kind not in ANNOUNCEMENT_KINDS:
        raise ValidationException(f"kind must be one of: {', '.join(ANNOUNCEMENT_KINDS)}")
    if kind == ANNOUNCEMENT_KIND_TITLE and not title_id:
        raise ValidationException("titleId is required for title-specific announcements")

    entry = _new_entry(title, content, kind, str(title_id) if kind == ANNOUNCEMENT_KIND_TITLE else None)
    store.update(KEY_ANNOUNCEMENTS, lambda items: [entry] + items, default=[])
    logger.info(f"Announcement {entry['id']} created ({kind})")
    return entry


def edit_announcement(store, announcement_id, title=None, content=None):
    edited = {}

    def _edit(items):
        for item in items:
            if item.get("id") == announcement_id:
                if title:
                    item["title"] = title
                if content:
                    item["content"] = content
                item["editedAt"] = now_iso()
                edited.update(item)
                return items
        raise NotFoundException(f"Announcement with ID '{announcement_id}' not found")

    store.update(KEY_ANNOUNCEMENTS, _edit, default=[])
    return edited


def delete_announcement(store, announcement_id):
    removed = {}

    def _delete(items):
        for idx, item in enumerate(items):
            if item.get("id") == announcement_id:
                removed.update(items.pop(idx))
                return items
        raise NotFoundException(f"Announcement with ID '{announcement_id}' not found")

    store.update(KEY_ANNOUNCEMENTS, _delete, default=[])
    logger.info(f"Announcement {announcement_id} deleted")
    return removed


def get_templates(store):
    return store.get(KEY_TEMPLATES) or _empty_templates()


def set_template(store, scope, template, title_id=None):
    """Set the global template or a per-title override."""
    if template is None:
        raise ValidationException("Invalid template payload")

    def _set(templates):
        templates.setdefault("perTitle", {})
        templates.setdefault("global", "")
        if scope == "global":
            templates["global"] = template
        elif scope == "perTitle" and title_id:
            templates["perTitle"][str(title_id)] = template
        else:
            raise ValidationException("Invalid template payload")
        return templates

    return store.update(KEY_TEMPLATES, _set, default=_empty_templates())
