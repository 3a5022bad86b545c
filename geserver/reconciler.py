"""
Upload reconciliation - merges itch.io uploads into the local version history
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from geserver.constants import ITCH_UPLOAD_PAGE_URL, KEY_TITLES
from geserver.exceptions import ValidationException
from geserver.utils import ensure_utc, now_iso

logger = logging.getLogger("main")

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def new_title_entry() -> Dict:
    return {"version": None, "patchNotes": None, "lastUpdated": None, "versions": []}


def build_patch_notes(upload: Dict) -> str:
    return f"New build uploaded at {upload.get('updated_at')}"


def upload_timestamp(value) -> Optional[datetime]:
    """Parse updated_at: ISO strings, datetimes, or epoch numbers in milliseconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return ensure_utc(value)


def sort_uploads(uploads: List[Dict]) -> List[Dict]:
    """Newest first by updated_at; uploads without a usable timestamp go last."""

    def _key(upload):
        updated = upload_timestamp(upload.get("updated_at"))
        return (updated is not None, updated or _OLDEST)

    return sorted(uploads, key=_key, reverse=True)


def normalize_upload(title_id: str, upload: Dict, detected_at: str) -> Dict:
    upload_id = str(upload["id"])
    return {
        "id": upload_id,
        "patchNotes": build_patch_notes(upload),
        "detectedAt": detected_at,
        "uploadedAt": upload.get("updated_at"),
        "downloadUrl": upload.get("url") or ITCH_UPLOAD_PAGE_URL.format(title_id=title_id, upload_id=upload_id),
        "rawMeta": upload,
    }


class ReconcileResult:
    def __init__(self, new_version_detected: bool = False, record: Optional[Dict] = None, error: Optional[str] = None):
        self.new_version_detected = new_version_detected
        self.record = record
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None


class UploadReconciler:
    """
    Fetches the upload list for a title and folds it into ``titles[title_id]``.

    History is append-only and keyed by upload id. The ``version`` pointer
    follows the newest upload; when it moves the entry is persisted first and
    only then is an announcement attempted.
    """

    def __init__(self, store, client, announcer=None):
        self.store = store
        self.client = client
        self.announcer = announcer

    def reconcile(self, title_id) -> ReconcileResult:
        title_id = str(title_id)
        fetched = self.client.fetch_uploads(title_id)
        if not fetched.ok:
            return ReconcileResult(error=fetched.error)

        uploads = [u for u in fetched.uploads if u.get("id") is not None]
        if not uploads:
            logger.info(f"No uploads found for {title_id}.")
            return ReconcileResult()

        uploads = sort_uploads(uploads)
        latest = uploads[0]
        latest_id = str(latest["id"])
        outcome = {}

        def _merge(titles):
            entry = titles.get(title_id) or new_title_entry()
            entry.setdefault("versions", [])
            known = {str(v.get("id")) for v in entry["versions"]}
            now = now_iso()

            added = []
            for upload in uploads:
                upload_id = str(upload["id"])
                if upload_id in known:
                    continue
                known.add(upload_id)
                added.append(normalize_upload(title_id, upload, now))
            entry["versions"] = added + entry["versions"]

            detected = entry.get("version") != latest_id
            if detected:
                entry["version"] = latest_id
                entry["patchNotes"] = build_patch_notes(latest)
                entry["lastUpdated"] = now

            outcome["detected"] = detected
            outcome["added"] = len(added)
            outcome["record"] = next((v for v in entry["versions"] if str(v.get("id")) == latest_id), None)
            outcome["patchNotes"] = entry["patchNotes"]
            titles[title_id] = entry
            return titles

        self.store.update(KEY_TITLES, _merge, default={})

        if outcome["added"]:
            logger.info(f"Recorded {outcome['added']} new upload(s) for {title_id}")

        if not outcome["detected"]:
            logger.info(f"No new version found for {title_id}.")
            return ReconcileResult(record=outcome["record"])

        logger.info(f"New version detected for {title_id}! Upload ID: {latest_id}")
        if self.announcer is not None:
            try:
                self.announcer.announce(title_id, latest_id, outcome["patchNotes"])
            except Exception as e:
                # Version pointer is already persisted at this point
                logger.error(f"Failed to create announcement for {title_id} version {latest_id}: {e}")

        return ReconcileResult(new_version_detected=True, record=outcome["record"])


def record_reported_version(store, title_id, version, patch_notes=None) -> Dict:
    """
    Apply a pushed version report: move the pointer and add a history record
    when the id has not been seen before.
    """
    if version is None or str(version).strip() == "":
        raise ValidationException("version is required")

    title_id = str(title_id)
    version = str(version)
    result = {}

    def _apply(titles):
        entry = titles.get(title_id) or new_title_entry()
        entry.setdefault("versions", [])
        now = now_iso()
        entry["version"] = version
        entry["patchNotes"] = patch_notes
        entry["lastUpdated"] = now
        if not any(str(v.get("id")) == version for v in entry["versions"]):
            entry["versions"].insert(0, {
                "id": version,
                "patchNotes": patch_notes,
                "detectedAt": now,
                "uploadedAt": None,
                "downloadUrl": None,
                "rawMeta": None,
            })
        titles[title_id] = entry
        result.update(entry)
        return titles

    store.update(KEY_TITLES, _apply, default={})
    logger.info(f"Version {version} reported for {title_id}")
    return result
