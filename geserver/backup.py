import json
import os
import shutil
import logging
from datetime import datetime, timezone

from geserver.exceptions import ValidationException
from geserver.utils import now_utc, safe_write_json

logger = logging.getLogger('main')


class BackupManager:
    def __init__(self, store, backup_dir, keep=7):
        self.store = store
        self.backup_dir = backup_dir
        self.keep = keep
        os.makedirs(self.backup_dir, exist_ok=True)

    def create_backup(self):
        """Write a timestamped snapshot of the store next to the other backups"""
        timestamp = now_utc().strftime('%Y%m%d_%H%M%S_%f')
        backup_path = os.path.join(self.backup_dir, f'store_{timestamp}.json')

        try:
            safe_write_json(backup_path, self.store.snapshot())
            logger.info(f"Store backup created: {backup_path}")
            self.cleanup_old_backups(keep=self.keep)
            return True, timestamp
        except OSError as e:
            logger.error(f"Backup failed: {e}")
            return False, None

    def cleanup_old_backups(self, keep=7):
        """Keep only the most recent N backups"""
        files = [
            os.path.join(self.backup_dir, name)
            for name in os.listdir(self.backup_dir)
            if name.startswith('store_') and name.endswith('.json')
        ]
        files.sort(key=lambda x: (os.path.getmtime(x), x), reverse=True)

        for old_file in files[keep:]:
            try:
                os.remove(old_file)
                logger.info(f"Removed old backup: {os.path.basename(old_file)}")
            except OSError as e:
                logger.error(f"Failed to remove old backup {old_file}: {e}")

    def list_backups(self):
        """List all available backups (newest first)"""
        backups = []
        for filename in os.listdir(self.backup_dir):
            filepath = os.path.join(self.backup_dir, filename)
            if os.path.isfile(filepath):
                stat = os.stat(filepath)
                backups.append({
                    'filename': filename,
                    'size': stat.st_size,
                    'created': datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                })

        backups.sort(key=lambda x: x['created'], reverse=True)
        return backups

    def restore_from_bytes(self, raw):
        """
        Replace the store with an uploaded snapshot.

        The upload must be a JSON object. The current file is copied to
        ``<store>.pre-restore`` before it is overwritten.
        """
        try:
            data = json.loads(raw.decode('utf-8') if isinstance(raw, bytes) else raw)
        except (UnicodeDecodeError, ValueError) as e:
            raise ValidationException(f"Backup is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise ValidationException("Backup must contain a JSON object")

        target_path = self.store.path
        if os.path.exists(target_path):
            safety_backup = f"{target_path}.pre-restore"
            shutil.copy2(target_path, safety_backup)
            logger.info(f"Created safety backup: {safety_backup}")

        self.store.replace(data)
        self.store.reload()
        logger.info(f"Restored store from uploaded backup ({len(data)} keys)")
        return sorted(data.keys())
