import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get('GESERVER_DATA_DIR', os.path.join(APP_DIR, 'data'))
CONFIG_DIR = os.environ.get('GESERVER_CONFIG_DIR', os.path.join(APP_DIR, 'config'))
CONFIG_FILE = os.path.join(CONFIG_DIR, 'settings.yaml')
DB_FILE = os.path.join(DATA_DIR, 'db', 'localstorage.json')
BACKUP_DIR = os.path.join(DATA_DIR, 'backups')

BUILD_VERSION = '20261018_0930'

ITCH_API_BASE = 'https://itch.io/api/1'
ITCH_UPLOAD_PAGE_URL = 'https://itch.io/my-game/{title_id}/uploads/{upload_id}'

DEFAULT_POLL_INTERVAL_MS = 1000 * 60 * 10
LAUNCHER_INSTRUCTION_TTL = 30

# Store keys
KEY_TITLES = 'titles'
KEY_ANNOUNCEMENTS = 'announcements'
KEY_ADMINS = 'admins'
KEY_TEMPLATES = 'templates'
KEY_USERS = 'users'

ANNOUNCEMENT_KIND_GLOBAL = 'global'
ANNOUNCEMENT_KIND_TITLE = 'title-specific'
ANNOUNCEMENT_KINDS = [ANNOUNCEMENT_KIND_GLOBAL, ANNOUNCEMENT_KIND_TITLE]

DEFAULT_TEMPLATE = "New update for {gameId}: version {version}\n\n{patchNotes}"

DEFAULT_STORE = {
    KEY_TITLES: {},
    KEY_ANNOUNCEMENTS: [],
    KEY_ADMINS: ['admin'],
    KEY_TEMPLATES: {
        'global': DEFAULT_TEMPLATE,
        'perTitle': {},
    },
    KEY_USERS: {},
}

DEFAULT_SETTINGS = {
    "server": {
        "host": "0.0.0.0",
        "port": 5000,
    },
    "itch": {
        "api_key": "",
        "title_ids": [],
        "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
        "request_timeout": 15,
    },
    "storage": {
        "path": DB_FILE,
        "backup_dir": BACKUP_DIR,
        "backups_to_keep": 7,
    },
    "auth": {
        "default_admin_tokens": ['admin'],
        "session_max_age": 60 * 60 * 12,
        "login_rate_limit": "10 per minute",
    },
    "notifications": {
        "discord_webhook": None,
    },
}
