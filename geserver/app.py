"""
geserver - itch.io build tracker
Application factory and startup
"""
import os
import sys
import logging

from apscheduler.triggers.cron import CronTrigger
from flask import Flask
import structlog

from geserver.announcements import AnnouncementGenerator
from geserver.auth import auth_blueprint, limiter, login_manager
from geserver.backup import BackupManager
from geserver.constants import BUILD_VERSION, CONFIG_DIR, DEFAULT_STORE
from geserver.exceptions import register_exception_handlers
from geserver.itch_client import ItchClient
from geserver.jobs.scheduler import PollScheduler, WatcherStatus
from geserver.launcher import LauncherMailbox
from geserver.metrics import init_metrics
from geserver.notifier import DiscordNotifier
from geserver.reconciler import UploadReconciler
from geserver.routes.announcements import announcements_bp
from geserver.routes.launcher import launcher_bp
from geserver.routes.system import system_bp
from geserver.routes.titles import titles_bp
from geserver.settings import load_settings
from geserver.store import JsonStore
from geserver.utils import ColoredFormatter, FilterRemoveDateFromWerkzeugLogs, get_or_create_secret_key

logger = structlog.get_logger('main')


def configure_logging():
    formatter = ColoredFormatter(
        '[%(asctime)s.%(msecs)03d] %(levelname)s (%(module)s) %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=logging.INFO,
        handlers=[handler]
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if os.environ.get('LOG_FORMAT') == 'json' else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Apply filter to hide date from http access logs
    logging.getLogger('werkzeug').addFilter(FilterRemoveDateFromWerkzeugLogs())
    logging.getLogger('apscheduler').setLevel(logging.WARNING)


def add_cors_headers(response):
    # Website and launcher are served from other origins
    response.headers.setdefault('Access-Control-Allow-Origin', '*')
    response.headers.setdefault('Access-Control-Allow-Headers', 'Authorization, Content-Type')
    response.headers.setdefault('Access-Control-Allow-Methods', 'GET, POST, PUT, DELETE, OPTIONS')
    return response


def create_app(settings=None, itch_client=None, scheduler=None, start_watcher=True, config=None):
    """Application factory"""
    settings = settings or load_settings()

    app = Flask(__name__)
    app.config['SESSION_MAX_AGE'] = settings['auth']['session_max_age']
    app.config['LOGIN_RATE_LIMIT'] = settings['auth']['login_rate_limit']
    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024
    if config:
        app.config.update(config)
    if not app.config.get('SECRET_KEY'):
        app.config['SECRET_KEY'] = get_or_create_secret_key(CONFIG_DIR)

    # Storage, seeded with the keys every route expects
    store = JsonStore(settings['storage']['path'])
    defaults = dict(DEFAULT_STORE)
    defaults['admins'] = list(settings['auth']['default_admin_tokens'])
    store.ensure_defaults(defaults)

    itch = settings['itch']
    client = itch_client or ItchClient(itch['api_key'], timeout=itch['request_timeout'])
    notifier = DiscordNotifier(settings['notifications'].get('discord_webhook'))
    reconciler = UploadReconciler(store, client, announcer=AnnouncementGenerator(store))
    status = WatcherStatus(itch['title_ids'], itch['poll_interval_ms'])
    poll_scheduler = PollScheduler(reconciler, status=status, notifier=notifier, scheduler=scheduler)
    poll_scheduler.title_ids = list(itch['title_ids'])
    poll_scheduler.interval_ms = itch['poll_interval_ms']

    # Explicit application context shared by every request handler
    app.store = store
    app.itch_client = client
    app.reconciler = reconciler
    app.watcher = poll_scheduler
    app.mailbox = LauncherMailbox()
    app.backup_manager = BackupManager(
        store, settings['storage']['backup_dir'], keep=settings['storage']['backups_to_keep']
    )

    login_manager.init_app(app)
    limiter.init_app(app)

    # Register exception handlers
    register_exception_handlers(app)

    # Register blueprints
    app.register_blueprint(system_bp)
    app.register_blueprint(auth_blueprint)
    app.register_blueprint(titles_bp)
    app.register_blueprint(announcements_bp)
    app.register_blueprint(launcher_bp)

    init_metrics(app)
    app.after_request(add_cors_headers)

    if start_watcher:
        poll_scheduler.add_job(
            job_id='daily_backup',
            func=app.backup_manager.create_backup,
            trigger=CronTrigger(hour=3, minute=0),
            name='Daily Backup',
        )
        poll_scheduler.ensure_running()
        poll_scheduler.start(itch['title_ids'], itch['poll_interval_ms'])

    return app


def main():
    configure_logging()
    settings = load_settings()
    app = create_app(settings)
    logger.info(f'Build Version: {BUILD_VERSION}')
    logger.info(f"Starting server on port {settings['server']['port']}...")
    try:
        app.run(host=settings['server']['host'], port=settings['server']['port'], debug=False, use_reloader=False, threaded=True)
    finally:
        app.watcher.shutdown()
        logger.info('Shutting down server...')


if __name__ == '__main__':
    main()
