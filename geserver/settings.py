import copy
import os
import logging

import yaml

from geserver.constants import CONFIG_FILE, DEFAULT_SETTINGS

# Retrieve main logger
logger = logging.getLogger("main")


# Cache variable
_cached_settings = None


def _merge_defaults(settings):
    # Deep merge with defaults so sections added later are always present
    merged_settings = copy.deepcopy(DEFAULT_SETTINGS)
    for section, values in settings.items():
        if isinstance(values, dict) and section in merged_settings and isinstance(merged_settings[section], dict):
            merged_settings[section].update(values)
        else:
            merged_settings[section] = values
    return merged_settings


def parse_title_ids(raw):
    """Split a comma separated list of title ids, dropping blanks."""
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(t).strip() for t in raw if str(t).strip()]
    return [s.strip() for s in str(raw).split(",") if s.strip()]


def apply_environment(settings, environ=None):
    """Override settings with the environment variables the deployment uses."""
    env = os.environ if environ is None else environ

    if env.get("ITCH_API_KEY"):
        settings["itch"]["api_key"] = env["ITCH_API_KEY"]

    title_ids = env.get("GAME_IDS") or env.get("GAME_ID")
    if title_ids:
        settings["itch"]["title_ids"] = parse_title_ids(title_ids)
    else:
        settings["itch"]["title_ids"] = parse_title_ids(settings["itch"].get("title_ids"))

    if env.get("POLL_INTERVAL_MS"):
        try:
            settings["itch"]["poll_interval_ms"] = int(env["POLL_INTERVAL_MS"])
        except ValueError:
            logger.warning(f"Ignoring invalid POLL_INTERVAL_MS value: {env['POLL_INTERVAL_MS']}")

    if env.get("DISCORD_WEBHOOK_URL"):
        settings["notifications"]["discord_webhook"] = env["DISCORD_WEBHOOK_URL"]

    if env.get("GESERVER_DB"):
        settings["storage"]["path"] = env["GESERVER_DB"]

    if env.get("SESSION_MAX_AGE"):
        try:
            settings["auth"]["session_max_age"] = int(env["SESSION_MAX_AGE"])
        except ValueError:
            logger.warning(f"Ignoring invalid SESSION_MAX_AGE value: {env['SESSION_MAX_AGE']}")

    if env.get("PORT"):
        try:
            settings["server"]["port"] = int(env["PORT"])
        except ValueError:
            logger.warning(f"Ignoring invalid PORT value: {env['PORT']}")

    return settings


def load_settings(force=False, config_file=CONFIG_FILE):
    global _cached_settings

    if _cached_settings and not force:
        return _cached_settings

    if os.path.exists(config_file):
        logger.debug(f"Reading configuration file: {config_file}")
        with open(config_file, "r") as yaml_file:
            settings = yaml.safe_load(yaml_file) or {}
        settings = _merge_defaults(settings)
    else:
        settings = copy.deepcopy(DEFAULT_SETTINGS)
        os.makedirs(os.path.dirname(config_file), exist_ok=True)
        with open(config_file, "w") as yaml_file:
            yaml.dump(settings, yaml_file)

    settings = apply_environment(settings)

    _cached_settings = settings
    return settings
