"""
Process-wide deadline settings persisted as a small JSON document.

The whole file is read and rewritten on every access; concurrent writers
race and the last one wins.
"""
import json
import logging
from pathlib import Path

from django.conf import settings

logger = logging.getLogger(__name__)


DEFAULTS = {
    'blocking_enabled': False,
}


def settings_path():
    return Path(getattr(settings, 'DEADLINE_SETTINGS_FILE', 'deadline_settings.json'))


def load_settings():
    path = settings_path()
    if not path.exists():
        return dict(DEFAULTS)
    try:
        with path.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read deadline settings from {path}: {e}")
        return dict(DEFAULTS)
    if not isinstance(data, dict):
        logger.error(f"Deadline settings in {path} are not an object, using defaults")
        return dict(DEFAULTS)
    return {**DEFAULTS, **data}


def save_settings(values):
    path = settings_path()
    data = {**load_settings(), **values}
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as handle:
        json.dump(data, handle, indent=2)
    return data


def load_blocking_setting():
    return bool(load_settings().get('blocking_enabled', False))


def save_blocking_setting(enabled):
    data = save_settings({'blocking_enabled': bool(enabled)})
    logger.info(f"Deadline blocking set to {data['blocking_enabled']}")
    return data['blocking_enabled']
