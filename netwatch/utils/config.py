"""Simple runtime configuration for scanners, the MITM engine and analytics.

Config is persisted to `netwatch/config.json` so tuned values survive restarts.
Components read their sections through `get()`; missing sections fall back
to the built-in defaults below.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)

_DEFAULTS: Dict[str, Any] = {
    'scan': {'rate_limit': 50e-6, 'idle_wait': 0.5, 'max_hosts': 4096, 'promiscuous': True, 'timeout': 10.0},
    'resolver': {'deadline': 3.0, 'poll_interval': 0.1},
    'mitm': {'interval': 2.0, 'restore_rounds': 3, 'restore_gap': 0.1},
    'anomaly': {
        'broadcast_threshold': 50,
        'dos_threshold': 500,
        'unsecure_cooldown': 10.0,
        'cleanup_interval': 60.0,
        'data_retention': 300.0,
    },
    'stats': {'domain_log_size': 50, 'alert_history': 20},
    'queue_maxsize': 1000,
}

_cfg: Dict[str, Any] = {}

_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'config.json'))


def load():
    global _cfg
    if os.path.exists(_path):
        try:
            with open(_path, 'r') as f:
                _cfg = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable config %s: %s", _path, e)
            _cfg = dict(_DEFAULTS)
    else:
        _cfg = dict(_DEFAULTS)


def save():
    try:
        with open(_path, 'w') as f:
            json.dump(_cfg, f, indent=2)
        return True
    except OSError as e:
        logger.warning("Could not save config to %s: %s", _path, e)
        return False


def get(section: str, default=None):
    return _cfg.get(section, _DEFAULTS.get(section, default))


def set_section(section: str, value: Dict[str, Any]):
    _cfg[section] = value


# initialize
load()
