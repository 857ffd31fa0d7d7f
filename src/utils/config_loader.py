import configparser
import os
import sys
from typing import Any, Dict, List

# Defaults injected for [REPORT] keys that are absent; a blank value is kept
REPORT_DEFAULTS = {
    'student_role': 'student',
    'table_prefix': 'mdl_',
    'excluded_modules': 'label',
    'post_actions': 'created,submitted,updated,uploaded',
    'export_dir': 'reports',
}

def get_base_dir() -> str:
    """
    Returns the folder holding config.ini and db.env.

    - Compiled executable (PyInstaller): the folder containing the .exe.
    - Script: the project root, two levels up from /src/utils/.
    """
    if getattr(sys, 'frozen', False):
        return os.path.dirname(sys.executable)
    return os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

def get_config_path(filename: str) -> str:
    """Returns the absolute path for an external configuration file."""
    return os.path.join(get_base_dir(), filename)

def load_config(config_path: str = None) -> configparser.ConfigParser:
    """
    Loads the report configuration from 'config.ini'.

    Returns:
        ConfigParser with a [MOODLE] section and a [REPORT] section
        (defaults filled in for missing keys).
    """
    config_path = config_path or get_config_path('config.ini')

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found at: {config_path}")

    config = configparser.ConfigParser()
    config.read(config_path)

    if 'MOODLE' not in config:
        raise ValueError("config.ini is missing the [MOODLE] section")

    if 'REPORT' not in config:
        config['REPORT'] = {}
    for key, value in REPORT_DEFAULTS.items():
        if key not in config['REPORT']:
            config['REPORT'][key] = value

    return config

def _split_list(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(',') if item.strip()]

def get_report_settings(config) -> Dict[str, Any]:
    """Parses the [REPORT] section into typed settings."""
    section = config['REPORT']
    prefix = section.get('table_prefix', REPORT_DEFAULTS['table_prefix']).strip()
    if not prefix.replace('_', '').isalnum():
        raise ValueError(f"Invalid table prefix: {prefix!r}")

    post_actions = _split_list(section.get('post_actions', REPORT_DEFAULTS['post_actions']))
    if not post_actions:
        raise ValueError("post_actions must list at least one log action")

    return {
        'student_role': section.get('student_role', REPORT_DEFAULTS['student_role']).strip(),
        'table_prefix': prefix,
        'excluded_modules': set(_split_list(section.get('excluded_modules', ''))),
        'post_actions': tuple(post_actions),
        'export_dir': section.get('export_dir', REPORT_DEFAULTS['export_dir']).strip(),
    }
