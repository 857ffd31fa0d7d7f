import logging
import os
import time
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor
from dotenv import load_dotenv

from .config_loader import get_base_dir, get_config_path
from .filters import ReportFilter

logger = logging.getLogger(__name__)

# Try multiple sensible locations for the env file so it works both when
# running from source (`src/db.env`) and from the project root or next to
# the packaged executable.
BASE_DIR = get_base_dir()
_env_candidates = [
    os.path.join(BASE_DIR, 'db.env'),
    os.path.join(BASE_DIR, 'src', 'db.env'),
    get_config_path('db.env'),
]
_env_candidates = [os.path.abspath(p) for p in _env_candidates]
ENV_PATH = next((p for p in _env_candidates if os.path.exists(p)), _env_candidates[0])
load_dotenv(ENV_PATH, override=True)
_ENV_CANDIDATES = _env_candidates

# Moodle context levels
CONTEXT_COURSE = 50
CONTEXT_MODULE = 70

MAX_ATTEMPTS = 3

# Core tables referenced by the queries below; the per-module instance
# table ({instance_table}) is added when a module name is given.
TABLES = (
    'course_modules', 'modules', 'course_sections', 'course_modules_completion',
    'context', 'role', 'role_assignments', 'logstore_standard_log',
)

# Restricts a row to users holding the reported role in the course context
_IS_STUDENT = """
    EXISTS (
        SELECT 1
        FROM {role_assignments} ra
        JOIN {context} ctx ON ctx.id = ra.contextid AND ctx.contextlevel = %(courselevel)s
        WHERE ctx.instanceid = %(courseid)s
          AND ra.roleid = %(roleid)s
          AND ra.userid = {userid}
    )
"""

def get_db_connection():
    """
    Opens a connection to the Moodle database with a connect timeout and SSL mode.
    """
    host = os.getenv("MOODLE_DB_HOST")
    sslmode = os.getenv("MOODLE_DB_SSLMODE", "prefer")

    if not host:
        tried = ', '.join(_ENV_CANDIDATES)
        raise ValueError(f"Database credentials not found. Checked env files: {tried}")

    return psycopg2.connect(
        host=host,
        dbname=os.getenv("MOODLE_DB_NAME"),
        user=os.getenv("MOODLE_DB_USER"),
        password=os.getenv("MOODLE_DB_PASSWORD"),
        port=os.getenv("MOODLE_DB_PORT"),
        sslmode=sslmode,
        connect_timeout=10
    )

def _compose(template: str, prefix: str, modname: Optional[str] = None) -> sql.Composed:
    """Fills table placeholders with prefixed, quoted identifiers."""
    tables = {name: sql.Identifier(prefix + name) for name in TABLES}
    if modname is not None:
        tables['instance_table'] = sql.Identifier(prefix + ReportFilter.validate_module_name(modname))
    return sql.SQL(template).format(**tables)

def _student_clause(userid_column: str) -> str:
    return _IS_STUDENT.replace('{userid}', userid_column)

def _fetch_all(conn, query: sql.Composed, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Runs a read query and returns its rows as dicts.
    Statement timeouts and lock waits are retried; other errors propagate.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(row) for row in cur.fetchall()]
        except psycopg2.Error as e:
            conn.rollback()
            message = str(e).lower()
            if attempt < MAX_ATTEMPTS and ("timeout" in message or "lock" in message):
                logger.warning("Retrying query after transient error (attempt %s): %s", attempt, e)
                time.sleep(1)
                continue
            logger.error("Query failed for course %s: %s", params.get('courseid'), e)
            raise

# --- Roles & Enrolment ---

def get_role_id(conn, prefix: str, shortname: str) -> Optional[int]:
    query = _compose("SELECT id FROM {role} WHERE shortname = %(shortname)s", prefix)
    rows = _fetch_all(conn, query, {'shortname': shortname})
    return int(rows[0]['id']) if rows else None

def count_role_users(conn, prefix: str, course_id: int, role_id: int) -> int:
    """Number of distinct users holding the role in the course context."""
    query = _compose("""
        SELECT COUNT(DISTINCT ra.userid) AS total
        FROM {role_assignments} ra
        JOIN {context} ctx ON ctx.id = ra.contextid AND ctx.contextlevel = %(courselevel)s
        WHERE ctx.instanceid = %(courseid)s AND ra.roleid = %(roleid)s
    """, prefix)
    rows = _fetch_all(conn, query, {'courseid': course_id, 'roleid': role_id, 'courselevel': CONTEXT_COURSE})
    return int(rows[0]['total']) if rows else 0

# --- Course Structure ---

def get_course_sections(conn, prefix: str, course_id: int) -> List[Dict[str, Any]]:
    query = _compose("""
        SELECT id, name, section, visible
        FROM {course_sections}
        WHERE course = %(courseid)s
        ORDER BY section
    """, prefix)
    return _fetch_all(conn, query, {'courseid': course_id})

def get_course_module_types(conn, prefix: str, course_id: int) -> List[str]:
    query = _compose("""
        SELECT DISTINCT m.name
        FROM {course_modules} cm
        JOIN {modules} m ON cm.module = m.id
        WHERE cm.course = %(courseid)s
        ORDER BY m.name
    """, prefix)
    return [row['name'] for row in _fetch_all(conn, query, {'courseid': course_id})]

def get_module_instances(conn, prefix: str, course_id: int, modname: str) -> List[Dict[str, Any]]:
    """All instances of one module type with their section."""
    query = _compose("""
        SELECT cm.id AS cmid, cm.instance, act.name AS modulename,
               cs.name AS sectionname, cs.section AS sectionnumber
        FROM {course_modules} cm
        JOIN {modules} m ON cm.module = m.id
        JOIN {course_sections} cs ON cm.section = cs.id
        LEFT JOIN {instance_table} act ON cm.instance = act.id
        WHERE cm.course = %(courseid)s AND m.name = %(modname)s
        ORDER BY cs.section, cm.id
    """, prefix, modname)
    return _fetch_all(conn, query, {'courseid': course_id, 'modname': modname})

# --- Completion ---

def get_completion_module_types(conn, prefix: str, course_id: int) -> List[str]:
    """Module types with at least one completion-tracked instance."""
    query = _compose("""
        SELECT DISTINCT m.name
        FROM {course_modules} cm
        JOIN {modules} m ON cm.module = m.id
        WHERE cm.course = %(courseid)s AND cm.completion != 0
        ORDER BY m.name
    """, prefix)
    return [row['name'] for row in _fetch_all(conn, query, {'courseid': course_id})]

def get_instance_completion_counts(conn, prefix: str, course_id: int, modname: str, role_id: int) -> List[Dict[str, Any]]:
    """
    Completed count per completion-tracked instance of one module type.
    Completions by users without any course role are counted too.
    """
    query = _compose("""
        SELECT cm.id AS cmid, cm.section AS section_id, act.name AS name,
               COALESCE(SUM(CASE WHEN cmc.completionstate IN %(completed)s
                                  AND (ra.roleid = %(roleid)s OR ra.roleid IS NULL)
                             THEN 1 ELSE 0 END), 0) AS completioncount
        FROM {instance_table} act
        JOIN {course_modules} cm ON act.id = cm.instance
        JOIN {modules} m ON cm.module = m.id
        LEFT JOIN {course_modules_completion} cmc ON cm.id = cmc.coursemoduleid
        LEFT JOIN {context} ctx ON ctx.instanceid = cm.course AND ctx.contextlevel = %(courselevel)s
        LEFT JOIN {role_assignments} ra ON ra.contextid = ctx.id AND ra.userid = cmc.userid
        WHERE cm.course = %(courseid)s
          AND cm.completion != 0
          AND m.name = %(modname)s
        GROUP BY cm.id, cm.section, act.name
        ORDER BY cm.section, cm.id
    """, prefix, modname)
    params = {
        'courseid': course_id,
        'modname': modname,
        'roleid': role_id,
        'courselevel': CONTEXT_COURSE,
        'completed': tuple(ReportFilter.COMPLETED_STATES),
    }
    return _fetch_all(conn, query, params)

def get_section_completion_counts(conn, prefix: str, course_id: int, modname: str, role_id: int) -> Dict[int, int]:
    """Completions by students of one module type, summed per section id."""
    query = _compose("""
        SELECT cs.id AS section_id, COUNT(cmc.id) AS completioncount
        FROM {course_modules} cm
        JOIN {modules} m ON cm.module = m.id
        JOIN {course_sections} cs ON cm.section = cs.id
        JOIN {course_modules_completion} cmc ON cm.id = cmc.coursemoduleid
        WHERE cm.course = %(courseid)s
          AND m.name = %(modname)s
          AND cmc.completionstate IN %(completed)s
          AND """ + _student_clause('cmc.userid') + """
        GROUP BY cs.id, cs.section
        ORDER BY cs.section
    """, prefix)
    params = {
        'courseid': course_id,
        'modname': modname,
        'roleid': role_id,
        'courselevel': CONTEXT_COURSE,
        'completed': tuple(ReportFilter.COMPLETED_STATES),
    }
    rows = _fetch_all(conn, query, params)
    return {int(row['section_id']): int(row['completioncount']) for row in rows}

# --- Logs ---

def get_instance_view_counts(conn, prefix: str, course_id: int, modname: str, role_id: int) -> Dict[int, List[int]]:
    """
    Per-user 'viewed' event counts for every instance of one module type.

    Returns:
        cmid -> one count per student with at least one view.
    """
    query = _compose("""
        SELECT l.contextinstanceid AS cmid, l.userid, COUNT(*) AS viewcount
        FROM {logstore_standard_log} l
        JOIN {course_modules} cm ON cm.id = l.contextinstanceid
        JOIN {modules} m ON m.id = cm.module
        WHERE l.courseid = %(courseid)s
          AND l.contextlevel = %(modulelevel)s
          AND l.action = 'viewed'
          AND l.component = %(component)s
          AND m.name = %(modname)s
          AND """ + _student_clause('l.userid') + """
        GROUP BY l.contextinstanceid, l.userid
        ORDER BY l.contextinstanceid, l.userid
    """, prefix, modname)
    params = {
        'courseid': course_id,
        'modname': modname,
        'component': f"mod_{modname}",
        'roleid': role_id,
        'courselevel': CONTEXT_COURSE,
        'modulelevel': CONTEXT_MODULE,
    }
    counts: Dict[int, List[int]] = {}
    for row in _fetch_all(conn, query, params):
        counts.setdefault(int(row['cmid']), []).append(int(row['viewcount']))
    return counts

def get_post_module_types(conn, prefix: str, course_id: int, role_id: int, actions: Sequence[str]) -> List[str]:
    """Module types where students logged at least one post action."""
    query = _compose("""
        SELECT DISTINCT m.name
        FROM {logstore_standard_log} l
        JOIN {course_modules} cm ON l.contextinstanceid = cm.id
        JOIN {modules} m ON cm.module = m.id
        WHERE l.courseid = %(courseid)s
          AND l.contextlevel = %(modulelevel)s
          AND l.action IN %(actions)s
          AND """ + _student_clause('l.userid') + """
        ORDER BY m.name
    """, prefix)
    params = {
        'courseid': course_id,
        'roleid': role_id,
        'actions': tuple(actions),
        'courselevel': CONTEXT_COURSE,
        'modulelevel': CONTEXT_MODULE,
    }
    return [row['name'] for row in _fetch_all(conn, query, params)]

def get_module_post_counts(conn, prefix: str, course_id: int, modname: str, role_id: int, actions: Sequence[str]) -> List[Dict[str, Any]]:
    """Post events by students per instance of one module type."""
    query = _compose("""
        SELECT cm.id AS cmid, mi.name AS modulename,
               cs.name AS sectionname, cs.section AS sectionnumber,
               COUNT(*) AS post_count
        FROM {logstore_standard_log} l
        JOIN {course_modules} cm ON cm.id = l.contextinstanceid
        JOIN {modules} m ON m.id = cm.module
        JOIN {instance_table} mi ON mi.id = cm.instance
        LEFT JOIN {course_sections} cs ON cm.section = cs.id
        WHERE l.courseid = %(courseid)s
          AND l.contextlevel = %(modulelevel)s
          AND l.action IN %(actions)s
          AND m.name = %(modname)s
          AND """ + _student_clause('l.userid') + """
        GROUP BY cm.id, mi.name, cs.name, cs.section
        ORDER BY cs.section, cm.id
    """, prefix, modname)
    params = {
        'courseid': course_id,
        'modname': modname,
        'roleid': role_id,
        'actions': tuple(actions),
        'courselevel': CONTEXT_COURSE,
        'modulelevel': CONTEXT_MODULE,
    }
    return _fetch_all(conn, query, params)
