import logging
from typing import Any, Dict, Iterable, Optional

from api.client import get_course_info
from api.reports.completion import build_completion_chart, build_completion_table
from api.reports.posts import build_posts_table
from api.reports.views import build_views_table
from utils import db
from utils.config_loader import get_report_settings
from utils.filters import ReportFilter

logger = logging.getLogger(__name__)

# --- CONSTANTS ---
TABS = ("completiontable", "completiongraph", "views", "posts")
TAB_TITLES = {
    "completiontable": "Activity completion table",
    "completiongraph": "Activity completion chart",
    "views": "Modules views",
    "posts": "Modules posts",
}

def validate_tabs(tabs: Optional[Iterable[str]]) -> tuple:
    if not tabs:
        return TABS
    tabs = tuple(tabs)
    unknown = [t for t in tabs if t not in TABS]
    if unknown:
        raise ValueError(f"Unknown report tab(s): {', '.join(unknown)}. Expected one of: {', '.join(TABS)}")
    return tabs

def get_completion_table(conn, settings, course_id, role_id, student_count):
    prefix = settings['table_prefix']
    sections = db.get_course_sections(conn, prefix, course_id)
    module_types = db.get_completion_module_types(conn, prefix, course_id)
    rows = {
        modname: db.get_instance_completion_counts(conn, prefix, course_id, modname, role_id)
        for modname in module_types
    }
    return build_completion_table(sections, module_types, rows, student_count)

def get_completion_chart(conn, settings, course_id, role_id):
    prefix = settings['table_prefix']
    sections = db.get_course_sections(conn, prefix, course_id)
    module_types = db.get_completion_module_types(conn, prefix, course_id)
    counts = {
        modname: db.get_section_completion_counts(conn, prefix, course_id, modname, role_id)
        for modname in module_types
    }
    return build_completion_chart(sections, module_types, counts)

def get_views_report(conn, settings, course_id, role_id, student_count):
    """One views table per module type, 'label' and other excluded types skipped."""
    prefix = settings['table_prefix']
    tables = []
    for modname in db.get_course_module_types(conn, prefix, course_id):
        if not ReportFilter.is_reportable_module(modname, settings['excluded_modules']):
            continue
        instances = db.get_module_instances(conn, prefix, course_id, modname)
        view_counts = db.get_instance_view_counts(conn, prefix, course_id, modname, role_id)
        tables.append(build_views_table(modname, instances, view_counts, student_count))
    return {"tables": tables}

def get_posts_report(conn, settings, course_id, role_id):
    prefix = settings['table_prefix']
    actions = settings['post_actions']
    tables = []
    for modname in db.get_post_module_types(conn, prefix, course_id, role_id, actions):
        if not ReportFilter.is_reportable_module(modname, settings['excluded_modules']):
            continue
        rows = db.get_module_post_counts(conn, prefix, course_id, modname, role_id, actions)
        tables.append(build_posts_table(modname, rows))
    return {"tables": tables}

def process_course_report(config, course_id: int, tabs: Optional[Iterable[str]] = None) -> Optional[Dict[str, Any]]:
    """
    MAIN ORCHESTRATOR
    Fetches the course from the web service, then builds every requested tab
    from the Moodle database over a single connection.

    Returns:
        The report dict, or None when Moodle does not know the course.
    """
    tabs = validate_tabs(tabs)
    settings = get_report_settings(config)

    course = get_course_info(config, course_id)
    if not course:
        return None

    report = {
        "course_id": int(course_id),
        "course_name": course.get("fullname", ""),
        "tabs": {},
    }

    # Without activity completion the report has nothing to show
    if not course.get("enablecompletion"):
        report["status"] = "completion_disabled"
        report["message"] = "Activity completion is not enabled for this course"
        return report

    conn = db.get_db_connection()
    try:
        prefix = settings['table_prefix']
        role_id = db.get_role_id(conn, prefix, settings['student_role'])
        if role_id is None:
            raise ValueError(f"Role '{settings['student_role']}' does not exist")

        student_count = db.count_role_users(conn, prefix, course_id, role_id)
        report["student_count"] = student_count

        for tab in tabs:
            if tab == "completiontable":
                data = get_completion_table(conn, settings, course_id, role_id, student_count)
            elif tab == "completiongraph":
                data = get_completion_chart(conn, settings, course_id, role_id)
            elif tab == "views":
                data = get_views_report(conn, settings, course_id, role_id, student_count)
            else:
                data = get_posts_report(conn, settings, course_id, role_id)
            report["tabs"][tab] = data
            logger.info("Course %s: tab '%s' built", course_id, tab)
    finally:
        conn.close()

    report["status"] = "success"
    return report
