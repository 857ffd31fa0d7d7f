import logging
from collections import Counter
from typing import Any, Dict, List

from utils.filters import ReportFilter
from api.reports.intervals import bucket_labels, classify_counts, design_buckets

logger = logging.getLogger(__name__)

FIXED_HEADERS = ["Module name", "Course section", "Total number of views"]


def build_views_table(
    modname: str,
    instances: List[Dict[str, Any]],
    view_counts: Dict[int, List[int]],
    student_count: int
) -> Dict[str, Any]:
    """
    Views table of one module type.

    The buckets are designed once from the counts of every instance so all
    rows share the same columns; each instance is then classified on its own.

    Args:
        modname: Module type (e.g. 'quiz').
        instances: Rows with cmid, modulename, sectionname, sectionnumber.
        view_counts: cmid -> one view count per student who viewed it.
        student_count: Students in the course.
    """
    plural = ReportFilter.module_display_name(modname, plural=True)
    table = {
        "module_type": modname,
        "title": f"{plural} views",
        "description": f"Amounts of students who viewed these {plural.lower()} a certain amount of times.",
    }

    try:
        frequencies = Counter()
        for instance in instances:
            frequencies.update(view_counts.get(int(instance["cmid"]), []))
        buckets = design_buckets(frequencies)
        labels = bucket_labels(buckets)

        rows = []
        for instance in instances:
            counts = view_counts.get(int(instance["cmid"]), [])
            rows.append({
                "cmid": int(instance["cmid"]),
                "module_name": instance.get("modulename") or "",
                "section_name": ReportFilter.section_display_name({
                    "name": instance.get("sectionname"),
                    "section": instance.get("sectionnumber"),
                }),
                "total_views": sum(counts),
                "histogram": classify_counts(counts, buckets, student_count),
            })
    except ValueError as e:
        logger.warning("Views table for '%s' skipped: %s", modname, e)
        table.update({"status": "error", "error": str(e), "buckets": (), "headers": FIXED_HEADERS, "rows": []})
        return table

    table.update({
        "status": "success",
        "buckets": buckets,
        "headers": FIXED_HEADERS + labels,
        "rows": rows,
    })
    return table
