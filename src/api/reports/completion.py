from typing import Any, Dict, List

from utils.filters import ReportFilter

CHART_TITLE = "Course activity completion bar chart"
FIRST_COLUMN = "Course Section / Module Type"


def completion_percentage(count: int, student_count: int) -> int:
    """Share of students, in whole percent rounded half up."""
    if student_count <= 0:
        return 0
    return int(count * 100 / student_count + 0.5)


def build_completion_table(
    sections: List[Dict[str, Any]],
    module_types: List[str],
    completion_rows: Dict[str, List[Dict[str, Any]]],
    student_count: int
) -> Dict[str, Any]:
    """
    Completion table: one row per visible section, one column per
    completion-enabled module type.

    Each cell lists the instances of that type placed in that section with
    their completion count and percentage of the course's students.
    `completion_rows` maps module type -> rows with section_id, name and
    completioncount.
    """
    headers = [FIRST_COLUMN] + [ReportFilter.module_display_name(t) for t in module_types]

    if student_count == 0:
        return {"status": "no_students", "headers": headers, "rows": []}

    # section id -> module type -> cell entries
    cells: Dict[int, Dict[str, List[Dict[str, Any]]]] = {}
    for modname in module_types:
        for row in completion_rows.get(modname, []):
            count = int(row["completioncount"])
            cells.setdefault(int(row["section_id"]), {}).setdefault(modname, []).append({
                "name": row["name"],
                "count": count,
                "percentage": completion_percentage(count, student_count),
            })

    rows = []
    for section in sections:
        if not ReportFilter.is_visible_section(section):
            continue
        section_cells = cells.get(int(section["id"]), {})
        rows.append({
            "section": ReportFilter.section_display_name(section),
            "cells": {modname: section_cells.get(modname, []) for modname in module_types},
        })

    return {"status": "success", "headers": headers, "rows": rows}


def build_completion_chart(
    sections: List[Dict[str, Any]],
    module_types: List[str],
    section_counts: Dict[str, Dict[int, int]]
) -> Dict[str, Any]:
    """
    Bar chart data: section names on the X axis, one series per module type.
    `section_counts` maps module type -> section id -> completions.
    """
    labels = [ReportFilter.section_display_name(s) for s in sections]
    series = []
    for modname in module_types:
        counts = section_counts.get(modname, {})
        series.append({
            "name": ReportFilter.module_display_name(modname),
            "values": [counts.get(int(s["id"]), 0) for s in sections],
        })

    return {"title": CHART_TITLE, "labels": labels, "series": series}
