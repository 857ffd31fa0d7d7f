from typing import Any, Dict, List

from utils.filters import ReportFilter

HEADERS = ["Module name", "Course section", "Total number of posts"]


def build_posts_table(modname: str, post_rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Posts table of one module type: one row per instance with the number of
    created/submitted/updated/uploaded events logged by students.
    """
    plural = ReportFilter.module_display_name(modname, plural=True)
    table = {
        "module_type": modname,
        "title": f"{plural} posts",
        "description": f"Amounts of students who have posted in these {plural.lower()}.",
        "headers": HEADERS,
    }

    if not post_rows:
        table.update({
            "status": "empty",
            "message": f"No posts have been recorded for {modname}.",
            "rows": [],
        })
        return table

    table["status"] = "success"
    table["rows"] = [
        {
            "cmid": int(row["cmid"]),
            "module_name": row.get("modulename") or "",
            "section_name": ReportFilter.section_display_name({
                "name": row.get("sectionname"),
                "section": row.get("sectionnumber"),
            }),
            "post_count": int(row["post_count"]),
        }
        for row in post_rows
    ]
    return table
