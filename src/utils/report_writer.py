import csv
import re
from pathlib import Path
from typing import Any, Dict, List, Tuple

Table = Tuple[str, List[str], List[List[Any]]]

def _completion_cell(entries: List[Dict[str, Any]]) -> str:
    return "; ".join(f"{e['name']}: {e['count']} ({e['percentage']}%)" for e in entries)

def report_to_tables(report: Dict[str, Any]) -> List[Table]:
    """
    Flattens a course report into (title, headers, rows) tables, one per
    table or chart of every built tab.
    """
    tables: List[Table] = []
    tabs = report.get("tabs", {})

    completion = tabs.get("completiontable")
    if completion and completion["status"] == "success":
        module_types = list(completion["rows"][0]["cells"]) if completion["rows"] else []
        rows = [
            [row["section"]] + [_completion_cell(row["cells"][m]) for m in module_types]
            for row in completion["rows"]
        ]
        tables.append(("Activity completion table", completion["headers"], rows))

    chart = tabs.get("completiongraph")
    if chart:
        headers = ["Module type"] + chart["labels"]
        rows = [[s["name"]] + s["values"] for s in chart["series"]]
        tables.append((chart["title"], headers, rows))

    for table in tabs.get("views", {}).get("tables", []):
        if table["status"] != "success":
            continue
        labels = [b.label for b in table["buckets"]]
        rows = [
            [r["module_name"], r["section_name"], r["total_views"]] + [r["histogram"].get(l, 0) for l in labels]
            for r in table["rows"]
        ]
        tables.append((table["title"], table["headers"], rows))

    for table in tabs.get("posts", {}).get("tables", []):
        if table["status"] != "success":
            continue
        rows = [[r["module_name"], r["section_name"], r["post_count"]] for r in table["rows"]]
        tables.append((table["title"], table["headers"], rows))

    return tables

def format_table(title: str, headers: List[str], rows: List[List[Any]]) -> str:
    """Fixed-width text rendering used by the console and the GUI log."""
    cells = [[str(h) for h in headers]] + [[str(c) for c in row] for row in rows]
    widths = [max(len(r[i]) for r in cells if i < len(r)) for i in range(len(headers))]

    def line(values):
        return " | ".join(v.ljust(widths[i]) for i, v in enumerate(values))

    output = [title, line(cells[0]), "-+-".join("-" * w for w in widths)]
    output.extend(line(r) for r in cells[1:])
    return "\n".join(output)

def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")

def write_tables_csv(course_id: int, tables: List[Table], export_dir: Path) -> List[Path]:
    """
    Writes one CSV per table into export_dir.
    :return: Paths of the written files.
    """
    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for title, headers, rows in tables:
        path = export_dir / f"course_{course_id}_{_slug(title)}.csv"
        with path.open("w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(headers)
            writer.writerows(rows)
        written.append(path)
    return written
