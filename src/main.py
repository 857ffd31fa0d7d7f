import argparse
import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Iterable, List, Optional

# --- Path Configuration ---
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

# --- Internal Imports ---
from api.services import TABS, TAB_TITLES, process_course_report, validate_tabs
from utils.config_loader import get_config_path, get_report_settings, load_config
from utils.report_writer import format_table, report_to_tables, write_tables_csv

# --- Global Settings ---
MAX_WORKERS = 4

def parse_course_ids(text: str) -> List[int]:
    """Parses '12, 31 7' into [12, 31, 7]."""
    parts = [p for p in text.replace(",", " ").split() if p]
    if not parts:
        raise ValueError("Enter at least one course id.")
    ids = []
    for part in parts:
        if not part.isdigit() or int(part) <= 0:
            raise ValueError(f"Invalid course id: {part!r}")
        ids.append(int(part))
    return ids

# --- WORKER: Process individual course ---
def execute_course_task(course_id: int, config, tabs: tuple) -> Dict[str, Any]:
    """Builds the report of a single course; failures are returned, not raised."""
    try:
        report = process_course_report(config, course_id, tabs)
        if report is None:
            return {"status": "skipped", "id": course_id, "reason": "Invalid course id"}
        if report["status"] == "completion_disabled":
            return {"status": "skipped", "id": course_id, "reason": report["message"]}
        return {"status": "success", "id": course_id, "data": report}
    except Exception as e:
        return {"status": "error", "id": course_id, "error": str(e)}

def describe_report(report: Dict[str, Any]) -> List[str]:
    """Text lines shown in the console for one finished report."""
    lines = [
        f"=== {report['course_name']} (ID: {report['course_id']}) ===",
        f"This course has {report.get('student_count', 0)} students.",
    ]
    tabs = report.get("tabs", {})
    if tabs.get("completiontable", {}).get("status") == "no_students":
        lines.append("There are no students enrolled in this course.")
    for tab in ("views", "posts"):
        for table in tabs.get(tab, {}).get("tables", []):
            if table["status"] == "error":
                lines.append(f" [!] {table['title']}: {table['error']}")
            elif table["status"] == "empty":
                lines.append(f" {table['message']}")
    for title, headers, rows in report_to_tables(report):
        lines.append("")
        lines.append(format_table(title, headers, rows))
    return lines

def log_tag(message: str) -> str:
    """Console color tag of one pipeline log line, keyed on its status marker."""
    if "% OK |" in message:
        return "ok"
    if "% ERR |" in message or " [!] " in message or message.startswith("ERROR:"):
        return "error"
    if "% SKIP |" in message:
        return "warn"
    return "info"

# --- MAIN PIPELINE ---
def run_report(
    course_ids: Iterable[int],
    tabs: Optional[Iterable[str]] = None,
    export_dir: Optional[str] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    log_callback: Optional[Callable[[str], None]] = None,
    stop_event: Optional[threading.Event] = None
    ) -> List[Dict[str, Any]]:
    """Builds the reports of several courses concurrently."""
    def log(msg: str):
        if log_callback:
            log_callback(msg)
        else:
            print(msg)

    results: List[Dict[str, Any]] = []
    log("--- Course Analysis: Starting report ---")
    if stop_event and stop_event.is_set(): return results

    config = load_config()
    settings = get_report_settings(config)
    tabs = validate_tabs(tabs)
    course_ids = list(dict.fromkeys(int(c) for c in course_ids))

    total_courses = len(course_ids)
    if total_courses == 0:
        log(" [!] No course ids given.")
        if progress_callback: progress_callback(1, 1)
        return results

    if export_dir is None and settings['export_dir']:
        export_dir = get_config_path(settings['export_dir'])

    log(f" Building {', '.join(TAB_TITLES[t] for t in tabs)} for {total_courses} course(s)...")

    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
        futures = {executor.submit(execute_course_task, c, config, tabs): c for c in course_ids}

        for i, future in enumerate(as_completed(futures), 1):
            if stop_event and stop_event.is_set():
                log(" Process stopped by the user.")
                executor.shutdown(wait=False, cancel_futures=True)
                break

            result = future.result()
            results.append(result)
            progress_pct = (i / total_courses) * 100
            course_id = result["id"]

            if result["status"] == "success":
                for line in describe_report(result["data"]):
                    log(line)
                if export_dir:
                    written = write_tables_csv(course_id, report_to_tables(result["data"]), export_dir)
                    log(f" {len(written)} CSV file(s) written to {export_dir}")
                log(f" {progress_pct:.1f}% OK | ID: {course_id}")
            elif result["status"] == "skipped":
                log(f" {progress_pct:.1f}% SKIP | ID: {course_id} | {result.get('reason')}")
            else:
                log(f" {progress_pct:.1f}% ERR | ID: {course_id} | {result.get('error')}")

            if progress_callback:
                progress_callback(i, total_courses)

    if stop_event and stop_event.is_set():
        log("--- Report CANCELLED ---")
    else:
        log("--- Report finished ---")
    return results

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Moodle course learners behaviour report")
    parser.add_argument("course_ids", nargs="+", type=int, help="Moodle course id(s)")
    parser.add_argument("--tab", action="append", choices=TABS, dest="tabs",
                        help="Report tab to build (repeatable, default: all)")
    parser.add_argument("--export-dir", help="Folder for CSV exports (default: [REPORT] export_dir)")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")
    return parser.parse_args(argv)

if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    run_report(args.course_ids, tabs=args.tabs, export_dir=args.export_dir)
