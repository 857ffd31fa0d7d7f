import re
from typing import Any, Dict, Iterable

class ReportFilter:
    """
    Centralizes the business rules deciding what appears in the course report.
    Layers:
    1. Modules (which module types get a table, safe table names)
    2. Sections (visibility and display names)
    3. Log events (which actions count as posts, which states as completed)
    """

    # --- 1. Module Config ---
    # Text and media areas have no views or posts of their own
    EXCLUDED_MODULES = {"label"}
    MODULE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")

    MODULE_NAMES = {
        "assign": ("Assignment", "Assignments"),
        "book": ("Book", "Books"),
        "chat": ("Chat", "Chats"),
        "choice": ("Choice", "Choices"),
        "data": ("Database", "Databases"),
        "feedback": ("Feedback", "Feedback"),
        "folder": ("Folder", "Folders"),
        "forum": ("Forum", "Forums"),
        "glossary": ("Glossary", "Glossaries"),
        "h5pactivity": ("H5P", "H5P"),
        "imscp": ("IMS content package", "IMS content packages"),
        "label": ("Text and media area", "Text and media areas"),
        "lesson": ("Lesson", "Lessons"),
        "lti": ("External tool", "External tools"),
        "page": ("Page", "Pages"),
        "quiz": ("Quiz", "Quizzes"),
        "resource": ("File", "Files"),
        "scorm": ("SCORM package", "SCORM packages"),
        "survey": ("Survey", "Surveys"),
        "url": ("URL", "URLs"),
        "wiki": ("Wiki", "Wikis"),
        "workshop": ("Workshop", "Workshops"),
    }

    # --- 2. Section Config ---
    GENERAL_SECTION_NAME = "General"
    DEFAULT_SECTION_PREFIX = "Topic"

    # --- 3. Log Config ---
    POST_ACTIONS = ("created", "submitted", "updated", "uploaded")
    # COMPLETION_COMPLETE and COMPLETION_COMPLETE_PASS
    COMPLETED_STATES = (1, 2)

    @staticmethod
    def validate_module_name(modname: str) -> str:
        """
        Module names are interpolated into table names, so they must be plain
        lowercase identifiers.
        """
        if not isinstance(modname, str) or not ReportFilter.MODULE_NAME_PATTERN.match(modname):
            raise ValueError(f"Invalid module name: {modname!r}")
        return modname

    @staticmethod
    def is_reportable_module(modname: str, excluded: Iterable[str] = None) -> bool:
        """Layer 1: module types that get their own views/posts table."""
        excluded = ReportFilter.EXCLUDED_MODULES if excluded is None else set(excluded)
        return modname not in excluded

    @staticmethod
    def module_display_name(modname: str, plural: bool = False) -> str:
        names = ReportFilter.MODULE_NAMES.get(modname)
        if names:
            return names[1] if plural else names[0]
        return modname.capitalize()

    @staticmethod
    def is_visible_section(section: Dict[str, Any]) -> bool:
        """Layer 2: hidden sections are left out of the completion table."""
        return bool(section.get("visible"))

    @staticmethod
    def section_display_name(section: Dict[str, Any]) -> str:
        name = (section.get("name") or "").strip()
        if name:
            return name
        number = section.get("section") or 0
        if number == 0:
            return ReportFilter.GENERAL_SECTION_NAME
        return f"{ReportFilter.DEFAULT_SECTION_PREFIX} {number}"
