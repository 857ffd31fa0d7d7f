import configparser
from unittest import TestCase, mock

from api import services


def make_config():
    config = configparser.ConfigParser()
    config["MOODLE"] = {"URL": "https://moodle.test", "TOKEN": "tok"}
    config["REPORT"] = {
        "student_role": "student",
        "table_prefix": "mdl_",
        "excluded_modules": "label",
        "post_actions": "created,submitted,updated,uploaded",
        "export_dir": "",
    }
    return config


COURSE = {"id": 3, "fullname": "Chemistry", "enablecompletion": 1}
SECTIONS = [{"id": 30, "name": "Intro", "section": 0, "visible": 1}]


class ProcessCourseReportTest(TestCase):
    """Test cases for the report orchestrator."""

    def setUp(self):
        return_values = {
            "get_role_id": 5,
            "count_role_users": 4,
            "get_course_sections": SECTIONS,
            "get_completion_module_types": ["quiz"],
            "get_instance_completion_counts": [
                {"cmid": 1, "section_id": 30, "name": "Quiz 1", "completioncount": 2},
            ],
            "get_section_completion_counts": {30: 2},
            "get_course_module_types": ["label", "quiz"],
            "get_module_instances": [
                {"cmid": 1, "instance": 1, "modulename": "Quiz 1", "sectionname": "Intro", "sectionnumber": 0},
            ],
            "get_instance_view_counts": {1: [1, 3]},
            "get_post_module_types": ["forum", "label"],
            "get_module_post_counts": [],
        }
        patcher = mock.patch.multiple(
            "utils.db",
            get_db_connection=mock.DEFAULT,
            **{name: mock.DEFAULT for name in return_values}
        )
        self.db = patcher.start()
        self.addCleanup(patcher.stop)
        for name, value in return_values.items():
            self.db[name].return_value = value

        course_patcher = mock.patch("api.services.get_course_info", return_value=dict(COURSE))
        self.get_course_info = course_patcher.start()
        self.addCleanup(course_patcher.stop)

    def test_all_tabs(self):
        report = services.process_course_report(make_config(), 3)

        self.assertEqual(report["status"], "success")
        self.assertEqual(report["course_name"], "Chemistry")
        self.assertEqual(report["student_count"], 4)
        self.assertEqual(list(report["tabs"]), list(services.TABS))

        table = report["tabs"]["completiontable"]
        self.assertEqual(table["rows"][0]["cells"]["quiz"], [{"name": "Quiz 1", "count": 2, "percentage": 50}])
        self.assertEqual(report["tabs"]["completiongraph"]["series"], [{"name": "Quiz", "values": [2]}])

        views = report["tabs"]["views"]["tables"]
        self.assertEqual([t["module_type"] for t in views], ["quiz"])
        self.assertEqual(views[0]["rows"][0]["histogram"], {"0 views": 2, "1-3 views": 2})
        self.assertEqual(views[0]["rows"][0]["total_views"], 4)

        posts = report["tabs"]["posts"]["tables"]
        self.assertEqual([t["module_type"] for t in posts], ["forum"])
        self.assertEqual(posts[0]["status"], "empty")

        self.db["get_db_connection"].return_value.close.assert_called_once()

    def test_selected_tab_only(self):
        report = services.process_course_report(make_config(), 3, ["posts"])
        self.assertEqual(list(report["tabs"]), ["posts"])
        self.db["get_instance_view_counts"].assert_not_called()

    def test_unknown_tab(self):
        with self.assertRaises(ValueError):
            services.process_course_report(make_config(), 3, ["grades"])

    def test_unknown_course(self):
        self.get_course_info.return_value = None
        self.assertIsNone(services.process_course_report(make_config(), 3))
        self.db["get_db_connection"].assert_not_called()

    def test_completion_disabled(self):
        self.get_course_info.return_value = dict(COURSE, enablecompletion=0)
        report = services.process_course_report(make_config(), 3)
        self.assertEqual(report["status"], "completion_disabled")
        self.assertEqual(report["tabs"], {})
        self.db["get_db_connection"].assert_not_called()

    def test_missing_role_closes_connection(self):
        self.db["get_role_id"].return_value = None
        with self.assertRaises(ValueError):
            services.process_course_report(make_config(), 3)
        self.db["get_db_connection"].return_value.close.assert_called_once()
