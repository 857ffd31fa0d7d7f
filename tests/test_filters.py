from unittest import TestCase

from utils.filters import ReportFilter


class ReportFilterTest(TestCase):
    """Test cases for the report inclusion rules."""

    def test_label_is_not_reportable(self):
        self.assertFalse(ReportFilter.is_reportable_module("label"))
        self.assertTrue(ReportFilter.is_reportable_module("quiz"))

    def test_custom_exclusions_replace_defaults(self):
        self.assertTrue(ReportFilter.is_reportable_module("label", excluded={"url"}))
        self.assertFalse(ReportFilter.is_reportable_module("url", excluded={"url"}))

    def test_module_name_validation(self):
        self.assertEqual(ReportFilter.validate_module_name("h5pactivity"), "h5pactivity")
        for bad in ("Quiz", "quiz; DROP TABLE mdl_user", "", "1forum", None):
            with self.subTest(name=bad):
                with self.assertRaises(ValueError):
                    ReportFilter.validate_module_name(bad)

    def test_module_display_names(self):
        self.assertEqual(ReportFilter.module_display_name("quiz"), "Quiz")
        self.assertEqual(ReportFilter.module_display_name("quiz", plural=True), "Quizzes")
        self.assertEqual(ReportFilter.module_display_name("customcert"), "Customcert")

    def test_section_display_names(self):
        self.assertEqual(ReportFilter.section_display_name({"name": "Week 1", "section": 1}), "Week 1")
        self.assertEqual(ReportFilter.section_display_name({"name": None, "section": 0}), "General")
        self.assertEqual(ReportFilter.section_display_name({"name": "  ", "section": 3}), "Topic 3")

    def test_hidden_sections(self):
        self.assertTrue(ReportFilter.is_visible_section({"visible": 1}))
        self.assertFalse(ReportFilter.is_visible_section({"visible": 0}))
