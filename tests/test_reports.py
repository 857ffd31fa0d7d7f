from unittest import TestCase

from api.reports.completion import build_completion_chart, build_completion_table, completion_percentage
from api.reports.posts import build_posts_table
from api.reports.views import build_views_table


SECTIONS = [
    {"id": 10, "name": None, "section": 0, "visible": 1},
    {"id": 11, "name": "Week 1", "section": 1, "visible": 1},
    {"id": 12, "name": "", "section": 2, "visible": 0},
]


class CompletionTableTest(TestCase):
    """Test cases for the completion table tab."""

    def test_cells_per_section_and_type(self):
        rows = {
            "quiz": [
                {"cmid": 1, "section_id": 11, "name": "Quiz A", "completioncount": 3},
                {"cmid": 2, "section_id": 11, "name": "Quiz B", "completioncount": 0},
            ],
            "assign": [{"cmid": 3, "section_id": 10, "name": "Essay", "completioncount": 1}],
        }
        table = build_completion_table(SECTIONS, ["assign", "quiz"], rows, 8)

        self.assertEqual(table["status"], "success")
        self.assertEqual(table["headers"], ["Course Section / Module Type", "Assignment", "Quiz"])
        # Hidden section 12 is left out
        self.assertEqual([r["section"] for r in table["rows"]], ["General", "Week 1"])
        self.assertEqual(table["rows"][0]["cells"]["assign"], [{"name": "Essay", "count": 1, "percentage": 13}])
        self.assertEqual(table["rows"][0]["cells"]["quiz"], [])
        self.assertEqual(
            table["rows"][1]["cells"]["quiz"],
            [{"name": "Quiz A", "count": 3, "percentage": 38}, {"name": "Quiz B", "count": 0, "percentage": 0}],
        )

    def test_no_students(self):
        table = build_completion_table(SECTIONS, ["quiz"], {}, 0)
        self.assertEqual(table["status"], "no_students")
        self.assertEqual(table["rows"], [])

    def test_percentage_rounds_half_up(self):
        self.assertEqual(completion_percentage(1, 8), 13)
        self.assertEqual(completion_percentage(1, 40), 3)
        self.assertEqual(completion_percentage(2, 3), 67)
        self.assertEqual(completion_percentage(5, 0), 0)


class CompletionChartTest(TestCase):

    def test_series_aligned_to_sections(self):
        chart = build_completion_chart(SECTIONS, ["quiz", "forum"], {"quiz": {11: 4, 12: 1}})
        self.assertEqual(chart["labels"], ["General", "Week 1", "Topic 2"])
        self.assertEqual(chart["series"], [
            {"name": "Quiz", "values": [0, 4, 1]},
            {"name": "Forum", "values": [0, 0, 0]},
        ])
        self.assertEqual(chart["title"], "Course activity completion bar chart")


class ViewsTableTest(TestCase):
    """Test cases for the views tab of one module type."""

    INSTANCES = [
        {"cmid": 5, "modulename": "Intro quiz", "sectionname": None, "sectionnumber": 1},
        {"cmid": 6, "modulename": "Final quiz", "sectionname": "Exams", "sectionnumber": 2},
        {"cmid": 7, "modulename": "Unseen quiz", "sectionname": "Exams", "sectionnumber": 2},
    ]

    def test_shared_buckets_and_rows(self):
        view_counts = {5: [1, 2, 3], 6: [10]}
        table = build_views_table("quiz", self.INSTANCES, view_counts, 6)

        self.assertEqual(table["status"], "success")
        self.assertEqual(table["title"], "Quizzes views")
        self.assertEqual(table["headers"], [
            "Module name", "Course section", "Total number of views",
            "0 views", "1-4 views", "5-8 views", "9-10 views",
        ])
        first, second, third = table["rows"]
        self.assertEqual(first["section_name"], "Topic 1")
        self.assertEqual(first["total_views"], 6)
        self.assertEqual(first["histogram"], {"0 views": 3, "1-4 views": 3, "5-8 views": 0, "9-10 views": 0})
        self.assertEqual(second["total_views"], 10)
        self.assertEqual(second["histogram"], {"0 views": 5, "1-4 views": 0, "5-8 views": 0, "9-10 views": 1})
        self.assertEqual(third["total_views"], 0)
        self.assertEqual(third["histogram"]["0 views"], 6)

    def test_rows_sum_to_student_count(self):
        table = build_views_table("quiz", self.INSTANCES, {5: [1, 7, 30], 6: [2, 2]}, 12)
        for row in table["rows"]:
            self.assertEqual(sum(row["histogram"].values()), 12)

    def test_no_views_at_all(self):
        table = build_views_table("page", self.INSTANCES[:1], {}, 4)
        self.assertEqual(table["headers"][3:], ["0 views"])
        self.assertEqual(table["rows"][0]["histogram"], {"0 views": 4})

    def test_inconsistent_counts_mark_table_as_error(self):
        with self.assertLogs("api.reports.views", level="WARNING"):
            table = build_views_table("quiz", self.INSTANCES, {5: [1, 2, 3]}, 2)
        self.assertEqual(table["status"], "error")
        self.assertEqual(table["rows"], [])
        self.assertIn("More viewers", table["error"])


class PostsTableTest(TestCase):

    def test_rows(self):
        rows = [{"cmid": 9, "modulename": "News", "sectionname": None, "sectionnumber": 0, "post_count": 4}]
        table = build_posts_table("forum", rows)
        self.assertEqual(table["status"], "success")
        self.assertEqual(table["title"], "Forums posts")
        self.assertEqual(table["headers"], ["Module name", "Course section", "Total number of posts"])
        self.assertEqual(table["rows"], [{"cmid": 9, "module_name": "News", "section_name": "General", "post_count": 4}])

    def test_empty(self):
        table = build_posts_table("wiki", [])
        self.assertEqual(table["status"], "empty")
        self.assertEqual(table["message"], "No posts have been recorded for wiki.")
