from unittest import TestCase, mock

import requests

from api import client

MOODLE = {"URL": "https://moodle.test/", "TOKEN": "tok"}


def response(payload):
    resp = mock.Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class CallMoodleApiTest(TestCase):
    """Test cases for the web service wrapper."""

    @mock.patch("api.client.requests.post")
    def test_list_arguments_are_flattened(self, post):
        post.return_value = response([])
        client.call_moodle_api(MOODLE, "core_course_get_courses", options=[4, 7])
        url = post.call_args[0][0]
        data = post.call_args[1]["data"]
        self.assertEqual(url, "https://moodle.test/webservice/rest/server.php")
        self.assertEqual(data["wsfunction"], "core_course_get_courses")
        self.assertEqual(data["options[0]"], 4)
        self.assertEqual(data["options[1]"], 7)

    @mock.patch("api.client.requests.post")
    def test_moodle_exception_returns_none(self, post):
        post.return_value = response({"exception": "invalid_token", "message": "Invalid token"})
        with self.assertLogs("api.client", level="ERROR"):
            self.assertIsNone(client.call_moodle_api(MOODLE, "core_course_get_courses"))

    @mock.patch("api.client.requests.post", side_effect=requests.exceptions.ConnectionError("down"))
    def test_network_error_returns_none(self, post):
        with self.assertLogs("api.client", level="ERROR"):
            self.assertIsNone(client.call_moodle_api(MOODLE, "core_course_get_courses"))


class GetCourseInfoTest(TestCase):

    @mock.patch("api.client.call_moodle_api")
    def test_course_found(self, call):
        call.return_value = {"courses": [{"id": 12, "fullname": "Biology", "enablecompletion": 1}], "warnings": []}
        course = client.get_course_info({"MOODLE": MOODLE}, 12)
        self.assertEqual(course["fullname"], "Biology")
        call.assert_called_once_with(MOODLE, "core_course_get_courses_by_field", field="id", value=12)

    @mock.patch("api.client.call_moodle_api")
    def test_unknown_course(self, call):
        call.return_value = {"courses": [], "warnings": []}
        self.assertIsNone(client.get_course_info({"MOODLE": MOODLE}, 99))
        call.return_value = None
        self.assertIsNone(client.get_course_info({"MOODLE": MOODLE}, 99))
