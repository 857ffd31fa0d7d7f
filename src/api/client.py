import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60

def call_moodle_api(moodle_config, function_name, **kwargs):
    """
    Generic wrapper for Moodle Web Services.
    Flattens list arguments into Moodle's indexed array parameters.

    Returns:
        The decoded JSON payload, or None on network, JSON or Moodle errors.
    """
    url = f"{moodle_config['URL'].rstrip('/')}/webservice/rest/server.php"

    params = {
        "wstoken": moodle_config['TOKEN'],
        "wsfunction": function_name,
        "moodlewsrestformat": "json"
    }

    for key, value in kwargs.items():
        if isinstance(value, list):
            # Moodle expects arrays like: courseids[0]=1, courseids[1]=2
            for i, item in enumerate(value):
                params[f"{key}[{i}]"] = item
        else:
            params[key] = value

    try:
        response = requests.post(url, data=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        data = response.json()

        if isinstance(data, dict) and 'exception' in data:
            logger.error("[API ERROR] %s: %s", function_name, data.get('message'))
            return None

        return data

    except requests.exceptions.RequestException as e:
        logger.error("[NETWORK ERROR] %s: %s", function_name, e)
        return None
    except json.JSONDecodeError:
        logger.error("[DATA ERROR] %s: Invalid JSON response", function_name)
        return None

def get_course_info(config, course_id: int) -> Optional[Dict[str, Any]]:
    """
    Fetches the course record (fullname, shortname, enablecompletion...).

    Returns:
        The course dict, or None if Moodle does not know the id.
    """
    result = call_moodle_api(
        config['MOODLE'], "core_course_get_courses_by_field", field="id", value=course_id
    )
    if not result:
        return None

    # The function wraps courses in {"courses": [...], "warnings": [...]}
    courses = result.get('courses', []) if isinstance(result, dict) else result
    for course in courses:
        if int(course.get('id', 0)) == int(course_id):
            return course
    return None
