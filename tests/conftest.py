import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from udise_dashboard import queries
from udise_dashboard.api_client import ApiError, NotFoundError
from udise_dashboard.models import (
    DistributionData,
    DistributionItem,
    FilterOptions,
    PaginationInfo,
    School,
    SchoolPage,
)


@pytest.fixture(autouse=True)
def _clear_query_caches():
    # Cached fetchers ignore the client argument, so every test starts cold
    queries.invalidate_all()
    yield
    queries.invalidate_all()


def make_school(school_id: str = "s1", **overrides) -> School:
    data = {
        "_id": school_id,
        "udise_code": f"UD{school_id}",
        "school_name": f"School {school_id}",
        "state": "Bihar",
        "district": "Patna",
        "block": "Danapur",
        "village": "Khagaul",
        "management": "Government",
        "location": "Rural",
        "school_type": "Co-Ed",
        "total_students": 120,
        "total_teachers": 6,
    }
    data.update(overrides)
    return School.from_dict(data)


def make_response(status: int, payload: Any = None, reason: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response._content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


class FakeHttp:
    """Stands in for requests.Session; replays queued responses and records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({
            "method": method,
            "url": url,
            "params": params,
            "json": json,
            "headers": headers or {},
            "timeout": timeout,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClient:
    """In-memory API used by the query and form tests; counts network calls."""

    def __init__(self, schools: Optional[List[School]] = None):
        self.schools = list(schools or [])
        self.calls: Dict[str, int] = {}
        self.fail_with: Dict[str, ApiError] = {}

    def _hit(self, name: str):
        self.calls[name] = self.calls.get(name, 0) + 1
        error = self.fail_with.get(name)
        if error is not None:
            raise error

    def _matching(self, query):
        wanted = query.location_params()
        rows = [
            s for s in self.schools
            if all(getattr(s, level) == value for level, value in wanted.items())
        ]
        if query.search:
            needle = query.search.lower()
            rows = [s for s in rows if needle in s.school_name.lower() or needle in s.udise_code.lower()]
        return rows

    def list_schools(self, query):
        self._hit("list_schools")
        rows = self._matching(query)
        start = (query.page - 1) * query.limit
        return SchoolPage(
            schools=rows[start:start + query.limit],
            pagination=PaginationInfo.compute(len(rows), query.page, query.limit),
        )

    def get_distribution(self, location):
        self._hit("get_distribution")
        counts: Dict[str, int] = {}
        for school in self.schools:
            counts[school.management] = counts.get(school.management, 0) + 1
        return DistributionData(
            management_type=[DistributionItem(label, count) for label, count in counts.items()]
        )

    def get_filter_options(self, location):
        self._hit("get_filter_options")

        def distinct(level, **parents):
            return sorted({
                getattr(s, level) for s in self.schools
                if all(getattr(s, k) == v for k, v in parents.items() if v is not None)
            })

        return FilterOptions(
            states=distinct("state"),
            districts=distinct("district", state=location.state),
            blocks=distinct("block", state=location.state, district=location.district),
            villages=distinct("village", state=location.state, district=location.district,
                              block=location.block),
        )

    def create_school(self, data):
        self._hit("create_school")
        school = School.from_dict(dict(data, _id=f"new{len(self.schools) + 1}"))
        self.schools.append(school)
        return school

    def update_school(self, school_id, data):
        self._hit("update_school")
        for i, school in enumerate(self.schools):
            if school.id == school_id:
                self.schools[i] = School.from_dict(dict(data, _id=school_id))
                return self.schools[i]
        raise NotFoundError("School not found", 404)

    def delete_school(self, school_id):
        self._hit("delete_school")
        for school in self.schools:
            if school.id == school_id:
                self.schools.remove(school)
                return school
        raise NotFoundError("School not found", 404)


@pytest.fixture
def fake_client():
    return FakeClient([
        make_school("s1"),
        make_school("s2", village="Shivala"),
        make_school("s3", block="Phulwari", village="Gonpura", management="Private Unaided"),
        make_school("s4", district="Gaya", block="Bodh Gaya", village="Bakraur"),
        make_school("s5", state="Kerala", district="Ernakulam", block="Kochi", village="Edappally"),
    ])
