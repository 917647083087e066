"""Shared fixtures: a scripted backend behind httpx.MockTransport."""

import json

import httpx
import pytest

from clientdesk.config import API_BASE_URL

API_PREFIX = httpx.URL(API_BASE_URL).path.rstrip("/")


class FakeBackend:
    """Routes ``(method, path)`` to canned responses and records every request.

    A route value may be a dict/list (200 JSON), a ``(status, body)`` tuple,
    or a callable taking the request and returning either of those.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, response):
        self.routes[(method, path)] = response
        return self

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and self.path(r) == path]

    @staticmethod
    def path(request):
        path = request.url.path
        if API_PREFIX and path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        return path

    def body(self, request):
        return json.loads(request.content) if request.content else None

    def __call__(self, request):
        self.requests.append(request)
        route = self.routes.get((request.method, self.path(request)))
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if callable(route):
            route = route(request)
        status, body = route if isinstance(route, tuple) else (200, route)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self):
        return httpx.MockTransport(self)


@pytest.fixture
def backend():
    return FakeBackend()


def project_json(pid="p1", name="Acme Ltd", status="active", **extra):
    data = {
        "id": pid,
        "name": name,
        "description": None,
        "project_type": "business",
        "project_context_detail": "",
        "status": status,
        "start_date": "2024-03-01T08:00:00Z",
        "avatar_letter": name[0],
        "user_id": "u1",
    }
    data.update(extra)
    return data


def channel_json(cid="c1", pid="p1", channel_type="gmail", is_connected=False):
    return {"id": cid, "project_id": pid, "channel_type": channel_type, "is_connected": is_connected}


def contact_json(cid="k1", channel_id="c1", account="bob@example.com", name=None):
    return {"id": cid, "channel_id": channel_id, "account_identifier": account, "name": name}


def message_json(mid, registered_at, subject="Hello", is_read=False, is_from_contact=True, **extra):
    data = {
        "id": mid,
        "contact_id": "k1",
        "sender_account": "bob@example.com",
        "subject": subject,
        "body_text": None,
        "body_html": None,
        "registered_at": registered_at,
        "is_read": is_read,
        "is_from_contact": is_from_contact,
    }
    data.update(extra)
    return data


def document_json(did, created_at, source="manual", name="report.pdf", file_type="application/pdf"):
    return {
        "id": did,
        "project_id": "p1",
        "safe_file_name": name.replace(" ", "_"),
        "original_file_name": name,
        "file_type": file_type,
        "file_size": 2048,
        "source": source,
        "created_at": created_at,
    }


def todo_json(items=None):
    return {
        "id": "t1",
        "project_id": "p1",
        "start_date": "2024-03-01T00:00:00Z",
        "end_date": "2024-03-07T23:59:59Z",
        "summary": "Week one",
        "items": items if items is not None else [
            {"id": "i1", "description": "File VAT return", "display_order": 1},
            {"id": "i2", "description": "Chase invoices", "display_order": 2, "is_completed": True},
        ],
    }


def recap_json(content="To be summarized"):
    summary = {
        "id": "s1",
        "project_id": "p1",
        "summary_type": "daily",
        "start_date": "2024-03-01T00:00:00Z",
        "end_date": "2024-03-01T23:59:59Z",
        "content": content,
    }
    return {"recent_activity": [summary], "past_2_weeks": []}


@pytest.fixture
def factories():
    """Payload builders shaped like backend responses."""

    class F:
        project = staticmethod(project_json)
        channel = staticmethod(channel_json)
        contact = staticmethod(contact_json)
        message = staticmethod(message_json)
        document = staticmethod(document_json)
        todo = staticmethod(todo_json)
        recap = staticmethod(recap_json)

    return F
