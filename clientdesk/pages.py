from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from jinja2 import Environment

from .callback import CallbackOutcome
from .clients import projects as projects_api
from .clients.base import ApiClient
from .config import DEFAULT_LANDING_URL, METRICS_WAIT, OAUTH_RESUME_DELAY
from .connection import ChannelConnectionController
from .deps import get_api, get_guard, get_owner
from .exceptions import ApiError
from .metrics import channel_metrics, project_metrics
from .schemas import ProjectStatus

router = APIRouter()

env = Environment(autoescape=True)

LAYOUT = env.from_string("""<!doctype html>
<html><head><meta charset="utf-8"><title>{{ title }}</title>
{% if refresh_url %}<meta http-equiv="refresh" content="{{ delay }};url={{ refresh_url }}">{% endif %}
</head><body>
{% if error %}<div class="error"><p>{{ error }}</p><a href="{{ retry_url }}">Try Again</a></div>{% endif %}
{{ body|safe }}
</body></html>""")

DASHBOARD = env.from_string("""
<h1>Projects</h1>
{% for section, cards in sections %}
<h2>{{ section }} ({{ cards|length }})</h2>
{% if not cards %}<p>No {{ section|lower }} projects.</p>{% endif %}
<ul>
{% for card in cards %}
<li><a href="/projects/{{ card.project.id }}">{{ card.project.avatar_letter }} {{ card.project.name }}</a>
 ({{ card.project.project_type.value }})
 {% if card.loading %}Loading metrics...{% else %}
 Unread: {{ card.metrics.unread_messages_count }},
 Connected Channels: {{ card.metrics.connected_channels_count }},
 Documents: {{ card.metrics.documents_count }}{% endif %}</li>
{% endfor %}
</ul>
{% endfor %}
""")

PROJECT = env.from_string("""
<h1>{{ project.name }}</h1>
{% if project.description %}<p>{{ project.description }}</p>{% endif %}
<h2>Connected Channels</h2>
<form method="post" action="/projects/{{ project.id }}/channels"><button>Add Channel</button></form>
{% if not channels %}<p>No channels connected</p>{% endif %}
<ul>
{% for channel in channels %}
<li>{{ channel.channel_type.value }}: {{ "Connected" if channel.is_connected else "Disconnected" }}
 {% if metrics.is_loading(channel.id) %}Loading metrics...{% else %}
 Contacts: {{ metrics.get(channel.id).contacts_count }}, Messages: {{ metrics.get(channel.id).messages_count }}{% endif %}
 {% if not channel.is_connected %}
 <form method="post" action="/projects/{{ project.id }}/channels/{{ channel.id }}/connect"><button>Connect Channel</button></form>
 {% endif %}
</li>
{% endfor %}
</ul>
""")

CALLBACK = env.from_string("""
{% if outcome.ok %}
<h2>Success!</h2>
<p>{{ outcome.message }}</p>
<a href="/oauth/resume">Return to Project</a>
<a href="{{ landing }}">Go to Dashboard</a>
<p>Auto-redirecting in {{ delay }} seconds...</p>
{% else %}
<h2>Connection Failed</h2>
<p>{{ outcome.message }}</p>
<a href="/oauth/resume">Back to Project</a>
<a href="{{ landing }}">Return to Dashboard</a>
{% endif %}
""")


def render(title: str, body: str, error: str | None = None, retry_url: str = "",
           refresh_url: str | None = None, status_code: int = 200) -> HTMLResponse:
    html = LAYOUT.render(
        title=title, body=body, error=error, retry_url=retry_url,
        refresh_url=refresh_url, delay=OAUTH_RESUME_DELAY,
    )
    return HTMLResponse(html, status_code=status_code)


def callback_page(outcome: CallbackOutcome) -> HTMLResponse:
    body = CALLBACK.render(outcome=outcome, landing=DEFAULT_LANDING_URL, delay=OAUTH_RESUME_DELAY)
    return render(
        "Gmail connection", body,
        refresh_url="/oauth/resume" if outcome.ok else None,
        status_code=200 if outcome.ok else 400,
    )


@router.get("/")
def index():
    return RedirectResponse(DEFAULT_LANDING_URL)


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(request: Request, api: ApiClient = Depends(get_api)):
    try:
        projects = await projects_api.list_projects(api)
    except ApiError as e:
        return render("Dashboard", "", error=e.message, retry_url=str(request.url), status_code=e.status)
    agg = project_metrics(api)
    await agg.refresh([p.id for p in projects], timeout=METRICS_WAIT)
    sections = []
    for label, status in (("Active", ProjectStatus.ACTIVE), ("Archived", ProjectStatus.ARCHIVED)):
        cards = [{"project": p, "metrics": agg.get(p.id), "loading": agg.is_loading(p.id)} for p in projects if p.status == status]
        sections.append((label, cards))
    return render("Dashboard", DASHBOARD.render(sections=sections))


@router.get("/projects/{project_id}", response_class=HTMLResponse)
async def project_page(project_id: str, request: Request, api: ApiClient = Depends(get_api)):
    controller = ChannelConnectionController(
        api, project_id, request.session, guard=get_guard(request), owner=get_owner(request),
    )
    try:
        project = await projects_api.get_project(api, project_id)
        await controller.refresh()
    except ApiError as e:
        return render("Project", "", error=controller.error or e.message, retry_url=str(request.url), status_code=e.status)
    agg = channel_metrics(api)
    await agg.refresh([c.id for c in controller.channels], timeout=METRICS_WAIT)
    body = PROJECT.render(project=project, channels=controller.channels, metrics=agg)
    return render(project.name, body)
