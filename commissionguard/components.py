"""
Presentation components.

Each component is a pure function of board data that returns an HTML
fragment. User actions are expressed as ``data-action`` attributes which the
page script turns into WebSocket messages.
"""
from datetime import datetime
from typing import Iterable, Optional

import jinja2
from markupsafe import Markup

from commissionguard.schemas.ticket import Ticket, TicketStats, TicketStatus, ViewFilter

BADGE_COLORS = {
    TicketStatus.OPEN: "bg-yellow-100 text-yellow-800",
    TicketStatus.IN_PROGRESS: "bg-blue-100 text-blue-800",
    TicketStatus.RESOLVED: "bg-green-100 text-green-800",
}
DEFAULT_BADGE_COLOR = "bg-gray-100 text-gray-800"

TEMPLATES = {
    "status_badge": """<span class="px-3 py-1 text-xs font-semibold rounded-full {{ color }}">{{ status }}</span>""",

    "ticket_card": """
<div class="bg-white p-6 rounded-xl shadow-lg border-t-4 border-indigo-500 flex flex-col space-y-4" data-ticket-id="{{ ticket.id }}">
    <div class="flex justify-between items-start">
        <h3 class="text-xl font-bold text-gray-800 truncate pr-4">{{ ticket.title }}</h3>
        {{ badge }}
    </div>
    <p class="text-sm text-gray-600 flex-grow leading-relaxed">{{ ticket.description }}</p>
    <div class="text-xs text-gray-500 space-y-1 pt-2 border-t border-gray-100">
        <div><span class="font-medium text-gray-700">Owner ID:</span> <code class="bg-gray-100 px-1 rounded">{{ ticket.owner_id }}</code></div>
        <div><span class="font-medium text-gray-700">Created:</span> <span>{{ created }}</span></div>
    </div>
    <div class="flex justify-between items-center pt-3">
        <select data-action="change_status" data-ticket-id="{{ ticket.id }}" class="p-2 rounded-lg border bg-white">
            {% for option in statuses %}
            <option value="{{ option }}"{% if option == ticket.status.value %} selected{% endif %}>{{ option }}</option>
            {% endfor %}
        </select>
        {% if is_owner %}
        <button data-action="request_delete" data-ticket-id="{{ ticket.id }}" class="p-2 text-red-600 hover:bg-red-50 rounded-full" title="Delete Ticket">Delete</button>
        {% endif %}
    </div>
</div>
""",

    "ticket_list": """
<div class="grid grid-cols-1 md:grid-cols-2 lg:grid-cols-3 gap-6">
{% for card in cards %}{{ card }}{% else %}
    <div class="lg:col-span-3 bg-gray-100 p-6 rounded-xl text-center text-gray-500 shadow-inner">No {{ scope }} tickets found.</div>
{% endfor %}
</div>
""",

    "stats_dashboard": """
<div class="space-y-8">
    <h2 class="text-3xl font-extrabold text-gray-900">Ticket Metrics Overview</h2>
    <div class="grid grid-cols-1 sm:grid-cols-2 lg:grid-cols-4 gap-6">
        {% for label, value, color in tiles %}
        <div class="bg-white p-6 rounded-xl shadow-md">
            <p class="text-sm font-medium text-gray-500 uppercase tracking-wider {{ color }}">{{ label }}</p>
            <p class="mt-2 text-4xl font-extrabold text-gray-900">{{ value }}</p>
        </div>
        {% endfor %}
    </div>
    <div class="bg-white p-6 rounded-xl shadow-lg">
        <h3 class="text-xl font-bold mb-4 text-gray-800">Status Distribution ({{ stats.total }} Total)</h3>
        <div class="space-y-4">
            {% for label, percent, bar in bars %}
            <div class="flex items-center space-x-4">
                <div class="w-24 text-sm font-medium">{{ label }} ({{ percent }}%)</div>
                <div class="flex-1 bg-gray-200 rounded-full h-3">
                    <div class="{{ bar }} h-3 rounded-full" style="width: {{ percent }}%"></div>
                </div>
            </div>
            {% endfor %}
        </div>
    </div>
</div>
""",

    "ticket_form": """
<div id="new-ticket-form" class="mt-12 p-8 bg-white rounded-xl shadow-2xl border-t-4 border-green-500">
    <h2 class="text-2xl font-bold text-gray-800 mb-6">Submit a New Commission Ticket</h2>
    <form data-action="submit" class="space-y-4">
        <div>
            <label for="title" class="block text-sm font-medium text-gray-700 mb-1">Title (Concise Summary)</label>
            <input id="title" name="title" type="text" value="{{ title }}" placeholder="e.g., Refund for double-charged order #457" required class="w-full p-3 border border-gray-300 rounded-lg">
        </div>
        <div>
            <label for="description" class="block text-sm font-medium text-gray-700 mb-1">Full Description (Include details, dates, and order IDs)</label>
            <textarea id="description" name="description" rows="4" placeholder="Provide all necessary information for resolution..." required class="w-full p-3 border border-gray-300 rounded-lg">{{ description }}</textarea>
        </div>
        <button type="submit" class="px-6 py-3 bg-indigo-600 text-white font-semibold rounded-lg"{% if not session %} disabled{% endif %}>Submit Ticket</button>
        {% if not session %}<p class="text-sm text-red-500 mt-2">Authenticating user...</p>{% endif %}
    </form>
</div>
""",

    "delete_dialog": """
<div class="fixed inset-0 bg-black bg-opacity-40 flex items-center justify-center" role="dialog" data-pending-delete="{{ ticket_id }}">
    <div class="bg-white p-6 rounded-xl shadow-2xl space-y-4">
        <p class="text-gray-800">Are you sure you want to delete this ticket?</p>
        <div class="flex justify-end space-x-3">
            <button data-action="cancel_delete" class="px-4 py-2 rounded-lg bg-gray-100">Cancel</button>
            <button data-action="confirm_delete" class="px-4 py-2 rounded-lg bg-red-600 text-white">Delete</button>
        </div>
    </div>
</div>
""",

    "view_switcher": """
<div class="flex space-x-3 bg-white p-1 rounded-xl shadow-inner">
    {% for option in views %}
    <button data-action="set_view" data-view="{{ option }}" class="px-4 py-2 text-sm font-medium rounded-lg {% if option == active %}bg-indigo-500 text-white shadow-md{% else %}text-gray-600 hover:bg-gray-100{% endif %}">{{ option }}</button>
    {% endfor %}
</div>
""",

    "board": """
<header class="bg-white shadow-md">
    <div class="max-w-7xl mx-auto p-4 flex justify-between items-center">
        <h1 class="text-2xl font-extrabold text-indigo-600">CommissionGuard <span class="text-gray-900">Platform</span></h1>
        <div class="text-sm text-gray-500 p-2 bg-indigo-50 rounded-lg">Your User ID: <code class="font-mono text-indigo-800">{{ uid }}</code></div>
    </div>
</header>
<main class="max-w-7xl mx-auto p-4 sm:p-6 lg:p-8">
    <div class="mb-8 flex justify-between items-center">
        {{ switcher }}
        {% if show_create_link %}<a href="#new-ticket-form" class="px-5 py-2 bg-green-500 text-white font-semibold rounded-xl shadow-lg">Create New Ticket</a>{% endif %}
    </div>
    {{ content }}
    {{ form }}
    {{ dialog }}
</main>
""",

    "message": """<div class="min-h-screen flex items-center justify-center p-4 bg-gray-50 {{ color }} text-xl font-semibold">{{ message }}</div>""",

    "page": """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>CommissionGuard</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="min-h-screen bg-gray-50 font-sans antialiased">
<div id="board">{{ body }}</div>
{% if live %}
<script>
(function () {
    var scheme = location.protocol === "https:" ? "wss://" : "ws://";
    var socket = new WebSocket(scheme + location.host + "/ws");
    var board = document.getElementById("board");
    function send(message) { socket.send(JSON.stringify(message)); }
    socket.onmessage = function (event) {
        var message = JSON.parse(event.data);
        if (message.type === "render") { board.innerHTML = message.html; }
    };
    board.addEventListener("click", function (event) {
        var target = event.target.closest("[data-action]");
        if (!target || target.tagName === "SELECT" || target.tagName === "FORM") { return; }
        send({action: target.dataset.action, view: target.dataset.view, ticket_id: target.dataset.ticketId});
    });
    board.addEventListener("change", function (event) {
        var target = event.target;
        if (target.dataset.action === "change_status") {
            send({action: "change_status", ticket_id: target.dataset.ticketId, status: target.value});
        }
    });
    board.addEventListener("input", function (event) {
        var target = event.target;
        if (target.name === "title" || target.name === "description") {
            var message = {action: "update_form"};
            message[target.name] = target.value;
            send(message);
        }
    });
    board.addEventListener("submit", function (event) {
        event.preventDefault();
        var form = event.target;
        send({action: "submit", title: form.title.value, description: form.description.value});
    });
})();
</script>
{% endif %}
</body>
</html>
""",
}

env = jinja2.Environment(
    loader=jinja2.DictLoader(TEMPLATES),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def _render(name: str, **context) -> str:
    return env.get_template(name).render(**context)


def format_timestamp(timestamp: Optional[datetime]) -> str:
    if timestamp is None:
        return "N/A"
    return timestamp.strftime("%b %d, %Y, %I:%M %p")


def status_badge(status) -> str:
    try:
        status = TicketStatus(status)
        color = BADGE_COLORS[status]
        label = status.value
    except ValueError:
        color = DEFAULT_BADGE_COLOR
        label = str(status)
    return _render("status_badge", status=label, color=color)


def ticket_card(ticket: Ticket, session=None) -> str:
    is_owner = session is not None and session.uid == ticket.owner_id
    return _render(
        "ticket_card",
        ticket=ticket,
        badge=Markup(status_badge(ticket.status)),
        created=format_timestamp(ticket.created_at),
        statuses=[s.value for s in TicketStatus],
        is_owner=is_owner,
    )


def ticket_list(tickets: Iterable[Ticket], view, session=None) -> str:
    cards = [Markup(ticket_card(t, session)) for t in tickets]
    scope = "personal" if ViewFilter(view) == ViewFilter.MY_TICKETS else "active"
    return _render("ticket_list", cards=cards, scope=scope)


def stats_dashboard(stats: TicketStats) -> str:
    tiles = [
        ("Total Tickets", stats.total, "text-indigo-600"),
        ("Open", stats.open, "text-yellow-600"),
        ("In Progress", stats.in_progress, "text-blue-600"),
        ("Resolved", stats.resolved, "text-green-600"),
    ]
    bars = [
        ("Open", stats.open_percent, "bg-yellow-500"),
        ("In Progress", stats.in_progress_percent, "bg-blue-500"),
        ("Resolved", stats.resolved_percent, "bg-green-500"),
    ]
    return _render("stats_dashboard", stats=stats, tiles=tiles, bars=bars)


def ticket_form(title: str = "", description: str = "", session=None) -> str:
    return _render("ticket_form", title=title, description=description, session=session)


def delete_dialog(ticket_id: Optional[str]) -> str:
    if ticket_id is None:
        return ""
    return _render("delete_dialog", ticket_id=ticket_id)


def view_switcher(active) -> str:
    return _render("view_switcher", views=[v.value for v in ViewFilter], active=ViewFilter(active).value)


def render_message(message: str, color: str = "text-indigo-600") -> str:
    return _render("message", message=message, color=color)


def render_blocked(message: str) -> str:
    """Full-screen message for configuration and initialization failures."""
    return render_message(message, color="text-red-600")


def render_board(board) -> str:
    """Render the whole board for its current state."""
    if board.session is None:
        return render_message("Connecting to Secure Service...")

    view = ViewFilter(board.view)
    if view == ViewFilter.STATS:
        content = stats_dashboard(board.stats)
    else:
        content = ticket_list(board.tickets, view, board.session)

    return _render(
        "board",
        uid=board.session.uid,
        switcher=Markup(view_switcher(view)),
        show_create_link=view != ViewFilter.STATS,
        content=Markup(content),
        form=Markup(ticket_form(board.title, board.description, board.session)),
        dialog=Markup(delete_dialog(board.pending_delete_id)),
    )


def render_page(body: str, live: bool = True) -> str:
    return _render("page", body=Markup(body), live=live)
