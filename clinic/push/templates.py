"""Notification templates for appointment events.

The table maps an event kind to its title and body template; adding a kind
is a data change only. Rendering is a pure function of the event.
"""

from __future__ import annotations

from clinic.common.config import Settings, get_settings
from clinic.common.schemas import NotificationEvent, RenderedPayload

DEFAULT_KIND = "update"

# kind -> (title, body template); {date} and {time} are filled by render_payload.
TEMPLATES: dict[str, tuple[str, str]] = {
    "test": ("Notificação de teste", "Push ativo com sucesso."),
    "create": ("Novo atendimento", "Atendimento criado para {date}{time}."),
    "reschedule": ("Atendimento reagendado", "Atendimento reagendado para {date}{time}."),
    "cancel": ("Atendimento cancelado", "Atendimento cancelado em {date}{time}."),
    "delete": ("Atendimento removido", "Atendimento removido em {date}{time}."),
    "update": ("Atendimento atualizado", "Atendimento atualizado para {date}{time}."),
}


def format_date_br(value: str | None) -> str:
    """Render an ISO date (YYYY-MM-DD) as DD/MM/YYYY.

    Empty input renders as an empty string; anything that is not three
    dash-separated parts is returned unchanged.
    """
    if not value:
        return ""
    parts = value.split("-")
    if len(parts) != 3 or not all(parts):
        return value
    year, month, day = parts
    return f"{day}/{month}/{year}"


def format_time_clause(value: str | None) -> str:
    """Return " às HH:MM", or nothing when no time is given."""
    return f" às {value}" if value else ""


def render_text(event: NotificationEvent) -> tuple[str, str]:
    """Return the (title, body) pair for an event."""
    title, body_template = TEMPLATES.get(event.kind, TEMPLATES[DEFAULT_KIND])
    body = body_template.format(
        date=format_date_br(event.appointment.date),
        time=format_time_clause(event.appointment.time),
    )
    return title, body


def render_payload(event: NotificationEvent, settings: Settings | None = None) -> RenderedPayload:
    """Render the full notification payload for an event."""
    settings = settings or get_settings()
    title, body = render_text(event)
    return RenderedPayload(
        title=title,
        body=body,
        icon_url=settings.push_icon_url,
        badge_url=settings.push_badge_url,
        target_url=settings.push_target_url,
        data={"appointmentId": event.appointment.id, "type": event.kind},
    )
