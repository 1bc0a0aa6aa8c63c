"""Tests for the notification template table and payload rendering."""

from __future__ import annotations

import pytest

from clinic.common.schemas import NotificationEvent
from clinic.push.templates import (
    TEMPLATES,
    format_date_br,
    format_time_clause,
    render_payload,
    render_text,
)


def _event(kind: str | None = "create", date: str | None = None, time: str | None = None, id=None):
    return NotificationEvent.model_validate(
        {"type": kind, "appointment": {"id": id, "date": date, "time": time}}
    )


class TestRenderText:
    @pytest.mark.parametrize(
        ("kind", "title", "body"),
        [
            ("create", "Novo atendimento", "Atendimento criado para 10/03/2025 às 14:30."),
            ("reschedule", "Atendimento reagendado", "Atendimento reagendado para 10/03/2025 às 14:30."),
            ("cancel", "Atendimento cancelado", "Atendimento cancelado em 10/03/2025 às 14:30."),
            ("delete", "Atendimento removido", "Atendimento removido em 10/03/2025 às 14:30."),
            ("update", "Atendimento atualizado", "Atendimento atualizado para 10/03/2025 às 14:30."),
        ],
    )
    def test_each_kind(self, kind, title, body):
        assert render_text(_event(kind, "2025-03-10", "14:30")) == (title, body)

    def test_test_kind_is_fixed_confirmation(self):
        title, body = render_text(_event("test", "2025-03-10", "14:30"))
        assert title == "Notificação de teste"
        assert "2025" not in body and body

    def test_time_omitted(self):
        _, body = render_text(_event("create", "2025-03-10"))
        assert body == "Atendimento criado para 10/03/2025."
        assert "às" not in body

    @pytest.mark.parametrize("kind", ["something-new", "", None])
    def test_unknown_kind_falls_back_to_update(self, kind):
        title, body = render_text(_event(kind, "2025-03-10", "09:00"))
        assert title == "Atendimento atualizado"
        assert body == "Atendimento atualizado para 10/03/2025 às 09:00."

    def test_rendering_is_deterministic(self):
        event = _event("cancel", "2025-12-01", "08:15")
        assert render_text(event) == render_text(event)
        assert render_payload(event) == render_payload(event)

    def test_every_template_has_title_and_body(self):
        for title, body in TEMPLATES.values():
            assert title and body


class TestFormatting:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2025-03-10", "10/03/2025"),
            ("", ""),
            (None, ""),
            ("10/03/2025", "10/03/2025"),
            ("2025-03", "2025-03"),
        ],
    )
    def test_format_date_br(self, value, expected):
        assert format_date_br(value) == expected

    def test_format_time_clause(self):
        assert format_time_clause("14:30") == " às 14:30"
        assert format_time_clause(None) == ""
        assert format_time_clause("") == ""


class TestRenderPayload:
    def test_payload_fields(self, test_settings):
        payload = render_payload(_event("create", "2025-03-10", "14:30", id=77), test_settings)
        assert payload.icon_url == test_settings.push_icon_url
        assert payload.badge_url == test_settings.push_badge_url
        assert payload.target_url == "/#agendamento"
        assert payload.data == {"appointmentId": "77", "type": "create"}

    def test_wire_shape(self, test_settings):
        wire = render_payload(_event("test"), test_settings).to_wire()
        assert set(wire) == {"title", "body", "icon", "badge", "url", "data"}
        assert wire["data"]["appointmentId"] is None

    def test_missing_appointment(self):
        event = NotificationEvent.model_validate({"type": "update"})
        _, body = render_text(event)
        assert body == "Atendimento atualizado para ."
