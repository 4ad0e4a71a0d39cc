"""Tests for message templates and placeholder rendering."""

import json

import pytest

from salon_recovery.errors import ValidationError
from salon_recovery.models import MessageType
from salon_recovery.templates import DEFAULT_TEMPLATES, TemplateCatalog, render


def test_render_replaces_every_occurrence():
    assert render("Hi {name}, bye {name}", {"name": "Sarah"}) == "Hi Sarah, bye Sarah"


def test_render_leaves_unknown_placeholders():
    assert render("Hi {name} from {salon_name}", {"name": "Sarah"}) == "Hi Sarah from {salon_name}"
    assert render("With {stylist_name}", {"stylist_name": None}) == "With {stylist_name}"


def test_render_is_single_pass():
    assert render("{a}", {"a": "{b}", "b": "nope"}) == "{b}"


def test_render_stringifies_values():
    assert render("{days} days", {"days": 21}) == "21 days"


def test_every_message_type_has_a_default():
    assert set(DEFAULT_TEMPLATES) == set(MessageType)
    assert DEFAULT_TEMPLATES[MessageType.REACTIVATION].subject == "We miss you at {salon_name}!"


def test_catalog_renders_subject_and_body():
    catalog = TemplateCatalog()

    rendered = catalog.render(MessageType.REACTIVATION, {
        "client_name": "Sarah", "salon_name": "Glow Studio", "reactivation_offer": "20% off",
    })

    assert rendered.subject == "We miss you at Glow Studio!"
    assert rendered.body.startswith("Hi Sarah,\n\nIt's been a while since we've seen you at Glow Studio!")
    assert "20% off on your next visit" in rendered.body


def test_overrides_from_file(tmp_path):
    path = tmp_path / "templates.json"
    path.write_text(json.dumps({"followUp": {"subject": "Thanks {client_name}!", "body": "See you, {client_name}."}}))

    catalog = TemplateCatalog.from_file(str(path))

    assert catalog.render(MessageType.FOLLOW_UP, {"client_name": "Sarah"}).subject == "Thanks Sarah!"
    # types missing from the file keep the default
    assert catalog.get(MessageType.TIP) == DEFAULT_TEMPLATES[MessageType.TIP]
    assert catalog.as_dict()["followUp"]["body"] == "See you, {client_name}."


def test_empty_path_uses_defaults():
    assert TemplateCatalog.from_file("").get(MessageType.REMINDER) == DEFAULT_TEMPLATES[MessageType.REMINDER]


@pytest.mark.parametrize("content", [
    "not json",
    json.dumps(["followUp"]),
    json.dumps({"newsletter": {"subject": "s", "body": "b"}}),
    json.dumps({"tip": {"subject": "missing body"}}),
])
def test_bad_template_files_are_rejected(tmp_path, content):
    path = tmp_path / "templates.json"
    path.write_text(content)

    with pytest.raises(ValidationError):
        TemplateCatalog.from_file(str(path))


def test_missing_file_is_rejected(tmp_path):
    with pytest.raises(ValidationError):
        TemplateCatalog.from_file(str(tmp_path / "absent.json"))
