"""Tests for building and rendering report documents."""

from research_client.models.events import RunEvent
from research_client.models.report import ReportDocument, ReportSection
from research_client.services import report_builder


def event(kind, data=None):
    return RunEvent(kind=kind, payload=data)


def sections_by_heading(document):
    return {section.heading: section.body for section in document.sections}


def test_empty_log_yields_title_and_no_sections():
    document = report_builder.build("solar", [])

    assert document.title == "Research Report: solar"
    assert document.sections == ()


def test_sources_skip_hits_missing_title_or_url():
    log = [event("search", {"hits": [{"title": "A", "url": "http://a"}, {"title": "", "url": ""}]})]

    document = report_builder.build("topic", log)

    assert sections_by_heading(document)["Sources"].splitlines() == ["A — http://a"]


def test_full_log_produces_sections_in_fixed_order():
    log = [
        event("search", {"hits": [{"title": "A", "url": "http://a"}, {"title": "B", "url": "http://b"}]}),
        event("summary", {"text": "Short answer."}),
        event("validated", {"ok": True}),
        event("recommendations", {"items": ["Do X", "Do Y"]}),
        event("done"),
    ]

    document = report_builder.build("topic", log)

    assert document.sections == (
        ReportSection("Executive Summary", "Short answer."),
        ReportSection("Sources", "A — http://a\nB — http://b"),
        ReportSection("Recommendations", "Do X\nDo Y"),
    )


def test_first_event_of_a_kind_wins():
    log = [event("summary", {"text": "first"}), event("summary", {"text": "second"})]

    document = report_builder.build("topic", log)

    assert sections_by_heading(document)["Executive Summary"] == "first"


def test_missing_or_malformed_payloads_omit_sections():
    log = [
        event("summary", {"text": ""}),
        event("search", {"hits": "not a list"}),
        event("recommendations", None),
    ]

    assert report_builder.build("topic", log).sections == ()


def test_unrecognised_log_falls_back_to_one_section_per_event():
    log = [
        event("progress", {"pct": 50, "note": "half"}),
        event("thinking", "plain text"),
        event("heartbeat"),
    ]

    document = report_builder.build("topic", log)

    assert [section.heading for section in document.sections] == ["progress", "thinking", "heartbeat"]
    assert document.sections[0].body == '{\n  "note": "half",\n  "pct": 50\n}'
    assert document.sections[1].body == "plain text"
    assert document.sections[2].body == ""


def test_build_is_deterministic():
    log = [
        event("custom", {"b": [3, 2, 1], "a": {"y": 1, "x": 2}}),
        event("done"),
    ]

    first = report_builder.build("topic", log)
    second = report_builder.build("topic", list(log))

    assert first == second
    assert report_builder.to_markdown(first) == report_builder.to_markdown(second)


def test_markdown_rendering():
    document = ReportDocument(
        title="Research Report: t",
        sections=(ReportSection("Executive Summary", "S"), ReportSection("Empty", "")),
    )

    assert report_builder.to_markdown(document) == (
        "# Research Report: t\n\n## Executive Summary\n\nS\n\n## Empty\n"
    )


def test_preview_underlines_headings():
    document = ReportDocument(title="T", sections=(ReportSection("Sources", "A — http://a"),))

    assert report_builder.to_preview(document) == "T\n=\n\nSources\n-------\nA — http://a\n"


def test_request_payload_keeps_section_order():
    document = report_builder.build(
        "topic",
        [event("summary", {"text": "S"}), event("recommendations", {"items": ["R"]})],
    )

    assert report_builder.to_request(document) == {
        "title": "Research Report: topic",
        "sections": [
            {"heading": "Executive Summary", "body": "S"},
            {"heading": "Recommendations", "body": "R"},
        ],
    }
