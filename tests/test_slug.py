"""Tests for slug generation and status resolution."""

from __future__ import annotations

import re

import pytest

from factories import column
from mailboard.services.slug import (
    derive_status,
    generate_column_id,
    generate_slug,
    is_placeholder_status,
    resolve_unique_status,
)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class TestGenerateSlug:
    """Tests for generate_slug."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Sent Mail", "sent-mail"),
            ("INBOX", "inbox"),
            ("  To   Do  ", "to-do"),
            ("Follow-up!!", "follow-up"),
            ("--Weird -- Title--", "weird-title"),
            ("Q3 / Q4 review", "q3-q4-review"),
        ],
    )
    def test_examples(self, text: str, expected: str) -> None:
        assert generate_slug(text) == expected

    @pytest.mark.parametrize("text", ["", None, "!!!", "   ", "---"])
    def test_empty_results(self, text: str | None) -> None:
        assert generate_slug(text) == ""

    @pytest.mark.parametrize(
        "text",
        ["Sent Mail", "  Ärger & Co. ", "a--b  c", "-lead", "trail-", "Done ✓ today", "x"],
    )
    def test_charset_and_idempotence(self, text: str) -> None:
        slug = generate_slug(text)
        assert slug == "" or SLUG_PATTERN.match(slug)
        assert generate_slug(slug) == slug


class TestResolveUniqueStatus:
    """Tests for resolve_unique_status."""

    def test_unique_base_returned_unchanged(self) -> None:
        columns = [column("a", "Inbox", "inbox"), column("b", "Done", "done")]
        assert resolve_unique_status("archived", columns) == "archived"

    def test_collision_gets_lowest_free_suffix(self) -> None:
        columns = [
            column("a", "Done", "done"),
            column("b", "Done 1", "done-1"),
            column("c", "Done 3", "done-3"),
        ]
        assert resolve_unique_status("done", columns) == "done-2"

    def test_excluded_column_does_not_collide_with_itself(self) -> None:
        columns = [column("a", "Done", "done")]
        assert resolve_unique_status("done", columns, exclude_id="a") == "done"

    def test_empty_base_falls_back(self) -> None:
        columns = [column("a", "Column", "column")]
        assert resolve_unique_status("", columns) == "column-1"

    def test_result_never_matches_existing_status(self) -> None:
        columns = [column(str(i), "x", "todo" if i == 0 else f"todo-{i}") for i in range(5)]
        status = resolve_unique_status("todo", columns)
        assert status not in {c.status for c in columns}


class TestDeriveStatus:
    """Tests for derive_status."""

    def test_provider_label_takes_priority(self) -> None:
        target = column("a", "My Starred", provider_label="STARRED")
        assert derive_status(target, [target]) == "starred"

    def test_title_used_without_label(self) -> None:
        target = column("a", "Sent Mail")
        assert derive_status(target, [target]) == "sent-mail"

    def test_collision_with_other_column(self) -> None:
        other = column("b", "Inbox", "inbox", provider_label="INBOX")
        target = column("a", "Inbox")
        assert derive_status(target, [other, target]) == "inbox-1"


def test_placeholder_detection() -> None:
    assert is_placeholder_status("")
    assert is_placeholder_status("new-status-1700000000000")
    assert not is_placeholder_status("todo")


def test_column_ids_are_unique_and_opaque() -> None:
    ids = {generate_column_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("col-") for i in ids)
