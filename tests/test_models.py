from datetime import UTC, datetime, timedelta, timezone

import pytest

from odmon.errors import ConfigurationError
from odmon.flatten import format_value
from odmon.models import PollSpec, derive_resource, parse_rfc3339_datetime, split_address


def test_resource_derived_from_last_path_segment() -> None:
    assert derive_resource("http://host/api/Widgets") == "Widgets"
    assert derive_resource("http://host/api/Widgets?$top=5") == "Widgets"


def test_split_address_keeps_query_with_resource() -> None:
    root, resource = split_address("http://host/api/Widgets?$top=5")
    assert root == "http://host/api/"
    assert resource == "Widgets?$top=5"


@pytest.mark.parametrize("address", ["http://host/api/", "http://host", "http://host/"])
def test_ambiguous_resource_raises(address: str) -> None:
    with pytest.raises(ConfigurationError):
        derive_resource(address)


def test_validate_requires_address() -> None:
    with pytest.raises(ConfigurationError) as ei:
        PollSpec(stanza="odata://a", address="  ").validate()
    assert ei.value.stanza == "odata://a"


def test_validate_trailing_slash_needs_explicit_resource() -> None:
    with pytest.raises(ConfigurationError):
        PollSpec(stanza="odata://a", address="http://host/api/").validate()

    PollSpec(stanza="odata://a", address="http://host/api/", resource="Widgets").validate()
    PollSpec(stanza="odata://a", address="http://host/api/Widgets").validate()


def test_validate_requires_stanza_name() -> None:
    with pytest.raises(ConfigurationError):
        PollSpec(stanza="", address="http://host/api/Widgets").validate()


def test_tail_filter_enabled_follows_path() -> None:
    assert not PollSpec(stanza="s", address="http://h/R").tail_filter_enabled
    assert PollSpec(stanza="s", address="http://h/R", tail_filter_path=("a", "b")).tail_filter_enabled


def test_parse_rfc3339_datetime_reads_formatted_timestamps() -> None:
    dt = datetime(2026, 2, 10, 8, 0, 0, tzinfo=timezone(timedelta(hours=-7)))
    assert parse_rfc3339_datetime(format_value(dt)) == dt
    assert parse_rfc3339_datetime("2026-02-10T12:34:56Z") == datetime(2026, 2, 10, 12, 34, 56, tzinfo=UTC)
    assert parse_rfc3339_datetime("2026-02-10T12:34:56").tzinfo is UTC
