import pytest

from odmon.errors import ConfigurationError
from odmon.models import PollSpec
from odmon.resolver import resolve_parameters


ADDRESS = "http://host/api/Widgets?$filter=Version gt {0}"


def test_without_tail_filter_parameters_are_untouched() -> None:
    spec = PollSpec(stanza="s", address=ADDRESS, filter="Id eq {0}")
    assert resolve_parameters(spec, "123") == (ADDRESS, "Id eq {0}")


def test_cursor_goes_into_filter_and_address_stays_verbatim() -> None:
    spec = PollSpec(stanza="s", address=ADDRESS, filter="Id gt {0}", tail_filter_path=("Id",))

    address, filter_ = resolve_parameters(spec, "42")

    assert address == ADDRESS
    assert filter_ == "Id gt 42"


def test_cursor_goes_into_address_when_filter_is_empty() -> None:
    spec = PollSpec(stanza="s", address=ADDRESS, tail_filter_path=("Version",))

    address, filter_ = resolve_parameters(spec, "3")

    assert address == "http://host/api/Widgets?$filter=Version gt 3"
    assert filter_ == ""


@pytest.mark.parametrize("cursor", ["", None])
def test_default_tail_filter_used_without_cursor(cursor) -> None:  # noqa: ANN001
    spec = PollSpec(
        stanza="s",
        address="http://host/api/Widgets",
        filter="Published gt datetime'{}'",
        tail_filter_path=("Published",),
        default_tail_filter="2020-01-01T00:00:00",
    )
    assert resolve_parameters(spec, cursor)[1] == "Published gt datetime'2020-01-01T00:00:00'"


def test_stored_cursor_wins_over_default() -> None:
    spec = PollSpec(stanza="s", address="http://h/R", filter="v gt {0}", tail_filter_path=("v",), default_tail_filter="0")
    assert resolve_parameters(spec, "9")[1] == "v gt 9"


def test_malformed_template_is_configuration_error() -> None:
    spec = PollSpec(stanza="s", address="http://h/R", filter="v gt {1}", tail_filter_path=("v",))
    with pytest.raises(ConfigurationError):
        resolve_parameters(spec, "9")
