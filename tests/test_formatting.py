"""Tests for row highlight rules."""

from tracker.formatting import highlight_directives, is_in_progress
from tracker.models import ApplicationRecord


def test_is_in_progress_accepts_aliases(config):
    assert is_in_progress("In Progress", config)
    assert is_in_progress(" in progress ", config)
    assert is_in_progress("In progess", config)
    assert not is_in_progress("Rejected", config)
    assert not is_in_progress("", config)


def test_directives_cover_progress_and_yes_no_columns(config):
    record = ApplicationRecord(progress="In Progress", round2="Yes", offer="No")
    directives = highlight_directives(record, config)

    assert set(directives) == {1, 6, 7, 8, 9, 10, 11}
    assert directives[1] == "#FFF9C4"
    assert directives[8] == "#C8E6C9"
    assert directives[11] is None


def test_other_progress_clears_highlight(config):
    directives = highlight_directives(ApplicationRecord(progress="Rejected"), config)
    assert directives[1] is None


def test_yes_is_exact(config):
    directives = highlight_directives(ApplicationRecord(round1="yes"), config)
    assert directives[7] is None
