"""
Tests for the Reconciler — backlog computation from the ledger marker.
"""

import warnings

import pytest

from src.engine.reconcile import Backlog, reconcile
from src.errors import ReconciliationWarning
from tests.conftest import make_release, make_releases


class TestReconcile:
    """Backlog is everything newer than the marker, oldest first."""

    def test_nothing_mirrored_replays_everything_oldest_first(self):
        upstream = make_releases("3.2.0", "3.1.0", "3.0.0")

        backlog = reconcile(None, upstream)

        assert backlog.names == ["3.0.0", "3.1.0", "3.2.0"]
        assert backlog.ledger_marker is None
        assert backlog.warning is None

    def test_marker_in_the_middle(self):
        upstream = make_releases("3.2.0", "3.1.1", "3.1.0", "3.0.0")

        backlog = reconcile(make_release("3.1.0"), upstream)

        assert backlog.names == ["3.1.1", "3.2.0"]
        assert backlog.ledger_marker == "3.1.0"

    def test_marker_is_newest_gives_empty_backlog(self):
        upstream = make_releases("3.2.0", "3.1.0")

        backlog = reconcile(make_release("3.2.0"), upstream)

        assert backlog.releases == []
        assert len(backlog) == 0

    def test_marker_match_is_case_insensitive(self):
        upstream = make_releases("3.2.0-RC", "3.1.0-Beta", "3.0.0")

        backlog = reconcile(make_release("3.1.0-beta"), upstream)

        assert backlog.names == ["3.2.0-RC"]

    def test_marker_not_found_fails_open(self):
        upstream = make_releases("3.2.0", "3.1.0")

        backlog = reconcile(make_release("3.0.5"), upstream)

        assert backlog.names == ["3.1.0", "3.2.0"]
        assert backlog.ledger_marker == "3.0.5"

    def test_first_match_wins_for_duplicate_names(self):
        upstream = make_releases("3.2.0", "3.1.0", "3.0.0", "3.1.0")

        backlog = reconcile(make_release("3.1.0"), upstream)

        assert backlog.names == ["3.2.0"]

    def test_unnamed_upstream_entries_never_match(self):
        upstream = [make_release("3.1.0"), make_release(None), make_release("3.0.0")]

        backlog = reconcile(make_release("3.0.0"), upstream)

        assert len(backlog) == 2
        assert backlog.names == ["", "3.1.0"]

    def test_empty_upstream(self):
        assert reconcile(None, []).releases == []
        assert reconcile(make_release("3.0.0"), []).releases == []

    def test_backlog_carries_notes_and_artifact(self):
        upstream = [make_release("3.1.0", body="Bug fixes")]

        backlog = reconcile(None, upstream)
        info = backlog.releases[0]

        assert info.notes == "Bug fixes"
        assert info.artifact_url == "https://example.test/download/3.1.0.zip"


class TestUnusableMarker:
    """A marker without a name yields no work and a warning."""

    @pytest.mark.parametrize("name", [None, ""])
    def test_unnamed_marker_warns_and_returns_empty(self, name):
        upstream = make_releases("3.1.0", "3.0.0")

        with pytest.warns(ReconciliationWarning):
            backlog = reconcile(make_release(name), upstream)

        assert backlog.releases == []
        assert backlog.warning is not None

    def test_unnamed_marker_checked_before_lookup(self):
        """Even an upstream entry without a name must not match an unnamed marker."""
        upstream = [make_release(None), make_release("3.0.0")]

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            backlog = reconcile(make_release(None), upstream)

        assert backlog.releases == []
        assert any(issubclass(w.category, ReconciliationWarning) for w in caught)


class TestBacklog:
    def test_iterates_in_order(self):
        backlog = reconcile(None, make_releases("3.1.0", "3.0.0"))

        assert [r.name for r in backlog] == ["3.0.0", "3.1.0"]

    def test_default_is_empty(self):
        assert Backlog().names == []
