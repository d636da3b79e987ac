"""Tests for data models."""

from datetime import datetime, timedelta, timezone

from coach_sync.models.activity import CompletedActivity, CompletionSource
from coach_sync.models.calendar import Discipline, EntryStatus, PlannedEntry
from coach_sync.models.connection import ConnectionEntry
from coach_sync.models.metrics import (
    StravaMetrics,
    UnknownMetrics,
    average_heart_rate,
    average_power_watts,
    calories_kcal,
    metrics_from_dict,
    pace_sec_per_km,
)
from coach_sync.models.sync_intent import SyncIntent, SyncIntentState

UTC = timezone.utc
NOW = datetime(2026, 2, 6, 2, 0, tzinfo=UTC)


class TestDiscipline:
    """Tests for Discipline normalization."""

    def test_normalize_known(self):
        assert Discipline.normalize("run") == Discipline.RUN
        assert Discipline.normalize(" Bike ") == Discipline.BIKE
        assert Discipline.normalize(Discipline.SWIM) == Discipline.SWIM

    def test_normalize_unknown(self):
        assert Discipline.normalize("kayak") == Discipline.OTHER
        assert Discipline.normalize(None) == Discipline.OTHER


class TestEntryStatus:
    """Tests for EntryStatus classification."""

    def test_open_statuses(self):
        assert EntryStatus.PLANNED.is_open
        assert EntryStatus.MODIFIED.is_open
        assert not EntryStatus.SKIPPED.is_open
        assert not EntryStatus.COMPLETED_SYNCED_DRAFT.is_open

    def test_draft_is_not_completed(self):
        assert EntryStatus.COMPLETED_MANUAL.is_completed
        assert EntryStatus.COMPLETED_SYNCED.is_completed
        assert not EntryStatus.COMPLETED_SYNCED_DRAFT.is_completed


class TestPlannedEntry:
    """Tests for PlannedEntry."""

    def test_intended_start_with_time(self):
        entry = PlannedEntry(athlete_id=1, date="2026-02-05", planned_start_time_local="23:00")
        assert entry.intended_start_utc("Australia/Brisbane") == datetime(2026, 2, 5, 13, 0, tzinfo=UTC)

    def test_intended_start_defaults_to_midday(self):
        entry = PlannedEntry(athlete_id=1, date="2026-02-05")
        assert entry.intended_start_utc("Australia/Brisbane") == datetime(2026, 2, 5, 2, 0, tzinfo=UTC)

    def test_dict_round_trip(self):
        entry = PlannedEntry(
            athlete_id=1,
            date="2026-02-05",
            discipline=Discipline.RUN,
            title="Tempo",
            planned_duration_minutes=45,
            status=EntryStatus.MODIFIED,
            id=7,
        )
        restored = PlannedEntry.from_dict(entry.to_dict())
        assert restored == entry


class TestCompletedActivity:
    """Tests for CompletedActivity."""

    def test_dict_round_trip(self):
        activity = CompletedActivity(
            athlete_id=1,
            source=CompletionSource.STRAVA,
            external_activity_id="555",
            start_time=datetime(2026, 2, 5, 14, 10, tzinfo=UTC),
            duration_minutes=48,
            discipline=Discipline.RUN,
            metrics=StravaMetrics(activity_id="555", calories_kcal=640.0),
            match_day_diff=-1,
            confirmed_at=NOW,
            id=3,
        )
        restored = CompletedActivity.from_dict(activity.to_dict())
        assert restored == activity

    def test_effective_start_moves_to_matched_day(self):
        activity = CompletedActivity(
            athlete_id=1,
            source=CompletionSource.STRAVA,
            start_time=datetime(2026, 2, 5, 14, 10, tzinfo=UTC),
            match_day_diff=-1,
        )
        assert activity.effective_start_utc("Australia/Brisbane") == datetime(2026, 2, 4, 14, 10, tzinfo=UTC)

    def test_effective_start_unchanged_for_manual(self):
        start = datetime(2026, 2, 5, 14, 10, tzinfo=UTC)
        activity = CompletedActivity(
            athlete_id=1, source=CompletionSource.MANUAL, start_time=start, match_day_diff=-1
        )
        assert activity.effective_start_utc("Australia/Brisbane") == start

    def test_to_dict(self):
        activity = CompletedActivity(
            athlete_id=1,
            source=CompletionSource.STRAVA,
            start_time=datetime(2026, 2, 5, 14, 10, tzinfo=UTC),
            discipline=Discipline.RUN,
            external_activity_id="55",
        )
        data = activity.to_dict()
        assert data["source"] == "STRAVA"
        assert data["discipline"] == "RUN"
        assert data["planned_entry_id"] is None


class TestMetrics:
    """Tests for the metrics union and extractors."""

    def test_strava_metrics_round_trip(self):
        metrics = StravaMetrics(activity_id="1", calories_kcal=410.0, average_speed_mps=3.2)
        restored = metrics_from_dict(metrics.to_dict())
        assert isinstance(restored, StravaMetrics)
        assert restored.calories_kcal == 410.0

    def test_empty_metrics_are_unknown(self):
        assert isinstance(metrics_from_dict(None), UnknownMetrics)
        assert isinstance(metrics_from_dict({"foo": 1}), UnknownMetrics)

    def test_extractors(self):
        metrics = StravaMetrics(activity_id="1", average_speed_mps=4.0, average_heartrate_bpm=151.6)
        assert pace_sec_per_km(metrics) == 250
        assert average_heart_rate(metrics) == 152
        assert calories_kcal(metrics) is None
        assert pace_sec_per_km(UnknownMetrics()) is None

    def test_power_only_when_recorded(self):
        assert average_power_watts(StravaMetrics(activity_id="1", average_watts=212.0)) == 212.0
        assert average_power_watts(StravaMetrics(activity_id="1")) is None
        assert average_power_watts(UnknownMetrics()) is None


class TestSyncIntent:
    """Tests for ledger state derivation."""

    def test_idle(self):
        assert SyncIntent(athlete_id=1).state_at(NOW) == SyncIntentState.IDLE

    def test_pending(self):
        assert SyncIntent(athlete_id=1, pending=True).state_at(NOW) == SyncIntentState.PENDING

    def test_locked_takes_precedence(self):
        intent = SyncIntent(athlete_id=1, pending=True, locked_until=NOW + timedelta(minutes=1))
        assert intent.state_at(NOW) == SyncIntentState.LOCKED

    def test_expired_lock_is_not_locked(self):
        intent = SyncIntent(athlete_id=1, pending=True, locked_until=NOW)
        assert intent.state_at(NOW) == SyncIntentState.PENDING

    def test_backoff(self):
        intent = SyncIntent(athlete_id=1, pending=True, next_attempt_at=NOW + timedelta(minutes=15))
        assert intent.state_at(NOW) == SyncIntentState.BACKOFF
        assert intent.to_dict(NOW)["state"] == "backoff"


class TestConnectionEntry:
    """Tests for token expiry handling."""

    def _connection(self, expires_at):
        return ConnectionEntry(
            athlete_id=1,
            athlete_timezone="UTC",
            external_athlete_id="9001",
            access_token="a",
            refresh_token="r",
            expires_at=expires_at,
        )

    def test_needs_refresh_within_skew(self):
        assert self._connection(NOW + timedelta(seconds=30)).needs_refresh(NOW)
        assert not self._connection(NOW + timedelta(hours=1)).needs_refresh(NOW)

    def test_with_tokens_keeps_scope(self):
        connection = self._connection(NOW)
        connection.scope = "activity:read_all"
        refreshed = connection.with_tokens("a2", "r2", NOW + timedelta(hours=6), None)
        assert refreshed.access_token == "a2"
        assert refreshed.scope == "activity:read_all"
        assert connection.access_token == "a"
