"""Tests for healthsnap.analytics.sleep -- segmentation into nights."""

import logging
from datetime import date
from zoneinfo import ZoneInfo

import pytest

from healthsnap.analytics.sleep import (
    ROLLOVER_HOUR,
    SleepDay,
    SleepStage,
    day_key,
    dedupe,
    resolve_stage,
    segment,
)

from tests.conftest import at, staged

AWAKE = SleepStage.AWAKE
LIGHT = SleepStage.LIGHT
DEEP = SleepStage.DEEP
REM = SleepStage.REM
NONE = SleepStage.NONE


class TestSleepStage:
    def test_is_asleep(self):
        assert LIGHT.is_asleep
        assert DEEP.is_asleep
        assert REM.is_asleep
        assert not AWAKE.is_asleep
        assert not NONE.is_asleep


class TestResolveStage:
    @pytest.mark.parametrize("label,expected", [
        ("awake", AWAKE),
        ("Light", LIGHT),
        ("deep", DEEP),
        ("REM", REM),
        ("rem", REM),
        ("none", NONE),
        ("", NONE),
    ])
    def test_metadata_label(self, label, expected):
        assert resolve_stage({"Sleep Stage": label}) == expected

    @pytest.mark.parametrize("value,expected", [
        (0, NONE),
        (1, NONE),
        (2, AWAKE),
        (3, LIGHT),
        (4, DEEP),
        (5, REM),
        (42, NONE),
    ])
    def test_category_code(self, value, expected):
        assert resolve_stage(None, value) == expected

    @pytest.mark.parametrize("value", ["abc", "3", 2.7, True])
    def test_category_code_must_be_integral(self, value):
        with pytest.raises(ValueError):
            resolve_stage(None, value)

    def test_category_code_integral_float(self):
        assert resolve_stage(None, 5.0) == REM

    def test_metadata_wins_over_code(self):
        assert resolve_stage({"Sleep Stage": "deep"}, 2) == DEEP

    def test_unknown_label(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert resolve_stage({"Sleep Stage": "nap"}) == NONE
        assert "nap" in caplog.text

    def test_nothing_to_go_on(self):
        assert resolve_stage() == NONE


class TestSleepSample:
    def test_seconds(self):
        assert staged(LIGHT, at(hour=1), at(hour=1, minute=30)).seconds == 1800

    def test_negative_duration_clamped(self, caplog):
        sample = staged(LIGHT, at(hour=2), at(hour=1))
        with caplog.at_level(logging.WARNING):
            assert sample.seconds == 0
        assert "ends before it starts" in caplog.text


class TestSleepDay:
    def test_total_seconds(self):
        day = SleepDay(light_seconds=100, deep_seconds=20, rem_seconds=3, interruption_seconds=50)
        assert day.total_seconds == 123

    def test_defaults_zero(self):
        day = SleepDay()
        assert day.total_seconds == 0
        assert day.interruption_count == 0
        assert day.time_to_sleep_seconds == 0
        assert day.time_to_out_of_bed_seconds == 0


class TestDedupe:
    def test_empty(self):
        assert dedupe([]) == []

    def test_identical_neighbours_collapsed(self):
        a = staged(AWAKE, at(hour=23), at(hour=23, minute=5))
        b = staged(AWAKE, at(hour=23), at(hour=23, minute=5), source="second")
        c = staged(LIGHT, at(hour=23, minute=5), at(day=6, hour=1))
        result = dedupe([a, b, c])
        assert len(result) == 2
        assert result[0] is a

    def test_same_interval_different_stage_kept(self):
        a = staged(AWAKE, at(hour=23), at(hour=23, minute=5))
        b = staged(LIGHT, at(hour=23), at(hour=23, minute=5))
        assert len(dedupe([a, b])) == 2

    def test_same_stage_different_end_kept(self):
        a = staged(AWAKE, at(hour=23), at(hour=23, minute=5))
        b = staged(AWAKE, at(hour=23), at(hour=23, minute=6))
        assert len(dedupe([a, b])) == 2


class TestDayKey:
    def test_before_rollover_is_previous_day(self):
        assert day_key(at(hour=9, minute=59)) == date(2024, 3, 4)

    def test_at_rollover_is_same_day(self):
        assert day_key(at(hour=10)) == date(2024, 3, 5)

    def test_late_evening_is_same_day(self):
        assert day_key(at(hour=23, minute=30)) == date(2024, 3, 5)

    def test_custom_rollover(self):
        assert day_key(at(hour=9, minute=30), rollover_hour=0) == date(2024, 3, 5)

    def test_uses_local_hour(self):
        # 14:30 UTC is 06:30 in Los Angeles
        la = ZoneInfo("America/Los_Angeles")
        assert day_key(at(hour=14, minute=30), tz=la) == date(2024, 3, 4)

    def test_default_rollover(self):
        assert ROLLOVER_HOUR == 10


class TestSegment:
    def test_empty_input(self):
        assert segment([]) == {}

    def test_only_unknown_stages(self):
        samples = [staged(NONE, at(hour=23), at(day=6, hour=6))]
        assert segment(samples) == {}

    def test_early_morning_sample_goes_to_previous_night(self):
        result = segment([staged(LIGHT, at(hour=9, minute=30), at(hour=10))])
        assert list(result) == [date(2024, 3, 4)]
        assert result[date(2024, 3, 4)].light_seconds == 1800

    def test_stage_durations(self):
        samples = [
            staged(LIGHT, at(hour=22), at(hour=23)),
            staged(DEEP, at(hour=23), at(hour=23, minute=45)),
            staged(REM, at(hour=23, minute=45), at(day=6, hour=0, minute=5)),
            staged(LIGHT, at(day=6, hour=0, minute=5), at(day=6, hour=6)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        assert night.light_seconds == 3600 + 21300
        assert night.deep_seconds == 2700
        assert night.rem_seconds == 1200
        assert night.total_seconds == 3600 + 21300 + 2700 + 1200

    def test_interruption_detected(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        assert night.interruption_count == 1
        assert night.interruption_seconds == 300
        assert night.deep_seconds == 1800
        assert night.light_seconds == 1500

    def test_gap_after_awake_is_not_an_interruption(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=34)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        assert night.interruption_count == 0
        assert night.interruption_seconds == 0

    def test_gap_before_awake_is_not_an_interruption(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=29)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
        ]
        assert segment(samples)[date(2024, 3, 5)].interruption_count == 0

    def test_awake_next_to_awake_is_not_an_interruption(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(AWAKE, at(hour=10, minute=35), at(hour=10, minute=40)),
            staged(LIGHT, at(hour=10, minute=40), at(hour=11)),
        ]
        assert segment(samples)[date(2024, 3, 5)].interruption_count == 0

    def test_trailing_awake_is_not_an_interruption(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
        ]
        assert segment(samples)[date(2024, 3, 5)].interruption_count == 0

    def test_duplicates_counted_once(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        # without dedupe the Awake would be followed by another Awake
        assert night.interruption_count == 1
        assert night.light_seconds == 1500

    def test_time_to_sleep_from_first_awake(self):
        samples = [
            staged(AWAKE, at(hour=22), at(hour=22, minute=20)),
            staged(LIGHT, at(hour=22, minute=20), at(hour=23)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        assert night.time_to_sleep_seconds == 1200
        assert night.interruption_count == 0

    def test_time_to_sleep_zero_when_night_starts_asleep(self):
        samples = [staged(LIGHT, at(hour=22), at(hour=23))]
        assert segment(samples)[date(2024, 3, 5)].time_to_sleep_seconds == 0

    def test_time_to_out_of_bed_set_on_previous_night(self):
        samples = [
            staged(LIGHT, at(day=4, hour=23), at(hour=6)),
            staged(AWAKE, at(hour=22), at(hour=22, minute=10)),
            staged(LIGHT, at(hour=22, minute=10), at(hour=23)),
        ]
        result = segment(samples)
        assert list(result) == [date(2024, 3, 4), date(2024, 3, 5)]
        assert result[date(2024, 3, 4)].time_to_out_of_bed_seconds == 7 * 3600
        assert result[date(2024, 3, 5)].time_to_sleep_seconds == 600
        assert result[date(2024, 3, 5)].time_to_out_of_bed_seconds == 0

    def test_time_to_out_of_bed_not_set_after_awake(self):
        samples = [
            staged(LIGHT, at(day=4, hour=23), at(hour=6)),
            staged(AWAKE, at(hour=6), at(hour=6, minute=30)),
            staged(LIGHT, at(hour=22), at(hour=23)),
        ]
        result = segment(samples)
        assert result[date(2024, 3, 4)].time_to_out_of_bed_seconds == 0

    def test_night_without_sleep_is_kept(self):
        samples = [
            staged(LIGHT, at(day=4, hour=23), at(hour=6)),
            staged(AWAKE, at(hour=22), at(hour=22, minute=10)),
        ]
        result = segment(samples)
        assert date(2024, 3, 5) in result
        assert result[date(2024, 3, 5)].total_seconds == 0

    def test_unknown_stage_skipped_from_history(self):
        # The None sample sits between Deep and Awake in the list; the Awake
        # still sees Deep as its predecessor.
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(NONE, at(hour=10, minute=10), at(hour=10, minute=20)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        assert night.interruption_count == 1
        assert night.deep_seconds == 1800

    def test_unknown_stage_as_next_sample_blocks_interruption(self):
        samples = [
            staged(DEEP, at(hour=10), at(hour=10, minute=30)),
            staged(AWAKE, at(hour=10, minute=30), at(hour=10, minute=35)),
            staged(NONE, at(hour=10, minute=35), at(hour=10, minute=36)),
            staged(LIGHT, at(hour=10, minute=35), at(hour=11)),
        ]
        assert segment(samples)[date(2024, 3, 5)].interruption_count == 0

    def test_unknown_stage_contributes_nothing(self):
        samples = [
            staged(LIGHT, at(hour=22), at(hour=23)),
            staged(NONE, at(hour=23), at(day=6, hour=1)),
        ]
        night = segment(samples)[date(2024, 3, 5)]
        assert night.total_seconds == 3600

    def test_negative_duration_clamped(self):
        samples = [staged(LIGHT, at(hour=23), at(hour=22))]
        assert segment(samples)[date(2024, 3, 5)].light_seconds == 0

    def test_rollover_hour_argument(self):
        samples = [staged(LIGHT, at(hour=9), at(hour=9, minute=30))]
        assert list(segment(samples, rollover_hour=8)) == [date(2024, 3, 5)]

    def test_two_nights(self):
        samples = [
            staged(LIGHT, at(day=3, hour=23), at(day=4, hour=7)),
            staged(DEEP, at(day=4, hour=23), at(hour=7)),
        ]
        result = segment(samples)
        assert result[date(2024, 3, 3)].light_seconds == 8 * 3600
        assert result[date(2024, 3, 4)].deep_seconds == 8 * 3600
        assert result[date(2024, 3, 3)].time_to_out_of_bed_seconds == 8 * 3600
