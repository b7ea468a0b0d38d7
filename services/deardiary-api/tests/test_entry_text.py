from datetime import date, datetime, timedelta, timezone

import pytest

from deardiary.entry_text import clean_labels, combine_entries, parse_json_object
from deardiary.errors import GenerationFailure
from deardiary.periods import CacheState, cache_state, day_range_bounds, utc_date
from tests.utils import ts


def test_combine_entries_uses_title_and_untitled_fallback():
    text = combine_entries([{"title": "Walk", "content": " Sunny. "}, {"title": "", "content": "Rain."}])
    assert text == "Walk: Sunny.\n\nUntitled: Rain."


@pytest.mark.parametrize(
    "reply",
    [
        '{"score": 4}',
        '```json\n{"score": 4}\n```',
        'Here is the analysis: {"score": 4} Hope it helps.',
    ],
)
def test_parse_json_object_accepts_common_wrappings(reply):
    assert parse_json_object(reply) == {"score": 4}


@pytest.mark.parametrize("reply", ["", "no json here", "[1, 2]", "{broken"])
def test_parse_json_object_rejects_non_objects(reply):
    with pytest.raises(GenerationFailure):
        parse_json_object(reply)


def test_clean_labels_drops_junk_and_truncates():
    assert clean_labels(["joy", " ", None, {"x": 1}, "calm", "hope", "awe"], 3) == [
        "joy",
        "calm",
        "hope",
    ]
    assert clean_labels("joy", 3) == []


def test_cache_state_transitions():
    last = ts("2024-03-05T20:00:00")
    row = {"entry_count": 2, "last_entry_at": last, "invalidated_at": None}

    assert cache_state(None, 2, last) is CacheState.ABSENT
    assert cache_state(row, 2, last) is CacheState.VALID
    assert cache_state(row, 3, last) is CacheState.STALE
    assert cache_state(row, 2, last + timedelta(seconds=1)) is CacheState.STALE
    assert cache_state({**row, "invalidated_at": last}, 2, last) is CacheState.STALE


def test_day_bounds_are_utc_and_end_exclusive():
    lower, upper = day_range_bounds(date(2024, 3, 1), date(2024, 3, 31))
    assert lower == ts("2024-03-01T00:00:00")
    assert upper == ts("2024-04-01T00:00:00")


def test_utc_date_converts_offsets():
    late_evening = datetime(2024, 3, 5, 21, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert utc_date(late_evening) == date(2024, 3, 6)
