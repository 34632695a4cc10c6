"""
Weekly status banding.

Default table (first matching row wins, average is a float):

    status | min reviews | min average
    -------+-------------+------------
       3   |      7      |    4.0
       2   |      5      |    3.0
       1   |      3      |    any
       0   |      1      |    any
      -1   |  no reviews (or no row matched)
"""
import pytest

from fooddiary.config import DEFAULT_STATUS_BANDS, Settings, StatusBand, progress_policy
from fooddiary.models import STATUS_NO_ACTIVITY
from fooddiary.services.progress import derive_status


@pytest.mark.parametrize(
    "review_count, total_rating, expected",
    [
        (10, 44, 3),   # 4.4 average
        (7, 28, 3),    # exactly 4.0
        (7, 27, 2),    # 3.86 average falls to the next band
        (5, 15, 2),
        (6, 17, 1),    # 2.83 average
        (4, 20, 1),    # 4 reviews is not enough for band 2
        (3, 3, 1),
        (2, 10, 0),
        (1, 1, 0),
        (0, 0, STATUS_NO_ACTIVITY),
    ],
)
def test_default_bands(review_count, total_rating, expected):
    assert derive_status(review_count, total_rating, DEFAULT_STATUS_BANDS) == expected


def test_unmatched_counters_report_no_activity():
    strict = [StatusBand(status=5, min_reviews=10, min_average=4.5)]
    assert derive_status(3, 15, strict) == STATUS_NO_ACTIVITY


def test_average_is_not_truncated():
    # 7 reviews, total 27 → 3.857…; integer division would give 3 and still
    # pass band 2, but 4.0 must not be reached by rounding up either.
    assert derive_status(7, 27, DEFAULT_STATUS_BANDS) == 2
    assert derive_status(7, 29, DEFAULT_STATUS_BANDS) == 3


def test_bands_are_configurable():
    custom = Settings(
        status_bands=[
            {"status": 1, "min_reviews": 2, "min_average": 4.5},
            {"status": 0, "min_reviews": 1, "min_average": 0.0},
        ],
        home_timezone="UTC",
    )
    policy = progress_policy(custom)

    assert str(policy.home_timezone) == "UTC"
    assert derive_status(2, 9, policy.status_bands) == 1
    assert derive_status(2, 8, policy.status_bands) == 0
