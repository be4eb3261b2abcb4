# tests/test_aggregation.py
# Tests for summary aggregation, month-over-month change and derived series.

import math

import pandas as pd
import pytest

from dengue_core.data import (
    DISTRICT_SLUGS,
    DistrictSummary,
    MonthlyChange,
    change_tone,
    compute_district_summaries,
    compute_monthly_change,
    district_breteau_comparison,
    empty_frame,
    monthly_breteau_trend,
    parse_survey_csv,
    pct_change,
    previous_period,
    summarize_records,
    survey_type_counts,
)
from tests.conftest import make_csv


def test_summary_of_empty_subset_is_zero():
    summary = summarize_records(empty_frame())
    assert summary == DistrictSummary(0, 0, 0.0, 0.0)
    assert not math.isnan(summary.avg_breteau)


def test_missing_index_counts_toward_the_mean(survey_records):
    march = survey_records[(survey_records["year"] == 114) & (survey_records["month"] == 3)]
    summary = summarize_records(march)
    assert summary.total_households == 140
    assert summary.positive_households == 6
    assert summary.avg_breteau == pytest.approx(10 / 3)
    assert summary.avg_container == pytest.approx(10.7 / 3)


@pytest.mark.parametrize(
    "current, previous, growth, expected",
    [
        (0, 0, True, 0.0),
        (5, 0, True, 100.0),
        (5, 0, False, 0.0),
        (15, 10, False, 50.0),
        (5, 10, False, -50.0),
    ],
)
def test_pct_change(current, previous, growth, expected):
    assert pct_change(current, previous, zero_base_growth=growth) == pytest.approx(expected)


def test_previous_period_rolls_over_year():
    assert previous_period(114, 1) == (113, 12)
    assert previous_period(114, 4) == (114, 3)


def test_monthly_change_between_loaded_months(survey_records):
    change = compute_monthly_change(survey_records, "114-4")
    assert change.has_comparison
    assert (change.comparison_year, change.comparison_month) == (114, 3)
    assert change.households == pytest.approx((180 - 140) / 140 * 100)
    assert change.positive == pytest.approx((8 - 6) / 6 * 100)
    assert change.breteau == pytest.approx(50.0)
    assert change.container == pytest.approx((4 - 10.7 / 3) / (10.7 / 3) * 100)


def test_monthly_change_across_year_boundary(survey_records):
    change = compute_monthly_change(survey_records, "114-1")
    assert (change.comparison_year, change.comparison_month) == (113, 12)
    assert change.households == pytest.approx(20.0)
    assert change.positive == pytest.approx(50.0)
    assert change.breteau == pytest.approx(60.0)
    assert change.container == pytest.approx(75.0)


def test_monthly_change_is_district_constrained(survey_records):
    change = compute_monthly_change(survey_records, "114-1", "北投區")
    assert change.households == pytest.approx(25.0)


def test_no_comparison_cases(survey_records):
    assert compute_monthly_change(survey_records, "all") == MonthlyChange()
    # 114-2 was never loaded
    assert not compute_monthly_change(survey_records, "114-3").has_comparison
    assert not compute_monthly_change(survey_records, "114-2").has_comparison
    assert not compute_monthly_change(survey_records, "114-4", "文山區").has_comparison


def test_legacy_month_resolves_against_default_year(survey_records):
    assert compute_monthly_change(survey_records, "4") == compute_monthly_change(survey_records, "114-4")
    assert compute_monthly_change(survey_records, "4", legacy_year=115) == MonthlyChange()


def test_zero_positive_base_reports_full_increase():
    prev = parse_survey_csv(make_csv(["20250301,北投區,大屯里,10,0,0,0,0,住宅"]), 3, 114)
    cur = parse_survey_csv(make_csv(["20250401,北投區,大屯里,10,5,3,1,2,住宅"]), 4, 114)
    change = compute_monthly_change(pd.concat([prev, cur], ignore_index=True), "114-4")
    assert change.positive == 100.0
    assert change.breteau == 0.0
    assert change.households == 0.0


def test_change_tone():
    assert change_tone("households", 5) == "positive"
    assert change_tone("households", -5) == "negative"
    assert change_tone("positive", -1) == "favorable"
    assert change_tone("breteau", 0) == "favorable"
    assert change_tone("container", 2) == "unfavorable"


def test_district_summaries(survey_records):
    summaries = compute_district_summaries(survey_records)
    assert list(summaries) == ["士林區", "大安區", "北投區"]
    assert summaries["大安區"].total_households == 60
    assert summaries["大安區"].avg_breteau == pytest.approx(1.5)


def test_survey_type_counts_label_unknown(survey_records):
    counts = survey_type_counts(survey_records)
    assert counts["住宅"] == 5
    assert counts["未知"] == 1
    assert sum(counts.values()) == len(survey_records)
    assert survey_type_counts(empty_frame()) == {}


def test_monthly_trend_is_ordered_and_district_scoped(survey_records):
    trend = monthly_breteau_trend(survey_records)
    assert trend["label"].tolist() == ["113年12月", "114年1月", "114年3月", "114年4月", "115年3月"]
    assert trend["avg_breteau"].tolist()[0] == pytest.approx(2.5)

    beitou = monthly_breteau_trend(survey_records, "北投區")
    assert beitou["avg_breteau"].tolist() == pytest.approx([5, 6, 4, 8, 5])


def test_district_comparison_covers_every_district(survey_records):
    comparison = district_breteau_comparison(survey_records)
    assert comparison["district"].tolist() == list(DISTRICT_SLUGS)
    assert comparison.set_index("district").loc["文山區", "avg_breteau"] == 0.0
    assert district_breteau_comparison(empty_frame())["avg_breteau"].sum() == 0.0
