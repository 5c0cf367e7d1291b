"""Score tables for the Cardiovascular Health (CVH) components."""

from __future__ import annotations

from mhc.domains.health.domain_logic.sample_models import (
    BloodPressureMeasurement,
    NicotineExposure,
)
from mhc.domains.health.domain_logic.score_definition import (
    ScoreDefinition,
    ScoreRange,
    ScoringBand,
)

R = ScoreRange
band = ScoringBand.in_range


# Diet: MEPA questionnaire total, integer 0-16.
CVH_DIET = ScoreDefinition(default=0, bands=[
    band(R.closed(15, 16), 1.0),
    band(R.closed(12, 14), 0.8),
    band(R.closed(8, 11), 0.5),
    band(R.closed(4, 7), 0.25),
])

# Physical exercise: total exercise minutes over the last week.
CVH_PHYSICAL_EXERCISE = ScoreDefinition(
    default=0,
    bands=[
        band(R.at_least(150.0), 1.0, "150 +"),
        band(R.half_open(120.0, 150.0), 0.9, "120 – 149"),
        band(R.half_open(90.0, 120.0), 0.8, "90 – 119"),
        band(R.half_open(60.0, 90.0), 0.6, "60 – 89"),
        band(R.half_open(30.0, 60.0), 0.4, "30 – 59"),
        band(R.half_open(1.0, 30.0), 0.2, "1 – 29"),
    ],
    explainer_footer="Minutes of exercise over the last 7 days.",
)

# Daily average step count; stands in for exercise minutes when those are missing.
CVH_STEP_COUNT = ScoreDefinition(default=0, bands=[
    band(R.at_least(10_000.0), 1.0, "10,000 +"),
    band(R.half_open(8_000.0, 10_000.0), 0.9, "8,000 – 9,999"),
    band(R.half_open(6_000.0, 8_000.0), 0.8, "6,000 – 7,999"),
    band(R.half_open(4_000.0, 6_000.0), 0.6, "4,000 – 5,999"),
    band(R.half_open(2_000.0, 4_000.0), 0.4, "2,000 – 3,999"),
    band(R.half_open(0.0, 2_000.0), 0.2, "< 2,000"),
])

CVH_NICOTINE = ScoreDefinition(default=0, bands=[
    ScoringBand.equal_to(NicotineExposure.NEVER_SMOKED, 1.0, NicotineExposure.NEVER_SMOKED.display_title),
    ScoringBand.equal_to(
        NicotineExposure.QUIT_MORE_THAN_5_YEARS_AGO,
        0.75,
        NicotineExposure.QUIT_MORE_THAN_5_YEARS_AGO.display_title,
    ),
    ScoringBand.equal_to(
        NicotineExposure.QUIT_WITHIN_1_TO_5_YEARS, 0.5, NicotineExposure.QUIT_WITHIN_1_TO_5_YEARS.display_title
    ),
    ScoringBand.equal_to(
        NicotineExposure.QUIT_WITHIN_LAST_YEAR_OR_USING_NDS,
        0.25,
        NicotineExposure.QUIT_WITHIN_LAST_YEAR_OR_USING_NDS.display_title,
    ),
    ScoringBand.equal_to(NicotineExposure.ACTIVELY_SMOKING, 0.0, NicotineExposure.ACTIVELY_SMOKING.display_title),
])

# Sleep: hours asleep in the most recent session.
CVH_SLEEP = ScoreDefinition(default=0, bands=[
    band(R.half_open(7.0, 9.0), 1.0, "7 to 9 hours"),
    band(R.half_open(9.0, 10.0), 0.9, "9 to 10 hours"),
    band(R.half_open(6.0, 7.0), 0.7, "6 to 7 hours"),
    band(R.half_open(5.0, 6.0), 0.4, "5 to 6 hours"),
    band(R.at_least(10.0), 0.4, "10+ hours"),
    band(R.half_open(4.0, 5.0), 0.2, "4 to 5 hours"),
])

CVH_BMI = ScoreDefinition(default=0, bands=[
    band(R.below(25.0), 1.0, "< 25"),
    band(R.half_open(25.0, 30.0), 0.7, "25 – 29.9 (Overweight)"),
    band(R.half_open(30.0, 35.0), 0.3, "30 – 34.9 (Obesity class I)"),
    band(R.half_open(35.0, 40.0), 0.15, "35 – 39.9 (Obesity class II)"),
    band(R.at_least(40.0), 0.0, "≥ 40 (Obesity class III)"),
])

# Blood lipids: LDL cholesterol, mg/dL.
CVH_BLOOD_LIPIDS = ScoreDefinition(default=0, bands=[
    band(R.below(130.0), 1.0, "< 130"),
    band(R.half_open(130.0, 160.0), 0.6, "130 – 159"),
    band(R.half_open(160.0, 190.0), 0.4, "160 – 189"),
    band(R.half_open(190.0, 220.0), 0.2, "190 – 219"),
    band(R.at_least(220.0), 0.0, "220+"),
])

# No clinical mapping yet: any glucose reading scores 0.5.
CVH_BLOOD_GLUCOSE = ScoreDefinition(
    default=0.5,
    explainer_footer="Blood glucose scoring is not yet calibrated; any reading scores 50.",
)


def _bp(test):
    return lambda m: test(m.systolic, m.diastolic)


def _elevated(systolic, diastolic_range: ScoreRange, diastolic) -> bool:
    return R.at_least(100).contains(systolic) and diastolic_range.contains(diastolic)


# First match wins. Readings that fall between rows score nothing (default None).
# The diastolic arms only apply from systolic 100 up, so e.g. 99/81 is unscored.
CVH_BLOOD_PRESSURE = ScoreDefinition(default=None, bands=[
    ScoringBand.matching(
        _bp(lambda s, d: R.below(100).contains(s) and R.below(80).contains(d)),
        1.0,
        "<100 / <80",
        input_type=BloodPressureMeasurement,
    ),
    ScoringBand.matching(
        _bp(lambda s, d: R.below(130).contains(s) and R.below(80).contains(d)),
        0.75,
        "<130 / <80",
        input_type=BloodPressureMeasurement,
    ),
    ScoringBand.matching(
        _bp(lambda s, d: R.closed(130, 139).contains(s) or _elevated(s, R.closed(80, 89), d)),
        0.5,
        "130–139 / 80–89",
        input_type=BloodPressureMeasurement,
    ),
    ScoringBand.matching(
        _bp(lambda s, d: R.closed(140, 159).contains(s) or _elevated(s, R.closed(90, 99), d)),
        0.25,
        "140–159 / 90–99",
        input_type=BloodPressureMeasurement,
    ),
    ScoringBand.matching(
        _bp(lambda s, d: R.at_least(160).contains(s) or _elevated(s, R.at_least(100), d)),
        0.0,
        "160+ / 100+",
        input_type=BloodPressureMeasurement,
    ),
])

# Mental wellbeing, 0-100 after scaling the questionnaire score by 4.
CVH_MENTAL_WELLBEING = ScoreDefinition(default=0, bands=[
    band(R.closed(81, 100), 1.0),
    band(R.closed(71, 80), 0.8),
    band(R.closed(51, 70), 0.69),
    band(R.closed(31, 50), 0.38),
    band(R.closed(0, 30), 0.0),
])
