"""
Tests for the wizard state machine.

Tests cover:
- Initial state
- Step navigation and its clamping at both ends
- Restart
- Field updates and numeric coercion
"""

import logging

import pytest

from mortgage_math import DEFAULT_INPUTS, REPORT_STEP, InputRecord, WizardState, parse_number


@pytest.fixture
def wizard():
    return WizardState()


class TestInitialState:
    """Test a fresh wizard."""

    def test_starts_on_first_step(self, wizard):
        assert wizard.step == 0
        assert not wizard.is_report

    def test_default_inputs(self, wizard):
        assert wizard.inputs.to_dict() == DEFAULT_INPUTS
        assert wizard.inputs.avg_gos == 9000

    def test_fields_per_step(self, wizard):
        expected = [
            ("ad_spend", "leads"),
            ("speed_to_lead_count", "contacts"),
            ("appts", "apps"),
            ("funded", "avg_gos"),
            (),
        ]
        seen = []
        for _ in range(REPORT_STEP + 1):
            seen.append(wizard.current_fields())
            wizard.next()
        assert seen == expected


class TestNavigation:
    """Test Next/Back transitions."""

    def test_next_is_unguarded(self, wizard):
        assert wizard.next() == 1

    def test_next_from_last_input_step_opens_report(self, wizard):
        wizard.step = 3
        wizard.next()
        assert wizard.step == 4
        assert wizard.is_report

    def test_next_on_report_is_noop(self, wizard):
        wizard.step = REPORT_STEP
        wizard.next()
        assert wizard.step == REPORT_STEP

    def test_back_on_first_step_is_noop(self, wizard):
        wizard.back()
        assert wizard.step == 0

    def test_back(self, wizard):
        wizard.step = 2
        assert wizard.back() == 1

    def test_navigation_keeps_inputs(self, wizard):
        wizard.set_field("leads", "42")
        wizard.next()
        wizard.back()
        assert wizard.inputs.leads == 42


class TestRestart:
    """Test restarting from the report."""

    def test_restart_resets_step_and_inputs(self, wizard):
        for name in DEFAULT_INPUTS:
            wizard.set_field(name, 123)
        wizard.step = REPORT_STEP
        wizard.restart()
        assert wizard.step == 0
        assert wizard.inputs == InputRecord()
        assert wizard.inputs.avg_gos == 9000


class TestSetField:
    """Test field updates."""

    def test_sets_exactly_one_field(self, wizard):
        wizard.set_field("ad_spend", "2500.50")
        expected = dict(DEFAULT_INPUTS, ad_spend=2500.5)
        assert wizard.inputs.to_dict() == expected

    def test_non_numeric_becomes_zero(self, wizard):
        wizard.set_field("leads", 10)
        assert wizard.set_field("leads", "abc") == 0
        assert wizard.inputs.leads == 0

    def test_non_numeric_is_logged(self, wizard, caplog):
        with caplog.at_level(logging.WARNING, logger="mortgage_math"):
            wizard.set_field("apps", "n/a")
        assert "Invalid numeric value for apps" in caplog.text

    def test_available_on_any_step(self, wizard):
        wizard.step = REPORT_STEP
        wizard.set_field("funded", 7)
        assert wizard.inputs.funded == 7

    def test_results_follow_inputs(self, wizard):
        wizard.set_field("ad_spend", 9000)
        wizard.set_field("funded", 3)
        assert wizard.results.cpfl == pytest.approx(3000)
        wizard.set_field("funded", "")
        assert wizard.results.cpfl == 0

    def test_unknown_field_raises(self, wizard):
        with pytest.raises(KeyError):
            wizard.set_field("revenue", 1)


class TestParseNumber:
    """Test permissive numeric coercion."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (12, 12.0),
            (3.5, 3.5),
            ("7", 7.0),
            (" 1e3 ", 1000.0),
            ("-40", -40.0),
            ("12abc", 12.0),
            (".5x", 0.5),
            ("1_000", 1.0),
            ("\u0661\u0662", 0.0),
            ("abc", 0.0),
            ("", 0.0),
            (None, 0.0),
            ("nan", 0.0),
            (float("inf"), 0.0),
        ],
    )
    def test_parse(self, raw, expected):
        assert parse_number(raw) == expected
