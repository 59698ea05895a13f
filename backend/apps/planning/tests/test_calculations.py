from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from django.test import SimpleTestCase

from apps.planning.services.calculations import (
    ShortageLine,
    analyze_lead_time,
    calculate_priority_score,
    calculate_priority_with_lead_time,
    calculate_shortage,
    days_until,
    effective_lead_time,
    suggested_order_quantity,
)


class ShortageTests(SimpleTestCase):
    def test_shortage_nets_stock_and_open_orders(self):
        self.assertEqual(calculate_shortage(100, 30, 20), Decimal("50"))
        self.assertEqual(calculate_shortage("10.5", "4.25"), Decimal("6.25"))

    def test_shortage_never_negative(self):
        self.assertEqual(calculate_shortage(10, 8, 5), Decimal("0"))

    def test_minimum_order_quantity_applies_only_when_short(self):
        self.assertEqual(suggested_order_quantity(16, 25), Decimal("25"))
        self.assertEqual(suggested_order_quantity(40, 25), Decimal("40"))
        self.assertEqual(suggested_order_quantity(0, 25), Decimal("0"))


class PriorityScoreTests(SimpleTestCase):
    def test_average_shortage_ratio(self):
        lines = [
            ShortageLine(required=Decimal("100"), shortage=Decimal("80")),
            ShortageLine(required=Decimal("100"), shortage=Decimal("50")),
        ]
        self.assertEqual(calculate_priority_score(lines), 65)

    def test_lines_without_requirement_are_ignored(self):
        lines = [
            ShortageLine(required=Decimal("0"), shortage=Decimal("0")),
            ShortageLine(required=Decimal("10"), shortage=Decimal("10")),
        ]
        self.assertEqual(calculate_priority_score(lines), 100)
        self.assertEqual(calculate_priority_score([]), 0)

    def test_urgent_line_adds_thirty(self):
        lines = [ShortageLine(required=Decimal("10"), shortage=Decimal("5"), lead_time_days=21, days_until_required=14, is_urgent=True)]
        self.assertEqual(calculate_priority_with_lead_time(lines), 65)

    def test_tight_buffer_adds_fifteen(self):
        lines = [ShortageLine(required=Decimal("10"), shortage=Decimal("5"), lead_time_days=14, days_until_required=18)]
        self.assertEqual(calculate_priority_with_lead_time(lines), 50)

    def test_ample_buffer_keeps_base_score(self):
        lines = [ShortageLine(required=Decimal("10"), shortage=Decimal("5"), lead_time_days=14, days_until_required=30)]
        self.assertEqual(calculate_priority_with_lead_time(lines), 35)

    def test_score_is_capped(self):
        lines = [ShortageLine(required=Decimal("10"), shortage=Decimal("10"), lead_time_days=30, days_until_required=2, is_urgent=True)]
        self.assertEqual(calculate_priority_with_lead_time(lines), 100)


class LeadTimeTests(SimpleTestCase):
    def test_dates_from_required_date(self):
        analysis = analyze_lead_time(date(2026, 2, 15), 14, date(2026, 1, 8))
        self.assertEqual(analysis.latest_order_date, date(2026, 2, 1))
        self.assertEqual(analysis.estimated_delivery_date, date(2026, 1, 22))
        self.assertEqual(analysis.days_until_required, 38)
        self.assertFalse(analysis.is_urgent)
        self.assertEqual(analysis.days_late, 0)
        self.assertEqual(analysis.suggested_order_date, date(2026, 2, 1))

    def test_urgent_when_lead_time_exceeds_remaining_days(self):
        analysis = analyze_lead_time(date(2026, 1, 22), 21, date(2026, 1, 8))
        self.assertEqual(analysis.days_until_required, 14)
        self.assertTrue(analysis.is_urgent)
        self.assertEqual(analysis.days_late, 7)
        self.assertEqual(analysis.suggested_order_date, date(2026, 1, 8))

    def test_partial_days_round_up(self):
        self.assertEqual(days_until(date(2026, 1, 25), date(2026, 1, 8)), 17)
        self.assertEqual(days_until(date(2026, 1, 25), datetime(2026, 1, 8, 12, 0)), 17)

    def test_effective_lead_time_prefers_material(self):
        material = SimpleNamespace(lead_time_days=10)
        vendor = SimpleNamespace(default_lead_time_days=14)
        self.assertEqual(effective_lead_time(material, vendor), 10)
        self.assertEqual(effective_lead_time(SimpleNamespace(lead_time_days=0), vendor), 14)
        self.assertEqual(effective_lead_time(SimpleNamespace(lead_time_days=0), None), 0)
