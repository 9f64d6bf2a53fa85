#!/usr/bin/env python3
"""
Test Suite for the Terms of Service gate

Run with: python3 tests/test_tos.py
"""

import os
import sys
import unittest
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tos import AFFIRMATIONS, TOS_SECTIONS, TOS_VERSION, ToSAgreement, ToSNotAccepted


def _read_everything(agreement: ToSAgreement) -> None:
    while not agreement.all_sections_revealed:
        agreement.reveal_next()


class TestSections(unittest.TestCase):
    """Static text."""

    def test_eleven_ordered_sections(self):
        self.assertEqual([s.id for s in TOS_SECTIONS], list(range(1, 12)))

    def test_heading_drops_number(self):
        self.assertEqual(TOS_SECTIONS[0].heading, "Introduction: The Software Provider Framework")
        self.assertEqual(TOS_SECTIONS[10].heading, "Final Consent & Affirmation")

    def test_four_affirmations(self):
        self.assertEqual(
            list(AFFIRMATIONS),
            ["non_custodial", "leverage_risk", "penalty_accept", "software_provider"],
        )


class TestAgreement(unittest.TestCase):
    """Read everything, tick everything, then accept."""

    def test_starts_with_first_section(self):
        a = ToSAgreement()
        self.assertEqual(a.revealed, 1)
        self.assertEqual(len(a.visible_sections), 1)
        self.assertEqual(a.remaining_sections, 10)
        self.assertFalse(a.can_accept)

    def test_reveal_stops_at_end(self):
        a = ToSAgreement()
        for _ in range(20):
            a.reveal_next()
        self.assertEqual(a.revealed, 11)
        self.assertTrue(a.all_sections_revealed)
        self.assertEqual(a.progress, 1.0)

    def test_checkboxes_locked_until_read(self):
        a = ToSAgreement()
        self.assertFalse(a.toggle("non_custodial"))
        self.assertFalse(a.checked["non_custodial"])

    def test_unknown_checkbox(self):
        with self.assertRaises(KeyError):
            ToSAgreement().toggle("marketing_emails")

    def test_all_boxes_required(self):
        a = ToSAgreement()
        _read_everything(a)
        for key in list(AFFIRMATIONS)[:3]:
            a.toggle(key)
        self.assertFalse(a.can_accept)
        self.assertEqual(a.hint(), "Please check all boxes to confirm your understanding")
        with self.assertRaises(ToSNotAccepted):
            a.accept()

    def test_accept(self):
        a = ToSAgreement()
        a.reveal_all()
        for key in AFFIRMATIONS:
            a.toggle(key, True)
        self.assertTrue(a.can_accept)
        self.assertEqual(a.hint(), "")

        when = datetime(2026, 2, 1, tzinfo=timezone.utc)
        record = a.accept(now=when)
        self.assertEqual(record.version, TOS_VERSION)
        self.assertEqual(record.accepted_at, when)
        self.assertEqual(len(record.affirmations), 4)
        self.assertEqual(record.to_dict()["tos_version"], "2.0")

    def test_unreading_blocks_accept(self):
        a = ToSAgreement()
        self.assertEqual(a.hint(), "Please read all sections to enable account creation")
        with self.assertRaises(ToSNotAccepted):
            a.accept()

    def test_toggle_flips(self):
        a = ToSAgreement()
        a.reveal_all()
        self.assertTrue(a.toggle("leverage_risk"))
        self.assertFalse(a.toggle("leverage_risk"))

    def test_reset_starts_over(self):
        a = ToSAgreement()
        a.reveal_all()
        a.toggle("penalty_accept", True)
        a.reset()
        self.assertEqual(a.revealed, 1)
        self.assertFalse(any(a.checked.values()))


# ============================================================
# Run tests
# ============================================================

if __name__ == "__main__":
    unittest.main(verbosity=2)
