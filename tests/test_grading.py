"""Tests for netmeter.grading -- connection quality scoring."""

import math
import unittest

from netmeter.grading import (
    ACTIVITIES,
    analyze_connection,
    latency_category,
    rate_connection,
    speed_category,
)


class TestRateConnection(unittest.TestCase):
    def test_perfect_connection(self):
        rating = rate_connection(500, 100, 5, 1)
        self.assertEqual(rating.grade, "A+")
        self.assertEqual(rating.score, 100)
        self.assertEqual(rating.color, "green")
        self.assertTrue(rating.suitable_for)

    def test_mid_range(self):
        # 30 + 20 + 15 + 7
        rating = rate_connection(30, 12, 40, 10)
        self.assertEqual(rating.score, 72)
        self.assertEqual(rating.grade, "B")

    def test_half_point_rounds_up(self):
        # 30 + 7.5 + 20 + 7 = 64.5
        rating = rate_connection(25, 1.5, 20, 15)
        self.assertEqual(rating.score, 65)
        self.assertEqual(rating.grade, "C")

    def test_poor_connection(self):
        rating = rate_connection(0.5, 0.1, 400, 200)
        self.assertEqual(rating.grade, "F")
        self.assertLess(rating.score, 40)

    def test_score_bounds(self):
        for args in [(0, 0, 10_000, 10_000), (10_000, 10_000, 0, 0)]:
            with self.subTest(args=args):
                score = rate_connection(*args).score
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, 100)

    def test_missing_metric_rejected(self):
        with self.assertRaises(ValueError):
            rate_connection(100, 20, math.nan, 1)

    def test_to_dict(self):
        d = rate_connection(500, 100, 5, 1).to_dict()
        self.assertEqual(set(d), {"grade", "score", "description", "suitable_for"})


class TestAnalyzeConnection(unittest.TestCase):
    def test_fourteen_activities_partitioned(self):
        caps = analyze_connection(20)
        self.assertEqual(len(ACTIVITIES), 14)
        self.assertEqual(len(caps.can_support) + len(caps.cannot_support), 14)
        self.assertEqual(
            {a.name for a in caps.cannot_support},
            {"4K Streaming", "Game Downloads", "Large File Transfers"},
        )

    def test_threshold_is_inclusive(self):
        names = {a.name for a in analyze_connection(10).can_support}
        self.assertIn("Online Gaming", names)
        self.assertIn("Remote Work", names)
        self.assertNotIn("Online Gaming", {a.name for a in analyze_connection(9.99).can_support})

    def test_stream_counts(self):
        caps = analyze_connection(52)
        self.assertEqual((caps.hd_streams, caps.full_hd_streams, caps.four_k_streams), (10, 6, 2))
        self.assertEqual(analyze_connection(4.9).hd_streams, 0)

    def test_everything_supported(self):
        caps = analyze_connection(1000)
        self.assertEqual(caps.cannot_support, [])
        self.assertEqual(caps.to_dict()["streams"], {"hd": 200, "full_hd": 125, "4k": 40})

    def test_nothing_supported(self):
        caps = analyze_connection(0.5)
        self.assertEqual(caps.can_support, [])
        self.assertEqual(caps.to_dict()["streams"], {"hd": 0, "full_hd": 0, "4k": 0})

    def test_missing_rate_rejected(self):
        with self.assertRaises(ValueError):
            analyze_connection(math.nan)


class TestCategories(unittest.TestCase):
    def test_speed_category(self):
        self.assertEqual(speed_category(150), "Ultra Fast")
        self.assertEqual(speed_category(50), "Very Fast")
        self.assertEqual(speed_category(25), "Fast")
        self.assertEqual(speed_category(10), "Moderate")
        self.assertEqual(speed_category(5), "Slow")
        self.assertEqual(speed_category(1), "Very Slow")

    def test_latency_category(self):
        self.assertEqual(latency_category(20), "Excellent")
        self.assertEqual(latency_category(21), "Good")
        self.assertEqual(latency_category(100), "Fair")
        self.assertEqual(latency_category(150), "Poor")
        self.assertEqual(latency_category(151), "Very Poor")


if __name__ == "__main__":
    unittest.main()
