from __future__ import annotations

import unittest

from competitive.models import IN_PROGRESS_SENTINEL, LLMOReport, SiteReport
from competitive.ranking import (
    STATIC_OPPORTUNITY_POSITIONING,
    STATIC_OPPORTUNITY_STRATEGY,
    STATIC_STRENGTH,
    STATIC_WEAKNESS,
    build_summary,
    calculate_rank,
)


def _site(url: str, score: int) -> SiteReport:
    return SiteReport.for_url(url, LLMOReport(url=url, total_score=score))


class TestCalculateRank(unittest.TestCase):
    def test_middle_of_the_pack(self) -> None:
        self.assertEqual(calculate_rank(75, [80, 60]), 2)

    def test_ties_rank_the_user_first(self) -> None:
        self.assertEqual(calculate_rank(75, [75, 60]), 1)
        self.assertEqual(calculate_rank(60, [80, 60, 60]), 2)

    def test_alone_and_last(self) -> None:
        self.assertEqual(calculate_rank(50, []), 1)
        self.assertEqual(calculate_rank(10, [20, 30, 40]), 4)

    def test_rank_is_within_bounds(self) -> None:
        for user, competitors in ((0, [0, 0]), (100, [99]), (33, [1, 2, 3, 34])):
            rank = calculate_rank(user, competitors)
            self.assertGreaterEqual(rank, 1)
            self.assertLessEqual(rank, len(competitors) + 1)


class TestBuildSummary(unittest.TestCase):
    def setUp(self) -> None:
        self.user = LLMOReport(url="https://alan.com", total_score=75)
        self.competitors = [
            _site("https://www.leader.com", 80),
            _site("https://small.com", 60),
        ]

    def test_rank_and_total(self) -> None:
        summary = build_summary(self.user, self.competitors)

        self.assertEqual(summary.user_rank, 2)
        self.assertEqual(summary.total_analyzed, 3)

    def test_strengths(self) -> None:
        summary = build_summary(self.user, self.competitors)

        self.assertEqual(
            summary.strengths_vs_competitors,
            ["LLMO score above the competitive average (70)", STATIC_STRENGTH],
        )

    def test_majority_beaten_is_reported(self) -> None:
        competitors = [_site("https://a.com", 40), _site("https://b.com", 50), _site("https://c.com", 90)]
        summary = build_summary(self.user, competitors)

        self.assertIn("Outperforms 2/3 competitors", summary.strengths_vs_competitors)

    def test_weaknesses_name_the_leader(self) -> None:
        summary = build_summary(self.user, self.competitors)

        self.assertEqual(
            summary.weaknesses_vs_competitors,
            [
                "5-point gap with leader leader.com",
                "1 competitor has a better LLMO score",
                STATIC_WEAKNESS,
            ],
        )

    def test_first_seen_leader_wins_ties(self) -> None:
        competitors = [_site("https://first.com", 90), _site("https://second.com", 90)]
        summary = build_summary(self.user, competitors)

        self.assertEqual(summary.weaknesses_vs_competitors[0], "15-point gap with leader first.com")
        self.assertEqual(summary.weaknesses_vs_competitors[1], "2 competitors have a better LLMO score")

    def test_opportunities(self) -> None:
        summary = build_summary(
            self.user,
            self.competitors,
            stats={"models_used": ["gpt-4o", "claude", "gpt-4o"]},
        )

        self.assertEqual(
            summary.opportunities_identified,
            [
                "Optimize for 2 different AI models",
                STATIC_OPPORTUNITY_STRATEGY,
                "Benchmark the leaders: leader.com, small.com",
                STATIC_OPPORTUNITY_POSITIONING,
            ],
        )

    def test_benchmark_keeps_top_three_without_mutating_input(self) -> None:
        competitors = [
            _site("https://d.com", 10),
            _site("https://a.com", 70),
            _site("https://c.com", 30),
            _site("https://b.com", 50),
        ]
        original_order = [site.domain for site in competitors]

        summary = build_summary(self.user, competitors)

        self.assertIn("Benchmark the leaders: a.com, b.com, c.com", summary.opportunities_identified)
        self.assertEqual([site.domain for site in competitors], original_order)

    def test_no_competitors_uses_static_statements_only(self) -> None:
        summary = build_summary(self.user, [])

        self.assertEqual(summary.user_rank, 1)
        self.assertEqual(summary.total_analyzed, 1)
        self.assertEqual(summary.strengths_vs_competitors, [STATIC_STRENGTH])
        self.assertEqual(summary.weaknesses_vs_competitors, [STATIC_WEAKNESS])
        self.assertEqual(
            summary.opportunities_identified,
            [STATIC_OPPORTUNITY_STRATEGY, STATIC_OPPORTUNITY_POSITIONING],
        )

    def test_in_progress_lists_hold_only_the_sentinel(self) -> None:
        summary = build_summary(self.user, self.competitors, in_progress=True)

        self.assertTrue(summary.is_in_progress)
        self.assertEqual(summary.strengths_vs_competitors, [IN_PROGRESS_SENTINEL])
        self.assertEqual(summary.user_rank, 2)

    def test_serializes_with_camel_case_keys(self) -> None:
        dumped = build_summary(self.user, self.competitors).model_dump(by_alias=True)

        self.assertEqual(
            set(dumped),
            {
                "userRank",
                "totalAnalyzed",
                "strengthsVsCompetitors",
                "weaknessesVsCompetitors",
                "opportunitiesIdentified",
            },
        )
