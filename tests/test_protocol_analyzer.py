import unittest

from packetpeek import (
    Packet,
    ProtocolAnalyzer,
    ProtocolCatalog,
    ProtocolProfile,
    SecurityTier,
    StatsAggregator,
)
from packetpeek.protocol_analyzer import (
    ARP_ADVISORY,
    DNS_ADVISORY,
    ENCRYPTION_ADVISORY,
    GENERAL_ADVISORY,
)


def _fill(aggregator: StatsAggregator, *protocols: str) -> None:
    for index, protocol in enumerate(protocols):
        aggregator.on_insert(
            Packet(
                id=f"p{index}",
                captured_at=0,
                source_address="10.0.0.1",
                destination_address="10.0.0.2",
                protocol=protocol,
                length_bytes=100,
            )
        )


class ProtocolAnalyzerTest(unittest.TestCase):
    def setUp(self) -> None:
        self.aggregator = StatsAggregator()
        self.analyzer = ProtocolAnalyzer(self.aggregator, ProtocolCatalog())

    def test_empty_capture(self) -> None:
        overview = self.analyzer.security_overview()

        self.assertEqual(overview.encrypted_count, 0)
        self.assertEqual(overview.total_count, 0)
        self.assertEqual(overview.encrypted_ratio, 0)
        self.assertEqual(overview.encrypted_percentage, 0)
        self.assertEqual(self.analyzer.per_protocol_breakdown(), [])
        advisories = self.analyzer.recommendations()
        self.assertEqual(advisories[-1], GENERAL_ADVISORY)
        self.assertEqual(advisories, [ENCRYPTION_ADVISORY, GENERAL_ADVISORY])

    def test_security_overview_counts_encrypted_protocols(self) -> None:
        _fill(self.aggregator, "HTTPS", "HTTPS", "HTTP", "DNS")

        overview = self.analyzer.security_overview()

        self.assertEqual(overview.encrypted_count, 2)
        self.assertEqual(overview.total_count, 4)
        self.assertAlmostEqual(overview.encrypted_ratio, 0.5)
        self.assertEqual(overview.encrypted_percentage, 50)

    def test_recommendations_follow_fixed_order(self) -> None:
        _fill(self.aggregator, "DNS", "ARP", "HTTP")

        self.assertEqual(
            self.analyzer.recommendations(),
            [ENCRYPTION_ADVISORY, ARP_ADVISORY, DNS_ADVISORY, GENERAL_ADVISORY],
        )

    def test_mostly_encrypted_traffic_skips_https_advice(self) -> None:
        _fill(self.aggregator, "HTTPS", "HTTPS", "DNS")

        self.assertEqual(self.analyzer.recommendations(), [DNS_ADVISORY, GENERAL_ADVISORY])

    def test_breakdown_orders_by_count_then_name(self) -> None:
        _fill(self.aggregator, "UDP", "TCP", "DNS", "TCP", "ARP")

        breakdown = self.analyzer.per_protocol_breakdown()

        self.assertEqual([share.protocol for share in breakdown], ["TCP", "ARP", "DNS", "UDP"])
        self.assertEqual(breakdown[0].count, 2)
        self.assertAlmostEqual(breakdown[0].percentage_of_buffer, 40.0)
        self.assertEqual(breakdown[1].profile.security, SecurityTier.LOW)
        self.assertAlmostEqual(sum(share.percentage_of_buffer for share in breakdown), 100.0)

    def test_same_snapshot_gives_same_answers(self) -> None:
        _fill(self.aggregator, "HTTP", "ICMP", "HTTP")
        stats = self.aggregator.snapshot()

        first = self.analyzer.per_protocol_breakdown(stats)
        self.aggregator.on_insert(Packet("late", 0, "a", "b", "HTTPS", 90))
        second = self.analyzer.per_protocol_breakdown(stats)

        self.assertEqual(first, second)
        self.assertEqual(self.analyzer.security_overview(stats).encrypted_count, 0)
        self.assertEqual(self.analyzer.security_overview().encrypted_count, 1)

    def test_tier_breakdown_lists_every_tier(self) -> None:
        _fill(self.aggregator, "HTTP", "HTTPS", "TCP", "GRE")

        tiers = self.analyzer.tier_breakdown()

        self.assertEqual(
            tiers,
            {
                SecurityTier.LOW: 1,
                SecurityTier.MEDIUM: 1,
                SecurityTier.HIGH: 1,
                SecurityTier.UNKNOWN: 1,
            },
        )


def test_custom_catalog_changes_encryption_view():
    aggregator = StatsAggregator()
    catalog = ProtocolCatalog().with_profiles(
        ProtocolProfile("SSH", "Secure shell", SecurityTier.HIGH, "22", encrypted=True)
    )
    analyzer = ProtocolAnalyzer(aggregator, catalog)
    _fill(aggregator, "SSH", "SSH", "TCP")

    overview = analyzer.security_overview()

    assert overview.encrypted_count == 2
    assert overview.encrypted_percentage == 67
    assert ENCRYPTION_ADVISORY not in analyzer.recommendations()
