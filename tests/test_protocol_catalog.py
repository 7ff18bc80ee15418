import unittest

from packetpeek import ProtocolCatalog, ProtocolProfile, SecurityTier


class ProtocolCatalogTest(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = ProtocolCatalog()

    def test_default_profiles(self) -> None:
        self.assertEqual(len(self.catalog), 7)
        https = self.catalog.lookup("HTTPS")
        self.assertTrue(https.encrypted)
        self.assertEqual(https.security, SecurityTier.HIGH)
        self.assertEqual(https.port, "443")
        self.assertEqual(self.catalog.lookup("tcp").port, "Various")
        self.assertEqual(self.catalog.lookup("ARP").port, "N/A")
        self.assertEqual(self.catalog.lookup("HTTP").security, SecurityTier.LOW)
        self.assertEqual(
            [profile.protocol for profile in self.catalog],
            ["HTTP", "HTTPS", "TCP", "UDP", "DNS", "ARP", "ICMP"],
        )

    def test_only_https_is_encrypted_by_default(self) -> None:
        encrypted = [profile.protocol for profile in self.catalog if profile.encrypted]
        self.assertEqual(encrypted, ["HTTPS"])
        self.assertFalse(self.catalog.is_encrypted("HTTP"))

    def test_unknown_protocol_resolves_to_sentinel(self) -> None:
        profile = self.catalog.lookup("quic")

        self.assertEqual(profile.protocol, "QUIC")
        self.assertEqual(profile.security, SecurityTier.UNKNOWN)
        self.assertFalse(profile.encrypted)
        self.assertEqual(profile.port, "N/A")
        self.assertNotIn("QUIC", self.catalog)
        self.assertIn("dns", self.catalog)

    def test_with_profiles_returns_extended_copy(self) -> None:
        quic = ProtocolProfile("QUIC", "QUIC transport", SecurityTier.HIGH, "443", encrypted=True)
        extended = self.catalog.with_profiles(quic)

        self.assertIn("QUIC", extended)
        self.assertNotIn("QUIC", self.catalog)
        self.assertTrue(extended.is_encrypted("quic"))
        self.assertEqual(len(extended), 8)

    def test_classify_port_prefers_lowest_known_port(self) -> None:
        self.assertEqual(self.catalog.classify_port("TCP", 51000, 443), "HTTPS")
        self.assertEqual(self.catalog.classify_port("TCP", 80, 51000), "HTTP")
        self.assertEqual(self.catalog.classify_port("UDP", 53, 40000), "DNS")
        self.assertEqual(self.catalog.classify_port("tcp", 53, 443), "DNS")
        self.assertEqual(self.catalog.classify_port("udp", 40000, 40001), "UDP")
        self.assertEqual(self.catalog.classify_port("TCP", 22, 50000), "TCP")


def test_profile_dict_round_trip():
    profile = ProtocolProfile("SSH", "Secure shell", SecurityTier.HIGH, "22", encrypted=True)

    restored = ProtocolProfile.from_dict(profile.to_dict())

    assert restored == profile
    assert restored.canonical_port == 22


def test_profile_from_dict_defaults():
    profile = ProtocolProfile.from_dict({"protocol": "mdns"})

    assert profile.protocol == "MDNS"
    assert profile.security is SecurityTier.UNKNOWN
    assert profile.port == "N/A"
    assert profile.canonical_port is None
    assert profile.encrypted is False
