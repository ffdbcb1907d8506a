"""
Tests for scapy packet conversion (no sniffing).
"""

from scapy.all import ARP, ICMP, IP, IPv6, TCP, UDP, Ether

from flowguard.capture.scapy_capture import ScapyCapture
from flowguard.preprocessing.observation_parser import normalize_observation


class TestConvert:
    """Tests for ScapyCapture.convert."""

    def test_tcp_packet(self):
        pkt = IP(src="192.168.1.150", dst="10.0.0.1") / TCP(sport=50000, dport=22) / (b"x" * 40)
        out = ScapyCapture(sensor_id=2).convert(pkt)

        assert out["source_ip"] == "192.168.1.150"
        assert out["destination_ip"] == "10.0.0.1"
        assert out["destination_port"] == 22
        assert out["protocol"] == "TCP"
        assert out["packet_size"] == len(pkt)
        assert out["sensor_id"] == 2
        assert out["timestamp"] > 0

    def test_udp_over_ipv6(self):
        pkt = IPv6(src="::1", dst="::2") / UDP(dport=53)
        out = ScapyCapture().convert(pkt)

        assert out["protocol"] == "UDP"
        assert out["destination_port"] == 53

    def test_icmp_has_no_port(self):
        out = ScapyCapture().convert(IP(src="1.1.1.1", dst="2.2.2.2") / ICMP())

        assert out["protocol"] == "OTHER"
        assert out["destination_port"] is None

    def test_non_ip_is_ignored(self):
        assert ScapyCapture().convert(Ether() / ARP()) is None

    def test_output_normalizes_cleanly(self):
        pkt = IP(src="192.168.1.150", dst="10.0.0.1") / TCP(dport=3389)
        obs = normalize_observation(ScapyCapture().convert(pkt))

        assert obs.protocol == "TCP"
        assert obs.destination_port == 3389
        assert obs.packet_size == len(pkt)

    def test_loopback_drops_filter(self):
        assert ScapyCapture(interface="lo").bpf_filter is None
        assert ScapyCapture(interface="eth0").bpf_filter == "ip or ip6"
