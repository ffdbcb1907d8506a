"""Live capture backend built on scapy's AsyncSniffer.

Each IPv4/IPv6 packet is converted into an observation dict keyed the way
`normalize_observation()` expects; non-IP traffic is ignored.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from scapy.all import AsyncSniffer, IP, IPv6, TCP, UDP

logger = logging.getLogger(__name__)


class ScapyCapture:
    def __init__(self, interface: Optional[str] = None, bpf_filter: Optional[str] = "ip or ip6",
                 sensor_id: Optional[Any] = None):
        self.interface = interface
        # loopback captures miss packets with a BPF filter on some platforms
        if interface and interface.lower() in ['lo', 'lo0', 'localhost']:
            self.bpf_filter = None
        else:
            self.bpf_filter = bpf_filter or None
        self.sensor_id = sensor_id
        self._sniffer: Optional[AsyncSniffer] = None
        self._running = False

    def convert(self, pkt) -> Optional[Dict[str, Any]]:
        if pkt.haslayer(IP):
            ip_layer = pkt[IP]
        elif pkt.haslayer(IPv6):
            ip_layer = pkt[IPv6]
        else:
            return None

        proto = "OTHER"
        dst_port = None
        if pkt.haslayer(TCP):
            proto = "TCP"
            dst_port = pkt[TCP].dport
        elif pkt.haslayer(UDP):
            proto = "UDP"
            dst_port = pkt[UDP].dport

        return {
            "source_ip": ip_layer.src,
            "destination_ip": ip_layer.dst,
            "destination_port": dst_port,
            "protocol": proto,
            "packet_size": len(pkt),
            "timestamp": float(pkt.time) * 1000.0,
            "sensor_id": self.sensor_id,
        }

    def start(self, callback: Callable[[Dict[str, Any]], None]):
        """Start capturing; this blocks until `stop()` is called."""
        def handler(pkt):
            try:
                parsed = self.convert(pkt)
            except Exception:
                logger.exception("Failed to convert packet %s", pkt.summary())
                return
            if parsed:
                callback(parsed)

        self._running = True
        self._sniffer = AsyncSniffer(iface=self.interface, filter=self.bpf_filter, prn=handler, store=False)
        self._sniffer.start()
        logger.info("Capture started on %s (filter=%s)", self.interface or "default interface", self.bpf_filter)

        try:
            while self._running:
                time.sleep(0.2)
        finally:
            self._stop_sniffer()

    def stop(self):
        self._running = False
        self._stop_sniffer()

    def _stop_sniffer(self):
        sniffer, self._sniffer = self._sniffer, None
        if sniffer is None or not sniffer.running:
            return
        try:
            sniffer.stop()
        except Exception:
            logger.exception("Failed to stop sniffer")
        else:
            logger.info("Capture stopped")
