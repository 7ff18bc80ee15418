"""Command-line entry point: run a capture and print a traffic report."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import SOURCE_KINDS, CaptureOptions, load_options
from .controller import CaptureController
from .date_formatter import capture_time_parts, format_capture_time
from .errors import PacketPeekError, SourceError
from .interfaces import list_devices
from .sources import open_source
from .stats_aggregator import StatKind
from .utils import format_byte_count

logger = logging.getLogger(__name__)

# CLI flag -> CaptureOptions field, applied over the settings file when given.
_OVERRIDES = {
    "source": "source",
    "pcap": "pcap_path",
    "interface": "interface",
    "filter": "bpf_filter",
    "capacity": "capacity",
    "duration": "duration_s",
    "limit": "limit",
    "seed": "seed",
    "top": "top_n",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="packetpeek",
        description="Capture packets into a bounded buffer and report protocol and security statistics.",
    )
    parser.add_argument(
        "--source",
        choices=SOURCE_KINDS,
        help="Packet source to read from (default: synthetic).",
    )
    parser.add_argument("--pcap", metavar="PATH", help="Capture file for the replay source.")
    parser.add_argument("--interface", "-i", help="Network interface for the live source.")
    parser.add_argument("--filter", metavar="BPF", help="BPF filter expression for live capture.")
    parser.add_argument(
        "--capacity",
        type=int,
        help="Number of recent packets kept in the buffer (default: 100).",
    )
    parser.add_argument(
        "--duration",
        type=float,
        metavar="SECONDS",
        help="Stop capturing after this many seconds.",
    )
    parser.add_argument("--limit", type=int, help="Maximum number of packets to read from the source.")
    parser.add_argument(
        "--interval",
        type=float,
        nargs=2,
        metavar=("MIN", "MAX"),
        help="Delay range in seconds between synthetic packets (default: 0.5 1.5).",
    )
    parser.add_argument("--seed", type=int, help="Random seed for the synthetic source.")
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Replay capture files at their recorded pace.",
    )
    parser.add_argument("--top", type=int, help="Entries shown in top-N tables (default: 5).")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    parser.add_argument("--config", metavar="FILE", help="JSON settings file.")
    parser.add_argument(
        "--list-interfaces",
        action="store_true",
        help="List capture interfaces and exit.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Log level for diagnostic output.",
    )
    return parser


def resolve_options(args: argparse.Namespace) -> CaptureOptions:
    options = load_options(args.config) if args.config else CaptureOptions()
    changes: Dict[str, Any] = {}
    for flag, field_name in _OVERRIDES.items():
        value = getattr(args, flag)
        if value is not None:
            changes[field_name] = value
    if args.interval is not None:
        changes["interval_min_s"], changes["interval_max_s"] = args.interval
    if args.realtime:
        changes["realtime"] = True
    if args.pcap is not None and args.source is None:
        changes["source"] = "replay"
    return dataclasses.replace(options, **changes)


def run_capture(options: CaptureOptions) -> CaptureController:
    """Drive a controller until the source ends or the duration elapses."""
    catalog = options.build_catalog()
    source = open_source(options, catalog)
    controller = CaptureController(source, capacity=options.capacity, catalog=catalog)

    controller.start()
    try:
        if not controller.wait(options.duration_s):
            logger.info("Capture duration of %.1fs elapsed", options.duration_s)
    except KeyboardInterrupt:
        logger.info("Capture interrupted")
    finally:
        controller.stop()

    error = controller.source_error
    if error is not None:
        if isinstance(error, PacketPeekError):
            raise error
        raise SourceError(f"Packet source failed: {error}") from error
    return controller


def build_report(controller: CaptureController, top_n: int = 5) -> Dict[str, Any]:
    snapshot = controller.snapshot()
    stats = snapshot.stats
    analyzer = controller.analyzer
    overview = analyzer.security_overview(stats)

    def _top(kind: StatKind) -> List[Dict[str, Any]]:
        return [{"key": key, "count": count} for key, count in stats.top_n(kind, top_n)]

    return {
        "state": snapshot.state.value,
        "total_ever_seen": stats.total_ever_seen,
        "packets_buffered": stats.packet_count,
        "capacity": controller.buffer.capacity,
        "total_bytes": stats.total_bytes,
        "total_bytes_human": format_byte_count(stats.total_bytes),
        "average_packet_size": round(stats.average_packet_size, 2),
        "distinct_protocols": stats.distinct_protocols,
        "packets_per_second": round(controller.packets_per_second(), 2),
        "dropped": snapshot.dropped,
        "top_protocols": _top(StatKind.PROTOCOL),
        "top_sources": _top(StatKind.SOURCE),
        "top_destinations": _top(StatKind.DESTINATION),
        "security": {
            "encrypted_count": overview.encrypted_count,
            "total_count": overview.total_count,
            "encrypted_ratio": overview.encrypted_ratio,
            "encrypted_percentage": overview.encrypted_percentage,
        },
        "breakdown": [
            {
                "protocol": share.protocol,
                "count": share.count,
                "percentage": round(share.percentage_of_buffer, 2),
                "security": share.profile.security.value,
                "port": share.profile.port,
                "encrypted": share.profile.encrypted,
                "description": share.profile.description,
            }
            for share in analyzer.per_protocol_breakdown(stats)
        ],
        "tiers": {tier.value: count for tier, count in analyzer.tier_breakdown(stats).items()},
        "recommendations": analyzer.recommendations(stats),
        "recent_packets": [_packet_entry(packet) for packet in snapshot.packets[:top_n]],
    }


def _packet_entry(packet) -> Dict[str, Any]:
    entry = packet.to_dict()
    entry.update(capture_time_parts(packet.captured_at))
    return entry


def render_report(report: Dict[str, Any]) -> str:
    if report["packets_buffered"] == 0:
        return "No packets captured.\n" + _render_recommendations(report)

    lines = [
        f"Packets captured: {report['total_ever_seen']} "
        f"(buffered {report['packets_buffered']}/{report['capacity']})",
        f"Total data: {report['total_bytes_human']}",
        f"Average size: {round(report['average_packet_size'])}B",
        f"Protocols: {report['distinct_protocols']}",
        "",
    ]
    for title, key in (
        ("Top protocols", "top_protocols"),
        ("Top source IPs", "top_sources"),
        ("Top destination IPs", "top_destinations"),
    ):
        lines.append(f"{title}:")
        for entry in report[key]:
            lines.append(f"  {entry['key']:<24} {entry['count']:>6}")
        lines.append("")

    security = report["security"]
    lines.append(
        f"Encrypted traffic: {security['encrypted_count']}/{security['total_count']} packets "
        f"({security['encrypted_percentage']}%)"
    )
    lines.append("")
    lines.append("Protocol breakdown:")
    for share in report["breakdown"]:
        encrypted = "yes" if share["encrypted"] else "no"
        lines.append(
            f"  {share['protocol']:<8} {share['count']:>6} {share['percentage']:>6.1f}%  "
            f"security={share['security']} port={share['port']} encrypted={encrypted}"
        )
    lines.append("")
    lines.append("Recent packets:")
    for entry in report["recent_packets"]:
        lines.append(
            f"  {format_capture_time(entry['captured_at'])}  {entry['protocol']:<6} "
            f"{entry['length_bytes']:>5}B  {entry['summary']}"
        )
    lines.append("")
    return "\n".join(lines) + "\n" + _render_recommendations(report)


def _render_recommendations(report: Dict[str, Any]) -> str:
    lines = ["Security recommendations:"]
    lines.extend(f"  - {advice}" for advice in report["recommendations"])
    return "\n".join(lines) + "\n"


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.list_interfaces:
        devices = list_devices()
        if args.json:
            print(json.dumps([device.to_dict() for device in devices], indent=2))
        else:
            for device in devices:
                addresses = ", ".join(device.addresses) or "-"
                print(f"{device.name:<16} {addresses}")
        return 0

    try:
        options = resolve_options(args)
        controller = run_capture(options)
    except (PacketPeekError, FileNotFoundError) as exc:
        logger.error(str(exc))
        return 1

    report = build_report(controller, options.top_n)
    if args.json:
        print(json.dumps(report, indent=2))
    else:
        sys.stdout.write(render_report(report))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
