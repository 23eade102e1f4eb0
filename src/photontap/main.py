"""
photontap — Photon traffic decoder entry point

Usage:
    python -m photontap live                       # sniff and print decoded events
    python -m photontap live --iface eth0 -v
    python -m photontap record --timeout 60        # save a capture session
    python -m photontap replay captures/run1.json  # decode a saved session
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console

from photontap.config import DecoderConfig
from photontap.data.emitter import QueuedSubscriber
from photontap.data.pipeline import DecodeWorker, PhotonPipeline
from photontap.monitor import diagnostics_table, format_delivery

log = logging.getLogger("photontap")

console = Console()


def build_config(args: argparse.Namespace) -> DecoderConfig:
    config = DecoderConfig.load(args.config) if args.config else DecoderConfig()
    return config.replace(
        max_depth=args.max_depth,
        max_fragment_slots=args.max_slots,
        fragment_max_age=args.slot_age,
        udp_ports=args.ports,
    )


def parse_ports(s: str) -> list[int]:
    """Parse a port list like '5055,5056'."""
    return [int(p) for p in s.split(",") if p.strip()]


def cmd_live(args: argparse.Namespace, config: DecoderConfig) -> int:
    from photontap.sniffer.capture import PhotonSniffer

    pipeline = PhotonPipeline(config)
    printer = QueuedSubscriber(
        lambda item: console.print(format_delivery(item)),
        maxsize=config.subscriber_queue_size,
        name="console",
    ).start()
    pipeline.subscribe(printer)

    worker = DecodeWorker(pipeline).start()
    sniffer = PhotonSniffer(ports=config.udp_ports, iface=args.iface)
    sniffer.on_packet(lambda pkt: worker.offer(pkt.payload))

    try:
        sniffer.start(timeout=args.timeout or None)
    finally:
        worker.join(timeout=2.0)
        printer.flush(timeout=2.0)
        worker.stop()
        printer.stop()
        console.print(diagnostics_table(
            pipeline.diagnostics, pipeline.packets_processed, pipeline.emitter.emitted,
        ))
    return 0


def cmd_record(args: argparse.Namespace, config: DecoderConfig) -> int:
    from photontap.sniffer.capture import PhotonSniffer
    from photontap.sniffer.session import CaptureSession

    session = CaptureSession(PhotonSniffer(ports=config.udp_ports, iface=args.iface), name=args.name or "")
    try:
        session.start(timeout=args.timeout or None)
    finally:
        path = session.save(args.out)
        console.print(session.summary())
        console.print(f"saved to {path}")
    return 0


def cmd_replay(args: argparse.Namespace, config: DecoderConfig) -> int:
    from photontap.sniffer.session import CaptureSession

    session = CaptureSession.load(args.file)
    pipeline = PhotonPipeline(config)
    if not args.quiet:
        pipeline.subscribe(lambda item: console.print(format_delivery(item)))

    fed = session.replay(pipeline, direction=args.direction)
    log.info("Replayed %d packets from %s", fed, args.file)
    console.print(diagnostics_table(
        pipeline.diagnostics, pipeline.packets_processed, pipeline.emitter.emitted,
    ))
    return 0


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photontap",
        description="Decode Photon realtime traffic into events, requests and responses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="JSON file with DecoderConfig fields")
    parser.add_argument("--max-depth", type=int, default=None,
                        help="Maximum value nesting depth")
    parser.add_argument("--max-slots", type=int, default=None,
                        help="Maximum in-flight fragment slots")
    parser.add_argument("--slot-age", type=float, default=None,
                        help="Seconds before an incomplete fragment slot expires")
    parser.add_argument("--ports", type=parse_ports, default=None,
                        help="UDP ports, comma separated (default: 5055,5056)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    live = sub.add_parser("live", help="Sniff and print decoded traffic")
    live.add_argument("--iface", help="Network interface to sniff on")
    live.add_argument("--timeout", type=int, default=0,
                      help="Capture timeout in seconds (0=infinite)")

    record = sub.add_parser("record", help="Record a capture session to JSON")
    record.add_argument("--iface", help="Network interface to sniff on")
    record.add_argument("--timeout", type=int, default=0,
                        help="Capture timeout in seconds (0=infinite)")
    record.add_argument("--name", help="Session name (default: timestamp)")
    record.add_argument("--out", default="captures", help="Output directory")

    replay = sub.add_parser("replay", help="Decode a saved capture session")
    replay.add_argument("file", help="Session JSON file")
    replay.add_argument("--direction", choices=["C2S", "S2C"], default=None,
                        help="Only replay one direction")
    replay.add_argument("-q", "--quiet", action="store_true",
                        help="Only print the summary")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = make_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        log.error("Bad configuration: %s", e)
        return 2

    match args.command:
        case "live":
            return cmd_live(args, config)
        case "record":
            return cmd_record(args, config)
        case "replay":
            return cmd_replay(args, config)
    return 1


if __name__ == "__main__":
    sys.exit(main())
