"""CLI entrypoints for attendance sync, connectivity checks, diagnostics, and replay."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from pathlib import Path

from timeclock_core import (
    ConfigError,
    DiagnosticsExporter,
    SyncService,
    build_doctor_payload,
    load_config,
)
from timeclock_core.config import require_remote_api
from timeclock_core.logging_setup import configure_logging, get_logger
from timeclock_core.sync_service import build_record_transport
from timeclock_device import ReplayRunner

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _load(args: argparse.Namespace):
    path = Path(args.config).expanduser() if getattr(args, "config", None) else None
    return load_config(path)


def cmd_sync(args: argparse.Namespace) -> int:
    cfg = _load(args)
    service = SyncService(cfg)
    report = service.run(
        clear=(True if args.clear else None),
        batch_size=args.batch_size,
        dry_run=args.dry_run,
    )
    _print_json(report.to_dict())
    return EXIT_OK if report.success else EXIT_FAILED


def cmd_test(args: argparse.Namespace) -> int:
    cfg = _load(args)
    service = SyncService(cfg)
    result = service.test_connections()
    _print_json(result)
    return EXIT_OK if all(result.values()) else EXIT_FAILED


def cmd_status(args: argparse.Namespace) -> int:
    cfg = _load(args)
    require_remote_api(cfg)
    transport = build_record_transport(cfg)
    status = transport.get_sync_status({"device_ip": cfg.device.ip})
    _print_json({"success": status is not None, "status": status})
    return EXIT_OK if status is not None else EXIT_FAILED


def cmd_doctor(args: argparse.Namespace) -> int:
    cfg = _load(args)
    connections = None
    service = SyncService(cfg)
    if args.check and cfg.device.ip:
        connections = service.test_connections()
    payload = build_doctor_payload(cfg, connections=connections)

    if args.export:
        exporter = DiagnosticsExporter()
        out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
        bundle = exporter.bundle(
            cfg=cfg,
            doctor_payload=payload,
            recent_sync_events=service.recent_events(),
            output_dir=out_dir,
        )
        payload["diagnostics_bundle"] = str(bundle)

    _print_json(payload)
    return EXIT_OK


def cmd_replay(args: argparse.Namespace) -> int:
    runner = ReplayRunner()
    report = runner.run(Path(args.capture), strict=not args.no_strict)
    payload = asdict(report)
    payload["success"] = len(report.errors) == 0
    _print_json(payload)
    return EXIT_OK if not report.errors else EXIT_CONFIG


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timeclock", description="Sync time clock punches to a remote collector")
    parser.add_argument("--config", default=None, help="Path to config JSON (defaults to the platform config dir)")
    sub = parser.add_subparsers(dest="command", required=True)

    sync_cmd = sub.add_parser("sync", help="Read attendance from the device and upload it")
    sync_cmd.add_argument("--clear", action="store_true", help="Clear device records after a fully successful upload")
    sync_cmd.add_argument("--batch-size", type=int, default=None, help="Records per upload request")
    sync_cmd.add_argument("--dry-run", action="store_true", help="Read and decode records without uploading")
    sync_cmd.set_defaults(func=cmd_sync)

    test_cmd = sub.add_parser("test", help="Test device and remote API connectivity")
    test_cmd.set_defaults(func=cmd_test)

    status_cmd = sub.add_parser("status", help="Query the collector's sync status for this device")
    status_cmd.set_defaults(func=cmd_status)

    doctor_cmd = sub.add_parser("doctor", help="Print diagnostics with secrets redacted")
    doctor_cmd.add_argument("--check", action="store_true", help="Also test device and API connectivity")
    doctor_cmd.add_argument("--export", action="store_true", help="Export offline diagnostics bundle")
    doctor_cmd.add_argument("--out-dir", default=None, help="Optional output directory for diagnostics bundle")
    doctor_cmd.set_defaults(func=cmd_doctor)

    replay_cmd = sub.add_parser("replay", help="Analyze a captured datagram log")
    replay_cmd.add_argument("--capture", required=True, help="Path to JSONL capture")
    replay_cmd.add_argument("--no-strict", action="store_true", help="Skip mandatory connect/exit checks")
    replay_cmd.set_defaults(func=cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = _load(args)
    except ConfigError as exc:
        _print_json({"success": False, "error": str(exc)})
        return EXIT_CONFIG
    configure_logging(keep_files=cfg.logging.keep_log_files, console=False, debug=cfg.logging.debug)

    try:
        return int(args.func(args))
    except ConfigError as exc:
        get_logger().error("configuration error: %s", exc)
        _print_json({"success": False, "error": str(exc)})
        return EXIT_CONFIG


if __name__ == "__main__":
    raise SystemExit(main())
