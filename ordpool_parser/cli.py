"""Command-line interface for the inscription parser.

The CLI is a thin façade: transactions come from a node over RPC or from a
JSON document on disk, and the decoded inscriptions are printed as a table or
as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Sequence

from .config import ConfigurationError, load_rpc_config
from .ordinals import (
    Inscription,
    InscriptionLocation,
    InscriptionScanner,
    OrdinalInscriptionDecoder,
    ScanConfig,
    parse_inscriptions,
)
from .rpc_client import BitcoinRPCClient, RPCError, RPCTransportError, format_rpc_hint

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 60
TEXT_CONTENT_PREFIXES = ("text/", "application/json")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _add_rpc_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to a YAML config file with an 'rpc' section")
    parser.add_argument("--rpc-url", help="Override RPC URL (http:// or https://)")
    parser.add_argument("--rpc-host", help="Override RPC host")
    parser.add_argument("--rpc-port", type=int, help="Override RPC port")
    parser.add_argument("--rpc-user", help="Override RPC username")
    parser.add_argument("--rpc-password", help="Override RPC password")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ordinal inscription parser")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_tx_parser = subparsers.add_parser(
        "decode-tx", help="Fetch a transaction over RPC and decode its inscriptions"
    )
    decode_tx_parser.add_argument("txid", help="Transaction id to inspect")
    decode_tx_parser.add_argument(
        "--json", dest="as_json", action="store_true", help="Emit inscriptions as JSON"
    )
    _add_rpc_arguments(decode_tx_parser)

    decode_file_parser = subparsers.add_parser(
        "decode-file", help="Decode inscriptions from a transaction JSON document"
    )
    decode_file_parser.add_argument(
        "path", help="Path to the transaction JSON, or '-' to read from stdin"
    )
    decode_file_parser.add_argument(
        "--json", dest="as_json", action="store_true", help="Emit inscriptions as JSON"
    )

    scan_parser = subparsers.add_parser("scan", help="Scan a block range for inscriptions")
    scan_parser.add_argument("--start-height", type=int, help="Starting block height")
    scan_parser.add_argument("--end-height", type=int, help="Ending block height (default: tip)")
    scan_parser.add_argument(
        "--limit", type=int, default=50, help="Maximum number of inscriptions to report (default: 50)"
    )
    scan_parser.add_argument(
        "--json", dest="as_json", action="store_true", help="Emit scan results as JSON"
    )
    _add_rpc_arguments(scan_parser)

    return parser


def _rpc_from_args(args: argparse.Namespace) -> BitcoinRPCClient:
    overrides = {
        "url": args.rpc_url,
        "host": args.rpc_host,
        "port": args.rpc_port,
        "user": args.rpc_user,
        "password": args.rpc_password,
    }
    config = load_rpc_config(config_path=args.config, overrides=overrides)
    return BitcoinRPCClient(config)


def _preview(inscription: Inscription) -> str:
    if not inscription.content_type.startswith(TEXT_CONTENT_PREFIXES):
        return f"<{inscription.content_length} bytes>"
    text = " ".join(inscription.content_string.split())
    if len(text) > PREVIEW_LENGTH:
        text = text[: PREVIEW_LENGTH - 3] + "..."
    return text


def _print_inscriptions(entries: Iterable[tuple[str, Inscription]]) -> None:
    print(" id | content type | bytes | encoding | pointer | parent | preview")
    for label, inscription in entries:
        pointer = inscription.pointer if inscription.pointer is not None else "-"
        parent = inscription.parent or "-"
        encoding = inscription.content_encoding or "-"
        print(
            f"{label} | {inscription.content_type} | {inscription.content_length} | "
            f"{encoding} | {pointer} | {parent} | {_preview(inscription)}"
        )


def _emit(inscriptions: Sequence[Inscription], txid: str | None, as_json: bool) -> None:
    labels = [f"{txid}i{index}" if txid else str(index) for index in range(len(inscriptions))]
    if as_json:
        output: list[dict[str, Any]] = []
        for label, inscription in zip(labels, inscriptions):
            output.append({"id": label, **inscription.to_dict()})
        print(json.dumps(output, indent=2))
        return
    if not inscriptions:
        print("No inscriptions found.")
        return
    _print_inscriptions(zip(labels, inscriptions))


def cmd_decode_tx(args: argparse.Namespace) -> None:
    rpc = _rpc_from_args(args)
    decoder = OrdinalInscriptionDecoder(rpc)
    inscriptions = decoder.decode_from_tx(args.txid)
    _emit(inscriptions, args.txid, args.as_json)


def _load_transaction(path: str) -> dict[str, Any]:
    try:
        text = sys.stdin.read() if path == "-" else Path(path).read_text()
    except OSError as exc:
        raise CLIError(f"cannot read {path}: {exc}") from exc
    try:
        transaction = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CLIError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(transaction, dict):
        raise CLIError(f"{path} must contain a transaction JSON object")
    return transaction


def cmd_decode_file(args: argparse.Namespace) -> None:
    transaction = _load_transaction(args.path)
    inscriptions = parse_inscriptions(transaction)
    txid = transaction.get("txid")
    _emit(inscriptions, txid if isinstance(txid, str) else None, args.as_json)


def cmd_scan(args: argparse.Namespace) -> None:
    if args.limit is not None and args.limit <= 0:
        raise CLIError("--limit must be positive")
    rpc = _rpc_from_args(args)
    config = ScanConfig(
        start_height=args.start_height,
        end_height=args.end_height,
        limit=args.limit,
    )
    try:
        locations = InscriptionScanner(rpc).scan_range(config)
    except ValueError as exc:
        raise CLIError(str(exc)) from exc

    if args.as_json:
        print(
            json.dumps(
                [
                    {"id": loc.inscription_id, "height": loc.height, **loc.inscription.to_dict()}
                    for loc in locations
                ],
                indent=2,
            )
        )
        return
    if not locations:
        print("No inscriptions found.")
        return
    _print_scan(locations)


def _print_scan(locations: Sequence[InscriptionLocation]) -> None:
    print(f"Found {len(locations)} inscription(s)")
    _print_inscriptions(
        (f"{loc.height if loc.height is not None else '-'}:{loc.inscription_id}", loc.inscription)
        for loc in locations
    )


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))
    try:
        if args.command == "decode-tx":
            cmd_decode_tx(args)
        elif args.command == "decode-file":
            cmd_decode_file(args)
        elif args.command == "scan":
            cmd_scan(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except RPCError as exc:
        hint = format_rpc_hint(exc)
        message = f"error: {exc}\n" + (f"Hint: {hint}\n" if hint else "")
        parser.exit(1, message)
    except (CLIError, ConfigurationError, RPCTransportError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
