#!/usr/bin/env python3
"""
neuralhash CLI — Fingerprint, check and disclose credential payloads.

The offline commands work on local JSON files; `verify` reads the ledger and
IPFS using settings from the environment.

Commands:
    fingerprint - Canonical Keccak-256 fingerprint of a payload
    check       - Integrity check of a payload against a fingerprint
    disclose    - Allow-listed view of a payload
    schemas     - Supported document types and their fields
    verify      - Verify a wallet's credentials on-chain
    serve       - Run the HTTP API
"""

import argparse
import asyncio
import json
import sys
from typing import Optional


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, 'json', False):
        print(json.dumps(data, indent=2, default=str))
    elif human_fn:
        human_fn(data)
    else:
        print(json.dumps(data, indent=2, default=str))


def _read_bytes(path: str) -> bytes:
    """Read a payload file (- for stdin)."""
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as f:
        return f.read()


_STATUS_ICONS = {
    "authentic": "✅",
    "tampered": "❌",
    "revoked": "⛔",
    "fetch_failed": "⚠️",
}


# ─── Commands ──────────────────────────────────────────────────────

def cmd_fingerprint(args):
    """Fingerprint a payload file."""
    from neuralhash.canonical import canonical_json
    from neuralhash.hashing import credential_fingerprint
    from neuralhash.payload import normalize_payload

    normalized = normalize_payload(_read_bytes(args.file))
    if not normalized.valid:
        raise ValueError(f"{args.file} does not contain a JSON object")

    result = {
        "file": args.file,
        "shape": normalized.shape.value,
        "fingerprint": credential_fingerprint(normalized.data),
        "canonical": canonical_json(normalized.data),
    }

    def human(d):
        print(f"🔑 {d['fingerprint']}")
        print(f"   Shape:     {d['shape']}")
        print(f"   Canonical: {d['canonical']}")

    _output(result, args, human)
    return result


def cmd_check(args):
    """Check a payload file against an expected fingerprint."""
    from neuralhash.integrity import evaluate
    from neuralhash.ledger import CredentialRecord

    record = CredentialRecord(
        credential_hash=args.hash,
        ipfs_cid=args.file,
        issuer="",
        is_valid=not args.revoked,
    )
    raw = None if args.revoked else _read_bytes(args.file)
    result = evaluate(record, raw).to_dict()

    def human(d):
        icon = _STATUS_ICONS.get(d["status"], "?")
        print(f"{icon} {d['status'].replace('_', ' ').upper()}")
        print(f"   Expected:   {d['credential_hash']}")
        if d.get("recomputed_hash"):
            print(f"   Recomputed: {d['recomputed_hash']}")
        if d.get("error"):
            print(f"   Error:      {d['error']}")

    _output(result, args, human)
    return result


def cmd_disclose(args):
    """Show only the allow-listed fields of a payload file."""
    from neuralhash.disclosure import PUBLIC_ALLOW_LIST, DisclosureAllowList, filter_disclosure

    if args.fields:
        allow_list = DisclosureAllowList.from_claim_request(
            f.strip() for f in args.fields.split(",")
        )
    else:
        allow_list = PUBLIC_ALLOW_LIST

    disclosed = filter_disclosure(_read_bytes(args.file), allow_list)
    result = {"allow_list": sorted(allow_list.fields), "disclosed": disclosed}

    def human(d):
        if not d["disclosed"]:
            print("📭 Nothing to disclose")
            return
        print(f"🔍 Disclosed ({', '.join(d['allow_list'])})")
        for key, value in d["disclosed"].items():
            print(f"   {key}: {value}")

    _output(result, args, human)
    return result


def cmd_schemas(args):
    """List supported document types."""
    from neuralhash.schemas import DOCUMENT_SCHEMAS, format_field_label

    result = {doc_type: list(fields) for doc_type, fields in DOCUMENT_SCHEMAS.items()}

    def human(d):
        print(f"📄 {len(d)} document types")
        for doc_type, fields in d.items():
            print(f"   {doc_type}: {', '.join(format_field_label(f) for f in fields)}")

    _output(result, args, human)
    return result


def cmd_verify(args):
    """Verify a wallet's credentials against the ledger and IPFS."""
    from neuralhash.config import Settings
    from neuralhash.errors import ConfigError
    from neuralhash.ledger import Web3CredentialLedger, Web3TrustRegistry, is_address
    from neuralhash.storage import PinataContentStore
    from neuralhash.verifier import CredentialVerifier

    if not is_address(args.address):
        raise ValueError(f"invalid wallet address: {args.address}")

    settings = Settings.from_env()
    ledger = Web3CredentialLedger.from_settings(settings)
    if ledger is None:
        raise ConfigError("RPC_URL is not configured.")
    verifier = CredentialVerifier(
        ledger,
        PinataContentStore.from_settings(settings),
        Web3TrustRegistry.from_settings(settings),
    )

    view = asyncio.run(verifier.verify_address(args.address, args.hash))
    result = {
        "address": args.address,
        "stats": view.stats,
        "results": [r.to_dict() for r in view.reports.values()],
    }

    def human(d):
        s = d["stats"]
        print(f"👛 {d['address']}: {s['total']} credentials ({s['active']} active, {s['revoked']} revoked)")
        if not d["results"]:
            print("   No matching credentials")
        for r in d["results"]:
            print(f"   {r['message']}")
            print(f"      Hash:   {r['credential_hash']}")
            print(f"      CID:    {r['ipfs_cid']}")
            print(f"      Issuer: {r['issuer']}")
            if r.get("issuer_trusted") is not None:
                print(f"      Trusted issuer: {'yes' if r['issuer_trusted'] else 'no'}")

    _output(result, args, human)
    return result


def cmd_serve(args):
    """Run the HTTP API with uvicorn."""
    import uvicorn
    from neuralhash.api import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)
    return {"host": args.host, "port": args.port}


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="neuralhash",
        description="neuralhash — verifiable credential CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # fingerprint
    p = sub.add_parser("fingerprint", help="Fingerprint a credential payload")
    p.add_argument("file", help="Payload JSON file (- for stdin)")

    # check
    p = sub.add_parser("check", help="Check a payload against its fingerprint")
    p.add_argument("file", help="Payload JSON file (- for stdin)")
    p.add_argument("--hash", required=True, help="Fingerprint recorded on the ledger")
    p.add_argument("--revoked", action="store_true", help="Treat the credential as revoked")

    # disclose
    p = sub.add_parser("disclose", help="Show allow-listed fields of a payload")
    p.add_argument("file", help="Payload JSON file (- for stdin)")
    p.add_argument("-f", "--fields", help="Comma-separated allow-list (default: public fields)")

    # schemas
    sub.add_parser("schemas", help="List supported document types")

    # verify
    p = sub.add_parser("verify", help="Verify a wallet's credentials")
    p.add_argument("address", help="Wallet address")
    p.add_argument("--hash", help="Only verify this credential fingerprint")

    # serve
    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "fingerprint": cmd_fingerprint,
        "check": cmd_check,
        "disclose": cmd_disclose,
        "schemas": cmd_schemas,
        "verify": cmd_verify,
        "serve": cmd_serve,
    }

    try:
        return commands[args.command](args)
    except FileNotFoundError as e:
        print(f"❌ File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
