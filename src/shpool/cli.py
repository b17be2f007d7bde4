"""
Command-line tools for note holders and pool operators.

Usage:
    shpool note generate --value 100 --secret 0x1234...
    shpool note inspect shpool-note-v1-64-...
    shpool ciphertext encrypt --amount 100 --nullifier 0x... --recipient 0x...
    shpool ciphertext decrypt --ciphertext 0x... --nullifier 0x... --recipient 0x...
    shpool recipient-field 0x...
    shpool roots register 0x... --caller 0x...
    shpool roots list
    shpool state
    shpool self-test

Environment Variables:
    SHPOOL_DATABASE_URL          Ledger database (default: sqlite:///shielded_pool.db)
    SHPOOL_ADMIN_ADDRESSES       Comma-separated operator addresses
    SHPOOL_ADMIN_TOKEN_SECRET    HMAC key for operator bearer tokens
    SHPOOL_FIELD_HASH_VECTORS    JSON file of field hash vectors for the self-test
    SHPOOL_LOG_LEVEL             Log level (default: INFO)
"""

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from pydantic import BaseModel, ValidationError

from shpool import __version__
from shpool.config import PoolSettings, configure_logging, get_settings
from shpool.core.interfaces import InMemoryToken, StaticVerifier
from shpool.core.note import generate_note, parse_note, serialize_note
from shpool.core.pool import ShieldedPool
from shpool.crypto.ciphertext import compute_ciphertext, decrypt_ciphertext, pool_salt
from shpool.crypto.field_hash import load_vectors, run_self_test
from shpool.exceptions import ShieldedPoolError
from shpool.models.schemas import (
    CiphertextRequest,
    CiphertextResponse,
    NoteResponse,
    PoolStateResponse,
    RootListResponse,
)
from shpool.utils.encoding import bytes32_to_int, bytes_to_hex, to_bytes32, to_recipient_field

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_REJECTED = 2


def _emit(model: BaseModel) -> None:
    print(json.dumps(model.model_dump(mode="json"), indent=2))


def _settings(args: argparse.Namespace) -> PoolSettings:
    settings = get_settings()
    if getattr(args, "database_url", None):
        settings = settings.model_copy(update={"database_url": args.database_url})
    return settings


def _open_pool(settings: PoolSettings) -> ShieldedPool:
    """Pool restored from the configured database, for ledger administration only."""
    return ShieldedPool.from_settings(settings, verifier=StaticVerifier(accept=False), token=InMemoryToken())


def _note_response(note, root: Optional[str]) -> NoteResponse:
    return NoteResponse(
        note=serialize_note(note),
        value=note.value,
        commitment=bytes_to_hex(note.commitment),
        nullifier_hash=bytes_to_hex(note.nullifier_hash),
        expected_root=bytes_to_hex(note.expected_root(to_bytes32(root))) if root else None,
    )


# ========== COMMANDS ==========

def note_generate_cmd(args: argparse.Namespace) -> int:
    note = generate_note(args.value, secret=args.secret, nullifier_seed=args.seed)
    _emit(_note_response(note, args.root))
    return EXIT_SUCCESS


def note_inspect_cmd(args: argparse.Namespace) -> int:
    note = parse_note(args.note)
    _emit(_note_response(note, args.root))
    return EXIT_SUCCESS


def ciphertext_encrypt_cmd(args: argparse.Namespace) -> int:
    request = CiphertextRequest(
        nullifier=args.nullifier,
        recipient=args.recipient,
        salt_label=args.salt_label or _settings(args).pool_salt_label,
    )
    recipient_field = to_recipient_field(request.recipient)
    ciphertext = compute_ciphertext(args.amount, request.nullifier, recipient_field, pool_salt(request.salt_label))
    _emit(
        CiphertextResponse(
            ciphertext=bytes_to_hex(ciphertext),
            amount=args.amount,
            nullifier=request.nullifier,
            recipient_field=bytes_to_hex(recipient_field),
        )
    )
    return EXIT_SUCCESS


def ciphertext_decrypt_cmd(args: argparse.Namespace) -> int:
    request = CiphertextRequest(
        nullifier=args.nullifier,
        recipient=args.recipient,
        salt_label=args.salt_label or _settings(args).pool_salt_label,
    )
    recipient_field = to_recipient_field(request.recipient)
    amount = decrypt_ciphertext(args.ciphertext, request.nullifier, recipient_field, pool_salt(request.salt_label))
    _emit(
        CiphertextResponse(
            ciphertext=bytes_to_hex(to_bytes32(args.ciphertext)),
            amount=amount,
            nullifier=request.nullifier,
            recipient_field=bytes_to_hex(recipient_field),
        )
    )
    return EXIT_SUCCESS


def recipient_field_cmd(args: argparse.Namespace) -> int:
    field = to_recipient_field(args.address)
    print(bytes_to_hex(field))
    if args.decimal:
        print(bytes32_to_int(field))
    return EXIT_SUCCESS


def roots_register_cmd(args: argparse.Namespace) -> int:
    pool = _open_pool(_settings(args))
    caller = f"Bearer {args.token}" if args.token else args.caller
    added = pool.register_root(args.root, caller)
    print(json.dumps({"root": bytes_to_hex(to_bytes32(args.root)), "added": added}))
    return EXIT_SUCCESS


def roots_list_cmd(args: argparse.Namespace) -> int:
    pool = _open_pool(_settings(args))
    _emit(
        RootListResponse(
            current_root=bytes_to_hex(pool.current_root),
            roots=[bytes_to_hex(r) for r in pool.roots.roots],
            pending_roots=[bytes_to_hex(r) for r in pool.pending_roots()],
        )
    )
    return EXIT_SUCCESS


def state_cmd(args: argparse.Namespace) -> int:
    pool = _open_pool(_settings(args))
    _emit(PoolStateResponse(**pool.get_state().to_dict()))
    return EXIT_SUCCESS


def self_test_cmd(args: argparse.Namespace) -> int:
    path = args.vectors or _settings(args).field_hash_vectors
    vectors = load_vectors(path) if path else None
    run_self_test(vectors=vectors)
    print(json.dumps({"ok": True, "vectors": len(vectors or [])}))
    return EXIT_SUCCESS


# ========== PARSER ==========

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="shpool",
        description="Shielded pool tools: notes, v2b ciphertexts and root administration.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides SHPOOL_LOG_LEVEL)",
    )
    parser.add_argument("--database-url", type=str, default=None, help="Ledger database URL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- note ---
    note_parser = subparsers.add_parser("note", help="Generate or inspect notes")
    note_sub = note_parser.add_subparsers(dest="note_command")

    generate_parser = note_sub.add_parser("generate", help="Create a note and its commitment")
    generate_parser.add_argument("--value", type=int, required=True, help="Amount in token units")
    generate_parser.add_argument("--secret", type=str, required=True, help="Secret (decimal or 0x-hex)")
    generate_parser.add_argument("--seed", type=str, default=None, help="Nullifier seed (random if omitted)")
    generate_parser.add_argument("--root", type=str, default=None, help="Current root, to print the expected next root")
    generate_parser.set_defaults(func=note_generate_cmd)

    inspect_parser = note_sub.add_parser("inspect", help="Decode a note string")
    inspect_parser.add_argument("note", type=str, help="Compact note string")
    inspect_parser.add_argument("--root", type=str, default=None, help="Current root, to print the expected next root")
    inspect_parser.set_defaults(func=note_inspect_cmd)

    # --- ciphertext ---
    ct_parser = subparsers.add_parser("ciphertext", help="v2b amount disclosure")
    ct_sub = ct_parser.add_subparsers(dest="ciphertext_command")

    encrypt_parser = ct_sub.add_parser("encrypt", help="Compute the ciphertext for a withdrawal")
    encrypt_parser.add_argument("--amount", type=int, required=True)
    encrypt_parser.add_argument("--nullifier", type=str, required=True, help="Nullifier hash (hex)")
    encrypt_parser.add_argument("--recipient", type=str, required=True, help="Recipient address")
    encrypt_parser.add_argument("--salt-label", type=str, default=None)
    encrypt_parser.set_defaults(func=ciphertext_encrypt_cmd)

    decrypt_parser = ct_sub.add_parser("decrypt", help="Recover the amount from a ciphertext")
    decrypt_parser.add_argument("--ciphertext", type=str, required=True)
    decrypt_parser.add_argument("--nullifier", type=str, required=True, help="Nullifier hash (hex)")
    decrypt_parser.add_argument("--recipient", type=str, required=True, help="Recipient address")
    decrypt_parser.add_argument("--salt-label", type=str, default=None)
    decrypt_parser.set_defaults(func=ciphertext_decrypt_cmd)

    # --- recipient-field ---
    rf_parser = subparsers.add_parser("recipient-field", help="Left-pad an address into a public input")
    rf_parser.add_argument("address", type=str)
    rf_parser.add_argument("--decimal", action="store_true", default=False, help="Also print as an integer")
    rf_parser.set_defaults(func=recipient_field_cmd)

    # --- roots ---
    roots_parser = subparsers.add_parser("roots", help="Root registry administration")
    roots_sub = roots_parser.add_subparsers(dest="roots_command")

    register_parser = roots_sub.add_parser("register", help="Register a root (operator only)")
    register_parser.add_argument("root", type=str)
    register_parser.add_argument("--caller", type=str, default=None, help="Operator address")
    register_parser.add_argument("--token", type=str, default=None, help="Operator bearer token")
    register_parser.set_defaults(func=roots_register_cmd)

    list_parser = roots_sub.add_parser("list", help="List registered roots")
    list_parser.set_defaults(func=roots_list_cmd)

    # --- state ---
    state_parser = subparsers.add_parser("state", help="Show ledger counts")
    state_parser.set_defaults(func=state_cmd)

    # --- self-test ---
    st_parser = subparsers.add_parser("self-test", help="Check the hash configuration")
    st_parser.add_argument("--vectors", type=str, default=None, help="JSON file of field hash vectors")
    st_parser.set_defaults(func=self_test_cmd)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_RUNTIME_ERROR

    try:
        configure_logging(args.log_level)
        return args.func(args)
    except ShieldedPoolError as e:
        print(f"error: {e.code}: {e}", file=sys.stderr)
        return EXIT_REJECTED
    except (ValidationError, ValueError, TypeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
