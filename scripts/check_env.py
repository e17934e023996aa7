"""Utility for verifying the assistant's environment configuration.

The tool performs three jobs:

1. It attempts to instantiate ``AppSettings`` using the provided ``.env`` file,
   surfacing missing Google OAuth or Gemini credentials before sign-in starts
   failing.
2. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.
3. It generates a random value suitable for ``SESSION_SECRET`` and can write
   it into the ``.env`` file when the key is missing.

Example usages::

    # Validate required settings are present and record the expected checksum.
    python -m scripts.check_env record --env-file .env --hash-file .env.sha256

    # Run later to alert on drift.
    python -m scripts.check_env verify --env-file .env --hash-file .env.sha256

    # Print a fresh session secret, or store one in .env if it has none.
    python -m scripts.check_env secret
    python -m scripts.check_env secret --write --env-file .env
"""

from __future__ import annotations

import argparse
import hashlib
import secrets
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from assistant.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

SECRET_BYTES = 32
SECRET_KEY = "SESSION_SECRET"


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _generate_secret(env_file: Path, write: bool) -> int:
    """Print a new session secret, or store one in ``env_file`` when it has none."""
    secret = secrets.token_hex(SECRET_BYTES)
    if not write:
        print(secret)
        return EXIT_OK

    lines = env_file.read_text(encoding="utf-8").splitlines() if env_file.exists() else []
    for index, line in enumerate(lines):
        key, _, value = line.partition("=")
        if key.strip() != SECRET_KEY:
            continue
        if value.strip():
            print(f"{SECRET_KEY} already set in {env_file}; leaving it unchanged.")
            return EXIT_OK
        lines[index] = f"{SECRET_KEY}={secret}"
        break
    else:
        lines.append(f"{SECRET_KEY}={secret}")

    env_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
    print(f"Wrote a new {SECRET_KEY} to {env_file}.")
    return EXIT_OK


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    """Persist the current checksum to ``hash_file``."""
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Investigate recent changes before restarting the API.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate assistant settings, detect .env drift, or mint a session secret."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    record_parser = subparsers.add_parser(
        "record",
        help="Validate settings and store the checksum baseline.",
    )
    add_common_arguments(record_parser)
    record_parser.add_argument(
        "--hash-file",
        required=True,
        type=Path,
        help="Location to write the checksum baseline.",
    )

    verify_parser = subparsers.add_parser(
        "verify",
        help="Validate settings and compare the checksum with the baseline.",
    )
    add_common_arguments(verify_parser)
    verify_parser.add_argument(
        "--hash-file",
        required=True,
        type=Path,
        help="Location of the previously recorded checksum baseline.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_common_arguments(check_parser)

    secret_parser = subparsers.add_parser(
        "secret",
        help="Print a random hex string to use as SESSION_SECRET.",
    )
    add_common_arguments(secret_parser)
    secret_parser.add_argument(
        "--write",
        action="store_true",
        help="Store the secret in the env file unless one is already set.",
    )

    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    command: str = args.command
    if command == "secret":
        return _generate_secret(args.env_file, args.write)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _validate_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    if not settings.security.session_secret:
        print(
            "SESSION_SECRET is not set; session cookies fall back to a key derived "
            "from GOOGLE_CLIENT_SECRET. Run 'secret --write' to generate one.",
            file=sys.stderr,
        )

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
