#!/usr/bin/env python3
"""
Encrypt a secret (usually DISCORD_TOKEN) for a Cardinal .env file.

Usage:
    python scripts/encrypt_env_value.py "my-bot-token"
    python scripts/encrypt_env_value.py --generate-key

The key is read from ENCRYPTION_KEY or ENCRYPTION_KEY_FILE (default .encryption_key),
the same places the bot looks when it starts.
"""

import argparse
import sys

from cryptography.fernet import Fernet

from cardinal.config import _get_decryption_key, encrypt_value


def main() -> int:
    parser = argparse.ArgumentParser(description="Encrypt a value for use as encrypted:<...> in .env")
    parser.add_argument("value", nargs="?", help="Value to encrypt")
    parser.add_argument("--generate-key", action="store_true", help="Print a new Fernet key and exit")
    args = parser.parse_args()

    if args.generate_key:
        print(Fernet.generate_key().decode())
        return 0
    if args.value is None:
        parser.error("a value to encrypt is required")

    key = _get_decryption_key()
    if key is None:
        print("Error: set ENCRYPTION_KEY or ENCRYPTION_KEY_FILE first (see --generate-key)", file=sys.stderr)
        return 1

    try:
        print(encrypt_value(args.value, key))
    except ValueError as e:
        print(f"Error encrypting value: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
