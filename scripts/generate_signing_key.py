#!/usr/bin/env python3
"""
Session Signing Key Setup Script

Generates the RSA private key the API signs session credentials with.
Run this once per deployment; the API refuses to start without the key.

Usage:
    python3 scripts/generate_signing_key.py
    python3 scripts/generate_signing_key.py --output /etc/collp/rsa.pem --force
"""
import sys
import os
import argparse

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.core.auth.credentials import KeyPair, save_private_key  # noqa: E402


def main(argv=None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Generate the RSA private key used to sign session credentials",
    )
    parser.add_argument(
        "--output",
        default=os.getenv("RSA_KEY_PATH", "rsa.pem"),
        help="Where to write the PEM file (default: $RSA_KEY_PATH or rsa.pem)"
    )
    parser.add_argument(
        "--bits",
        type=int,
        default=2048,
        help="RSA key size in bits (default: 2048)"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing key file"
    )

    args = parser.parse_args(argv)

    key_pair = KeyPair.generate(key_size=args.bits)
    try:
        path = save_private_key(key_pair, args.output, overwrite=args.force)
    except FileExistsError:
        print(f"Refusing to overwrite {args.output} (use --force)", file=sys.stderr)
        return 1

    print(f"Wrote {args.bits}-bit RSA signing key to {path} (mode 600)")
    if args.force:
        print("Credentials signed with the previous key are no longer valid.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
