#!/usr/bin/env python3
"""Local smoke test for run_monitor.py.

Validates that the environment variables and credential files the
configured provider needs are present, then runs a single pass.

Run from project root:
    python scripts/local_test_run_monitor.py
"""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

sys.path.insert(0, str(PROJECT_ROOT))
from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

COMMON_ENV_VARS = ["EMAIL_PROVIDER", "EMAIL_ADDRESS"]
IMAP_ENV_VARS = ["IMAP_CLIENT_ID", "IMAP_CLIENT_SECRET", "IMAP_REFRESH_TOKEN"]


def check_prerequisites() -> list[str]:
    errors = []

    for var in COMMON_ENV_VARS:
        if not os.environ.get(var):
            errors.append(f"Missing env var: {var}")

    provider = os.environ.get("EMAIL_PROVIDER", "").lower()
    if provider in ("imap", "outlook"):
        for var in IMAP_ENV_VARS:
            if not os.environ.get(var):
                errors.append(f"Missing env var: {var}")
    elif provider == "gmail":
        credentials = Path(
            os.environ.get("GMAIL_CREDENTIALS_PATH", CONFIG_DIR / "credentials.json")
        )
        if not credentials.exists() and not os.environ.get("GMAIL_CREDENTIALS_JSON"):
            errors.append(f"Missing file: {credentials} (or GMAIL_CREDENTIALS_JSON)")

    return errors


def main() -> int:
    print("Checking prerequisites ...\n")
    errors = check_prerequisites()

    if errors:
        for err in errors:
            print(f"  ✗ {err}")
        print(
            "\nSetup instructions:"
            "\n  1. Set EMAIL_PROVIDER (gmail or imap) and EMAIL_ADDRESS in .env"
            "\n  2. Gmail: place OAuth credentials in config/credentials.json and run"
            "\n     'python run_monitor.py --setup-auth' once to cache the token"
            "\n  3. IMAP: set IMAP_CLIENT_ID, IMAP_CLIENT_SECRET and IMAP_REFRESH_TOKEN"
        )
        return 1

    print("  ✓ prerequisites for", os.environ["EMAIL_PROVIDER"])
    print("\nAll prerequisites met. Running a single pass ...\n")

    import run_monitor

    return run_monitor.main(["once"])


if __name__ == "__main__":
    sys.exit(main())
