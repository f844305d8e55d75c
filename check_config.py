#!/usr/bin/env python3
# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.
"""
Diagnostic script to verify Stripe, identity provider and account store configuration.
Run this before deploying to check that environment variables are properly set.

Usage:
    python check_config.py
"""

import os
import sys
from typing import List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from utils.config import REQUIRED_VARIABLES, ConfigurationError, load_settings, parse_service_account

SENSITIVE_MARKERS = ("KEY", "SECRET", "TOKEN")


def check_env_var(name: str, required: bool = True, env: Optional[Mapping[str, str]] = None) -> Tuple[bool, str]:
    """Check if environment variable is set and return status."""
    env = os.environ if env is None else env
    value = env.get(name)
    if value:
        # Mask sensitive values
        if any(marker in name for marker in SENSITIVE_MARKERS):
            masked = value[:8] + "..." if len(value) > 8 else "***"
            return True, f"✓ {name}: {masked}"
        return True, f"✓ {name}: {value}"
    status = "✗" if required else "○"
    return False, f"{status} {name}: NOT SET"


def collect_issues(env: Mapping[str, str]) -> List[str]:
    issues: List[str] = []

    print("Stripe Configuration:")
    print("-" * 40)
    for var in REQUIRED_VARIABLES:
        ok, msg = check_env_var(var, required=True, env=env)
        print(msg)
        if not ok:
            issues.append(f"Missing required variable: {var}")
    print()

    provider = (env.get("IDENTITY_PROVIDER") or "firebase").lower()
    store = (env.get("ACCOUNT_STORE") or "firestore").lower()

    print(f"Identity provider: {provider}")
    print(f"Account store: {store}")
    print("-" * 40)
    if provider == "firebase" or store == "firestore":
        ok, msg = check_env_var("FIREBASE_SERVICE_ACCOUNT_KEY", required=True, env=env)
        print(msg)
        if not ok:
            issues.append("Missing required variable: FIREBASE_SERVICE_ACCOUNT_KEY")
        else:
            try:
                parse_service_account(env.get("FIREBASE_SERVICE_ACCOUNT_KEY"))
                print("  ✓ Service account JSON parses")
            except ConfigurationError as exc:
                print(f"  ⚠ {exc}")
                issues.append(str(exc))
    if provider == "auth0":
        for var in ["AUTH0_DOMAIN", "AUTH0_AUDIENCE"]:
            ok, msg = check_env_var(var, required=True, env=env)
            print(msg)
            if not ok:
                issues.append(f"Missing required variable: {var}")
        domain = env.get("AUTH0_DOMAIN")
        if domain and domain.startswith("https://"):
            print("  ⚠ AUTH0_DOMAIN should NOT include 'https://'")
            issues.append("AUTH0_DOMAIN includes protocol (should be just 'tenant.auth0.com')")
    if store == "sql":
        ok, msg = check_env_var("DATABASE_URL", required=False, env=env)
        print(msg)
        if not ok:
            print("  ℹ Using default SQLite database")
    print()

    print("Server Configuration:")
    print("-" * 40)
    for var in ["CORS_ALLOWED_ORIGIN", "ACCOUNTS_COLLECTION", "PORT", "LOG_LEVEL"]:
        ok, msg = check_env_var(var, required=False, env=env)
        print(msg)
    print()

    # Let the real loader have the final word.
    try:
        load_settings(env)
    except ConfigurationError as exc:
        if not issues:
            issues.append(str(exc))
    return issues


def main() -> None:
    load_dotenv()
    print("=" * 60)
    print("Homebase Billing Configuration Check")
    print("=" * 60)
    print()

    issues = collect_issues(os.environ)

    print("=" * 60)
    if issues:
        print("⚠ ISSUES FOUND:")
        for issue in issues:
            print(f"  - {issue}")
        print()
        print("Please fix these issues before deploying.")
        sys.exit(1)
    print("✓ Configuration looks good!")
    print()
    print("Next steps:")
    print("  1. For local development: uvicorn main:create_app --factory --reload --port 8080")
    print("  2. For production: python main.py")
    print("  3. Check health endpoint: GET /")
    sys.exit(0)


if __name__ == "__main__":
    main()
