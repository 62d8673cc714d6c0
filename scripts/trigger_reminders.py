"""
Reminder trigger for an external scheduler (cron, systemd timer, CI schedule).
POST /api/cron/send-notifications with Bearer CRON_SECRET, print the run summary.
Missing CRON_SECRET -> exit 2. Non-200 or network error -> exit 5. Client timeout 30s.
"""
import argparse
import json
import os
import sys

import httpx

DEFAULT_URL = "http://localhost:8000/api/cron/send-notifications"
TIMEOUT = 30.0
EXIT_MISSING_ENV = 2
EXIT_TRIGGER_FAIL = 5


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Trigger one reminder run.")
    parser.add_argument("--url", default=os.environ.get("REMINDER_TRIGGER_URL", DEFAULT_URL))
    parser.add_argument("--timeout", type=float, default=TIMEOUT)
    args = parser.parse_args(argv)

    secret = os.environ.get("CRON_SECRET", "").strip()
    if not secret:
        print("CRON_SECRET not set", file=sys.stderr)
        return EXIT_MISSING_ENV

    try:
        resp = httpx.post(args.url, headers={"Authorization": f"Bearer {secret}"}, timeout=args.timeout)
    except httpx.HTTPError as e:
        print(f"trigger failed: {type(e).__name__}: {e}", file=sys.stderr)
        return EXIT_TRIGGER_FAIL
    if resp.status_code != 200:
        print(f"trigger failed: status={resp.status_code} body={resp.text[:500]}", file=sys.stderr)
        return EXIT_TRIGGER_FAIL
    print(json.dumps(resp.json(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
