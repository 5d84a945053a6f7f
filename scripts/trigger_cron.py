"""
Gọi endpoint cron xử lý scheduled posts (dùng cho crontab / external scheduler).
Env: CROSSWRITE_URL (default http://localhost:8000), CRON_SECRET (gửi dạng Bearer nếu có).
Exit codes: 0 ok, 3 unauthorized, 5 server/network fail. Timeout 20s. Không in secret.
"""
import argparse
import json
import os
import sys

import requests

CRON_PATH = "/api/cron/process-scheduled-posts"
TIMEOUT = 20

EXIT_UNAUTHORIZED = 3
EXIT_FAIL = 5


def main() -> int:
    parser = argparse.ArgumentParser(description="Trigger scheduled post sweep")
    parser.add_argument("--url", default=os.environ.get("CROSSWRITE_URL", "http://localhost:8000"))
    args = parser.parse_args()

    headers = {}
    secret = (os.environ.get("CRON_SECRET") or "").strip()
    if secret:
        headers["Authorization"] = f"Bearer {secret}"

    try:
        r = requests.post(args.url.rstrip("/") + CRON_PATH, headers=headers, timeout=TIMEOUT)
    except requests.RequestException as e:
        print(f"request_failed: {type(e).__name__}", file=sys.stderr)
        return EXIT_FAIL

    if r.status_code == 401:
        print("unauthorized: check CRON_SECRET", file=sys.stderr)
        return EXIT_UNAUTHORIZED
    try:
        body = r.json()
    except ValueError:
        body = {"raw": r.text[:500]}
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0 if r.ok else EXIT_FAIL


if __name__ == "__main__":
    sys.exit(main())
