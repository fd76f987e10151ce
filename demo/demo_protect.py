#!/usr/bin/env python3
"""Protect and reveal a test card number against the mock service.

Start the mock first:
    python3 demo/mock_protection_service.py

Then:
    python3 demo/demo_protect.py
    python3 demo/demo_protect.py --policy protect-unknown   # shows an API_ERROR
"""

import argparse

from dataprotect import CancellationToken, ClientConfig, ProtectionClient
from dataprotect.utils.logger import configure_logging

TEST_PAN = "4111111111111111"


def main() -> int:
    parser = argparse.ArgumentParser(description="dataprotect demo")
    parser.add_argument("--base-url", default="http://127.0.0.1:8080")
    parser.add_argument("--policy", default="protect-credit-card")
    parser.add_argument("--timeout", type=float, default=10.0, help="overall deadline (s)")
    args = parser.parse_args()

    configure_logging(log_level="INFO", json_output=False)
    config = ClientConfig(base_url=args.base_url, retry_count=2)

    with ProtectionClient(config) as client:
        protected = client.protect(
            args.policy, TEST_PAN, cancel=CancellationToken.with_timeout(args.timeout)
        )
        if not protected.ok:
            print(f"protect failed: {protected!r}")
            return 1
        print(f"protected: {protected.value}")

        revealed = client.reveal(args.policy, protected.value)
        if not revealed.ok:
            print(f"reveal failed: {revealed!r}")
            return 1
        print(f"round trip ok: {revealed.value == TEST_PAN}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
