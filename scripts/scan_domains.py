#!/usr/bin/env python3
"""
End-to-end driver for a running TLS Risk Scanner API.

Submits each domain, polls its status until the scan is complete or errored,
and prints the verdict for each one.

Usage:
    python scripts/scan_domains.py http://localhost:8000 example.com expired.badssl.com
    python scripts/scan_domains.py http://localhost:8000 example.com --json
"""

import argparse
import json
import sys
import time
from dataclasses import asdict, dataclass
from typing import Optional

import httpx

TERMINAL = ("complete", "error")


@dataclass
class DomainOutcome:
    domain: str
    scan_id: str
    status: str
    verdict: Optional[str]
    summary: str
    elapsed_s: int


def submit(client: httpx.Client, api: str, domain: str) -> str:
    response = client.post(f"{api}/scanner/scan/start", json={"domain": domain}, timeout=30.0)
    if response.status_code != 200:
        raise RuntimeError(f"start failed for {domain}: HTTP {response.status_code} {response.text}")
    return response.json()["scan_id"]


def wait_for(client: httpx.Client, api: str, scan_id: str, interval: float) -> dict:
    while True:
        response = client.get(f"{api}/scanner/scan/{scan_id}/status", timeout=30.0)
        response.raise_for_status()
        data = response.json()
        if data["status"] in TERMINAL:
            return data
        print(f"   ... {data['domain']}: {data['status']}")
        time.sleep(interval)


def run(base_url: str, domains: list, interval: float) -> list:
    api = f"{base_url}/api/v1"
    outcomes = []

    with httpx.Client() as client:
        try:
            health = client.get(f"{base_url}/health", timeout=10.0)
            if health.status_code != 200:
                print(f"ERROR: Health check failed: {health.status_code}")
                sys.exit(1)
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot reach {base_url}: {e}")
            sys.exit(1)

        pending = {}
        for domain in domains:
            scan_id = submit(client, api, domain)
            pending[scan_id] = (domain, time.time())
            print(f"Submitted {domain} -> {scan_id}")

        for scan_id, (domain, started) in pending.items():
            data = wait_for(client, api, scan_id, interval)
            result = data.get("result") or {}
            outcomes.append(
                DomainOutcome(
                    domain=domain,
                    scan_id=scan_id,
                    status=data["status"],
                    verdict=result.get("verdict"),
                    summary=result.get("summary") or data.get("error") or "",
                    elapsed_s=int(time.time() - started),
                )
            )

    return outcomes


def print_summary(outcomes: list) -> None:
    print(f"\n{'=' * 60}")
    print("SUMMARY")
    print(f"{'=' * 60}")
    for o in outcomes:
        label = o.verdict if o.status == "complete" else "ERROR"
        print(f"\n{o.domain:30} {label} ({o.elapsed_s}s)")
        print(f"   {o.summary}")
    print()


def main():
    parser = argparse.ArgumentParser(description="Scan domains through a running TLS Risk Scanner API")
    parser.add_argument("url", help="Base URL of the API (e.g., http://localhost:8000)")
    parser.add_argument("domains", nargs="+", help="Domains to scan")
    parser.add_argument("--interval", type=float, default=15.0, help="Seconds between status polls")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    args = parser.parse_args()

    outcomes = run(args.url.rstrip("/"), args.domains, args.interval)

    if args.json:
        print(json.dumps([asdict(o) for o in outcomes], indent=2))
    else:
        print_summary(outcomes)

    if any(o.status == "error" for o in outcomes):
        sys.exit(1)


if __name__ == "__main__":
    main()
