from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Resolver State Reconciler CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("state", help="Show servers and search domains")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_add = sub.add_parser("add-server", help="Add a link or fallback DNS server")
    s_add.add_argument("--address", required=True)
    s_add.add_argument("--origin", choices=["link", "fallback"], default="link")

    s_rm = sub.add_parser("remove-server", help="Remove a link or fallback DNS server")
    s_rm.add_argument("--address", required=True)
    s_rm.add_argument("--origin", choices=["link", "fallback"], default="link")

    sub.add_parser("reload", help="Re-read the system resolv.conf now")
    sub.add_parser("write", help="Regenerate the managed resolv.conf now")

    s_ing = sub.add_parser("ingestion", help="Enable/disable reading the system resolv.conf")
    s_ing.add_argument("mode", choices=["on", "off"])

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "state":
        _print(requests.get(f"{base}/state", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "add-server":
        r = requests.post(f"{base}/servers", json={"address": args.address, "origin": args.origin}, timeout=10)
    elif args.cmd == "remove-server":
        r = requests.delete(f"{base}/servers", params={"address": args.address, "origin": args.origin}, timeout=10)
    elif args.cmd == "reload":
        r = requests.post(f"{base}/resolv-conf/reload", timeout=10)
    elif args.cmd == "write":
        r = requests.post(f"{base}/resolv-conf/write", timeout=10)
    elif args.cmd == "ingestion":
        r = requests.put(f"{base}/resolv-conf/ingestion", json={"enabled": args.mode == "on"}, timeout=10)
    else:
        return 2

    _print(r.json())
    return 0 if r.ok else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
