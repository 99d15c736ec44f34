from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _parse_attrs(pairs: list[str]) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"--attr expects key=value, got {pair!r}")
        attrs[key] = value
    return attrs


def _instance_payload(args: argparse.Namespace) -> dict:
    return {
        "name": args.name,
        "host_ip": args.host_ip,
        "host_port": args.host_port,
        "exposed_port": args.exposed_port,
        "attrs": _parse_attrs(args.attr),
    }


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="poolsync CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("probe", help="Check the control plane is reachable")
    sub.add_parser("instances", help="List managed instances")

    s_out = sub.add_parser("outcomes", help="Show recent reconcile outcomes")
    s_out.add_argument("--limit", type=int, default=20)

    for cmd, text in (("up", "Report an instance as up"), ("down", "Report an instance as gone")):
        s = sub.add_parser(cmd, help=text)
        s.add_argument("--name", required=True, help="Service name (load balancer name)")
        s.add_argument("--host-ip", required=True, help="Public address of the instance's host")
        s.add_argument("--host-port", required=True, help="Port the instance listens on")
        s.add_argument("--exposed-port", default="80", help="Published port (80 or 443)")
        s.add_argument("--attr", action="append", default=[], help="Attribute key=value (repeatable), e.g. clc=true")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "probe":
        r = requests.get(f"{base}/probe", timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "instances":
        _print(requests.get(f"{base}/instances", timeout=10).json())
        return 0

    if args.cmd == "outcomes":
        _print(requests.get(f"{base}/outcomes", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd in {"up", "down"}:
        r = requests.post(f"{base}/instances/{args.cmd}", json=_instance_payload(args), timeout=120)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
