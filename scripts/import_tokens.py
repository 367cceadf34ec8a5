from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml


def load_watchlist_yaml(path: Path) -> dict:
    if not path.exists():
        return {"tokens": []}
    return yaml.safe_load(path.read_text()) or {"tokens": []}


def save_watchlist_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False))


def parse_tokens(payload: Any) -> list[dict]:
    # Accept a list of strings, list of objects with 'address'/'mint', or newline-separated strings
    if isinstance(payload, list):
        if all(isinstance(x, str) for x in payload):
            return [{"address": x.strip()} for x in payload if x.strip()]
        if all(isinstance(x, dict) for x in payload):
            out: list[dict] = []
            for row in payload:
                a = row.get("address") or row.get("mint") or row.get("tokenAddress")
                if a:
                    out.append({"address": a.strip(), "name": row.get("name") or row.get("symbol")})
            return out
    if isinstance(payload, str):
        return [{"address": line.strip()} for line in payload.splitlines() if line.strip()]
    return []


def upsert(tokens: list[dict], item: dict) -> None:
    for t in tokens:
        # Mints are case-sensitive base58
        if t.get("address") == item["address"]:
            if item.get("name") and not t.get("name"):
                t["name"] = item["name"]
            return
    entry = {"address": item["address"]}
    if item.get("name"):
        entry["name"] = item["name"]
    tokens.append(entry)


def main() -> int:
    p = argparse.ArgumentParser(description="Import token mints into config/watchlist.yaml")
    p.add_argument("--input", "-i", help="Input file (JSON array or newline-separated mints). If omitted, reads stdin.")
    p.add_argument("--watchlist-yaml", default="config/watchlist.yaml", help="Path to watchlist.yaml")
    p.add_argument("--replace", action="store_true", help="Drop existing tokens before importing")
    args = p.parse_args()

    if args.input:
        raw = Path(args.input).read_text()
    else:
        raw = sys.stdin.read()

    try:
        payload = json.loads(raw)
    except ValueError:
        payload = raw

    items = parse_tokens(payload)
    if not items:
        print("No token addresses parsed from input", file=sys.stderr)
        return 1

    path = Path(args.watchlist_yaml)
    data = load_watchlist_yaml(path)
    tokens: list[dict] = [] if args.replace else data.get("tokens", [])
    for item in items:
        upsert(tokens, item)

    data["tokens"] = tokens
    save_watchlist_yaml(path, data)
    print(f"Imported {len(items)} tokens into {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
