#!/usr/bin/env python3
"""Bridge smoke checks through the synchronous queue surface.

Usage:
  python scripts/bridge_smoke.py
  python scripts/bridge_smoke.py --config ~/.corebridge/config.json --timeout 5
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from corebridge.config.loader import load_config
from corebridge.transport.queue_adapter import QueueAdapter


def _request(request_id: int, method: str, params: dict | list | None = None) -> bytes:
    return json.dumps({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}).encode()


def _await_response(adapter: QueueAdapter, handle: int, request_id: int, timeout: float) -> dict:
    """Skip notifications until the response for ``request_id`` shows up."""
    while True:
        raw = adapter.poll_next(handle, timeout=timeout)
        if raw is None:
            raise TimeoutError(f"no response for id={request_id} within {timeout}s")
        frame = json.loads(raw)
        if frame.get("id") == request_id and "method" not in frame:
            return frame


def run_smoke(config_path: Path | None, timeout: float) -> list[str]:
    errors: list[str] = []
    config = load_config(config_path)
    with QueueAdapter(config=config) as adapter:
        handle = adapter.init()
        checks: list[tuple[str, dict | list]] = [
            ("bridge_stats", {}),
            ("doesNotExist", {}),
            ("cancel_request", {"id": 424242}),
        ]
        for name in adapter.methods():
            if name in {"ping", "get_system_info"}:
                checks.insert(0, (name, {}))
        for request_id, (method, params) in enumerate(checks, start=1):
            adapter.submit(handle, _request(request_id, method, params))
            try:
                frame = _await_response(adapter, handle, request_id, timeout)
            except TimeoutError as exc:
                errors.append(f"{method}: {exc}")
                continue
            expected_error = method == "doesNotExist"
            if expected_error != ("error" in frame):
                errors.append(f"{method}: unexpected frame {frame}")
        adapter.teardown(handle)
    return errors


def main() -> int:
    parser = argparse.ArgumentParser(description="corebridge smoke checks")
    parser.add_argument("--config", type=Path, default=None, help="config file (defaults apply when absent)")
    parser.add_argument("--timeout", type=float, default=5.0, help="seconds to wait per response")
    args = parser.parse_args()

    errors = run_smoke(args.config, args.timeout)
    if errors:
        print("[smoke] failures:")
        for err in errors:
            print(f"  - {err}")
        return 1
    print("[smoke] ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
