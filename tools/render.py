#!/usr/bin/env python3
"""tools/render.py

Render the hp-<pod> NetworkPolicies the controller would program, as
multi-document YAML.

Usage examples:
  NAMESPACE=default python3 tools/render.py > /tmp/hostport-netpols.yaml

  # All namespaces:
  python3 tools/render.py | head

Notes:
- This does NOT apply anything and does not label pods.
- For safe validation, pair it with: kubectl apply --dry-run=server -f -
"""

from __future__ import annotations

import os
import sys

import yaml

# Allow executing from tools/ without installing as a package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kubernetes import client  # noqa: E402

from k8s import PodClient, load_kube  # noqa: E402
from policies.hostports import derive_host_ports_policy  # noqa: E402


def render(pods: list[dict], out) -> int:
    count = 0
    for pod in pods:
        np = derive_host_ports_policy(pod)
        if np is None:
            continue
        yaml.safe_dump(np, out, sort_keys=False)
        out.write("---\n")
        count += 1
    return count


def main() -> int:
    namespace = os.environ.get("NAMESPACE", "")

    load_kube()
    pods = PodClient(client.CoreV1Api()).list(namespace)

    try:
        count = render(pods, sys.stdout)
    except BrokenPipeError:
        # Common when piping to `head`; exit cleanly
        return 0

    print(f"[render] {count} policies from {len(pods)} pods", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
