#!/usr/bin/env python3
"""Plan-only runner: prints which hp-<pod> policies the controller would create or update.

Usage:
  NAMESPACE=default python3 tools/plan.py

Notes:
- Uses your local kubeconfig (same behavior as app.py).
- Does not create/update/delete any objects, and does not label pods.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from kubernetes import client

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from k8s import NetworkPolicyClient, PodClient, load_kube  # noqa: E402
from policies.hostports import derive_host_ports_policy  # noqa: E402
from reconcile import NetworkPolicyManager, print_plan  # noqa: E402


def main() -> None:
    namespace = os.environ.get("NAMESPACE", "")

    print(f"[plan] using {load_kube()} config")

    pods = PodClient(client.CoreV1Api()).list(namespace)
    desired = [np for np in (derive_host_ports_policy(p) for p in pods) if np is not None]

    npmgr = NetworkPolicyManager(NetworkPolicyClient(client.NetworkingV1Api()))
    print_plan(npmgr.plan(desired))


if __name__ == "__main__":
    main()
