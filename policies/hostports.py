# policies/hostports.py
from __future__ import annotations
from typing import Dict, List, Optional

# NetworkPolicy can only select pods by label, so pods with hostPorts get
# a label carrying their own name.
POD_NAME_LABEL = "field.cattle.io/podName"

POLICY_PREFIX = "hp-"


def policy_name(pod_name: str) -> str:
    return POLICY_PREFIX + pod_name


def _meta(pod: dict) -> dict:
    return (pod or {}).get("metadata", {}) or {}


def _containers(pod: dict) -> List[dict]:
    return ((pod or {}).get("spec", {}) or {}).get("containers", []) or []


def iter_host_ports(pod: dict):
    """Yield every container port entry that declares a nonzero hostPort."""
    for c in _containers(pod):
        for port in (c or {}).get("ports", []) or []:
            if (port or {}).get("hostPort"):
                yield port


def has_host_ports(pod: dict) -> bool:
    return any(True for _ in iter_host_ports(pod))


def port_to_string(port: dict) -> str:
    return f"{port.get('protocol', '')}/{port.get('port', '')}"


def generate_pod_network_policy(pod: dict) -> Dict:
    """
    Skeleton hp-<pod> policy: owner reference back to the pod, selector on the
    pod-name label, and one ingress rule allowing from anywhere with no ports yet.
    """
    meta = _meta(pod)
    name = meta.get("name", "")
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": {
            "name": policy_name(name),
            "namespace": meta.get("namespace", ""),
            "ownerReferences": [
                {
                    "apiVersion": "v1",
                    "kind": "Pod",
                    "name": name,
                    "uid": meta.get("uid", ""),
                }
            ],
        },
        "spec": {
            "podSelector": {"matchLabels": {POD_NAME_LABEL: name}},
            "ingress": [
                {
                    "from": [],
                    "ports": [],
                }
            ],
        },
    }


def derive_host_ports_policy(pod: dict) -> Optional[Dict]:
    """Build the full policy for a pod, or None when it declares no hostPorts.

    The target port is the containerPort; the hostPort only decides whether the
    entry exists. Ports are sorted by their string form so the same set of
    declarations always yields the same object, whatever the declaration order.
    """
    np = generate_pod_network_policy(pod)
    ports = np["spec"]["ingress"][0]["ports"]
    for port in iter_host_ports(pod):
        try:
            container_port = int(port.get("containerPort"))
        except (TypeError, ValueError):
            continue
        ports.append(
            {
                "protocol": str(port.get("protocol") or "TCP"),
                "port": container_port,
            }
        )
    if not ports:
        return None

    ports.sort(key=port_to_string)
    return np
