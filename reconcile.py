# reconcile.py
from __future__ import annotations
import copy
from typing import Dict, Iterable, List, Set

from config import debug_enabled
from policies.hostports import POLICY_PREFIX


class ProgramPlan(dict):
    """A small, json-serializable planning object."""

    # kept as dict subclass for easy printing/JSON dumping


def _prune(value):
    """Drop None and empty containers so server-side omitempty does not look like drift."""
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            v = _prune(v)
            if v is None or v == {} or v == []:
                continue
            out[k] = v
        return out
    if isinstance(value, list):
        return [_prune(v) for v in value]
    return value


def normalize(pol: dict) -> dict:
    """Fields this controller owns, in comparable form."""
    meta = (pol or {}).get("metadata", {}) or {}
    spec = (pol or {}).get("spec", {}) or {}
    owners = [
        {k: o.get(k) for k in ("apiVersion", "kind", "name", "uid")}
        for o in meta.get("ownerReferences", []) or []
    ]
    return _prune(
        {
            "ownerReferences": owners,
            "podSelector": spec.get("podSelector", {}),
            "ingress": spec.get("ingress", []),
        }
    )


def _is_host_ports_policy(pol: dict) -> bool:
    meta = (pol or {}).get("metadata", {}) or {}
    if not meta.get("name", "").startswith(POLICY_PREFIX):
        return False
    owners = meta.get("ownerReferences", []) or []
    return len(owners) == 1 and owners[0].get("kind") == "Pod"


class NetworkPolicyManager:
    """Programs hp-* policies through a NetworkPolicyClient-like object."""

    def __init__(self, client):
        self.client = client

    def program(self, np: dict) -> None:
        meta = np["metadata"]
        ns, name = meta["namespace"], meta["name"]

        existing = self.client.get(ns, name)
        if existing is None:
            print(f"[netpol] creating {ns}/{name}")
            self.client.create(ns, copy.deepcopy(np))
            return

        if normalize(existing) == normalize(np):
            if debug_enabled():
                print(f"[netpol] {ns}/{name} up to date")
            return

        body = copy.deepcopy(np)
        rv = (existing.get("metadata", {}) or {}).get("resourceVersion")
        if rv:
            body["metadata"]["resourceVersion"] = rv
        print(f"[netpol] updating {ns}/{name}")
        self.client.replace(ns, name, body)

    def plan(self, desired: Iterable[dict]) -> ProgramPlan:
        """Compute what program() *would* do for each policy, without writing anything."""
        create: List[str] = []
        update: List[str] = []
        unchanged: List[str] = []
        for np in desired:
            meta = np["metadata"]
            ref = f"{meta['namespace']}/{meta['name']}"
            existing = self.client.get(meta["namespace"], meta["name"])
            if existing is None:
                create.append(ref)
            elif normalize(existing) != normalize(np):
                update.append(ref)
            else:
                unchanged.append(ref)

        create.sort()
        update.sort()
        unchanged.sort()
        return ProgramPlan(
            counts={
                "create": len(create),
                "update": len(update),
                "unchanged": len(unchanged),
            },
            create=create,
            update=update,
            unchanged=unchanged,
        )

    def delete_orphans(self, namespace: str, pods: List[dict]) -> List[str]:
        """
        Delete hp-* policies in namespace whose owning pod no longer exists.
        Policies of live pods are left alone, even if the pod has since dropped
        its hostPorts.
        """
        live_uids: Set[str] = set()
        for p in pods:
            uid = ((p or {}).get("metadata", {}) or {}).get("uid")
            if uid:
                live_uids.add(uid)

        deleted: List[str] = []
        for pol in self.client.list(namespace):
            if not _is_host_ports_policy(pol):
                continue
            meta = pol["metadata"]
            if meta["ownerReferences"][0].get("uid") in live_uids:
                continue
            print(f"[netpol] deleting orphan {namespace}/{meta['name']}")
            self.client.delete(namespace, meta["name"])
            deleted.append(meta["name"])
        return deleted


def print_plan(plan: ProgramPlan) -> None:
    counts: Dict[str, int] = plan.get("counts", {})
    print(
        f"[plan] create={counts.get('create', 0)} update={counts.get('update', 0)} "
        f"unchanged={counts.get('unchanged', 0)}"
    )
    for k in ("create", "update"):
        items = plan.get(k, []) or []
        if not items:
            continue
        print(f"[plan] {k}:")
        for name in items:
            print(f"  - {name}")
