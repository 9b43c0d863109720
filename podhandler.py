# podhandler.py
from __future__ import annotations
import copy
from typing import Optional, Protocol

from config import debug_enabled
from policies.hostports import (
    POD_NAME_LABEL,
    derive_host_ports_policy,
    has_host_ports,
)


class PodUpdater(Protocol):
    def update(self, pod: dict) -> dict: ...


class PolicyProgrammer(Protocol):
    def program(self, np: dict) -> None: ...


def _is_terminating(pod: dict) -> bool:
    return bool(((pod or {}).get("metadata", {}) or {}).get("deletionTimestamp"))


def is_labeled(pod: dict) -> bool:
    labels = ((pod or {}).get("metadata", {}) or {}).get("labels") or {}
    return POD_NAME_LABEL in labels


class PodHandler:
    """
    Keeps an hp-<pod> NetworkPolicy in place for every pod exposing hostPorts.

    pods:  updater used to add the pod-name label
    npmgr: programmer that creates or updates the derived policy
    """

    def __init__(self, pods: PodUpdater, npmgr: PolicyProgrammer):
        self.pods = pods
        self.npmgr = npmgr

    def sync(self, key: str, pod: Optional[dict]) -> None:
        if pod is None or _is_terminating(pod):
            return
        if debug_enabled():
            print(f"[podhandler] sync {key}")

        self.add_label_if_host_ports_present(pod)
        self.host_ports_update_handler(pod)

    def add_label_if_host_ports_present(self, pod: dict) -> None:
        """
        Label transitions only go unlabeled -> labeled. Once present the label
        is never removed here, even if the pod later drops its hostPorts.
        """
        if is_labeled(pod) or not has_host_ports(pod):
            return

        meta = pod.get("metadata", {}) or {}
        if debug_enabled():
            print(f"[podhandler] {meta.get('namespace')}/{meta.get('name')} has hostPort, adding {POD_NAME_LABEL}")

        pod_copy = copy.deepcopy(pod)
        copy_meta = pod_copy["metadata"]
        if not copy_meta.get("labels"):
            copy_meta["labels"] = {}
        copy_meta["labels"][POD_NAME_LABEL] = copy_meta["name"]
        self.pods.update(pod_copy)

    def host_ports_update_handler(self, pod: dict) -> None:
        np = derive_host_ports_policy(pod)
        if np is None:
            return

        if debug_enabled():
            meta = np["metadata"]
            ports = np["spec"]["ingress"][0]["ports"]
            print(f"[podhandler] programming {meta['namespace']}/{meta['name']} ports={ports}")
        self.npmgr.program(np)
