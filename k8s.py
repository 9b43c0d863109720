# k8s.py
from __future__ import annotations
from typing import List, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException


def load_kube() -> str:
    try:
        config.load_incluster_config()
        return "in-cluster"
    except config.ConfigException:
        config.load_kube_config()
        return "kubeconfig"


def to_dict(api_client, obj) -> dict:
    # camelCase JSON shape, same as the API server returns it
    return api_client.sanitize_for_serialization(obj)


def pod_key(pod: dict) -> str:
    meta = (pod or {}).get("metadata", {}) or {}
    ns = meta.get("namespace", "")
    name = meta.get("name", "")
    return f"{ns}/{name}" if ns else name


class PodClient:
    def __init__(self, corev1: client.CoreV1Api):
        self.api = corev1

    def update(self, pod: dict) -> dict:
        meta = pod["metadata"]
        res = self.api.replace_namespaced_pod(
            name=meta["name"],
            namespace=meta["namespace"],
            body=pod,
        )
        return to_dict(self.api.api_client, res)

    def list(self, namespace: str = "") -> List[dict]:
        if namespace:
            res = self.api.list_namespaced_pod(namespace)
        else:
            res = self.api.list_pod_for_all_namespaces()
        return [to_dict(self.api.api_client, p) for p in res.items]


class NetworkPolicyClient:
    def __init__(self, netv1: client.NetworkingV1Api):
        self.api = netv1

    def get(self, namespace: str, name: str) -> Optional[dict]:
        try:
            res = self.api.read_namespaced_network_policy(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return to_dict(self.api.api_client, res)

    def list(self, namespace: str) -> List[dict]:
        res = self.api.list_namespaced_network_policy(namespace)
        return [to_dict(self.api.api_client, p) for p in res.items]

    def create(self, namespace: str, body: dict) -> None:
        self.api.create_namespaced_network_policy(namespace=namespace, body=body)

    def replace(self, namespace: str, name: str, body: dict) -> None:
        self.api.replace_namespaced_network_policy(name=name, namespace=namespace, body=body)

    def delete(self, namespace: str, name: str) -> None:
        self.api.delete_namespaced_network_policy(name=name, namespace=namespace)
