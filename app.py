# app.py
from __future__ import annotations

import signal
import threading
from typing import Set

from kubernetes import client, watch
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import MaxRetryError, ProtocolError

from config import Settings, load_settings
from k8s import NetworkPolicyClient, PodClient, load_kube, pod_key, to_dict
from podhandler import PodHandler
from reconcile import NetworkPolicyManager

# Connection-level failures from the client stack, retried like watch errors
TRANSIENT_ERRORS = (ApiException, MaxRetryError, ProtocolError)


# ─────────────────────────────────────────────
# Watch cycle
# ─────────────────────────────────────────────
def _stream(corev1: client.CoreV1Api, w: watch.Watch, settings: Settings):
    if settings.namespace:
        return w.stream(
            corev1.list_namespaced_pod,
            settings.namespace,
            timeout_seconds=settings.resync_seconds,
        )
    return w.stream(
        corev1.list_pod_for_all_namespaces,
        timeout_seconds=settings.resync_seconds,
    )


def dispatch(handler: PodHandler, event_type: str, pod: dict) -> bool:
    """Deliver one event to the handler. Returns False when sync failed."""
    # DELETED is covered by the ownerReference cascade on hp-* policies
    if event_type not in ("ADDED", "MODIFIED"):
        return True

    key = pod_key(pod)
    try:
        handler.sync(key, pod)
    except ApiException as e:
        print(f"[controller] sync {key} failed: {e.status} {e.reason}; retry on next resync")
        return False
    except Exception as e:
        print(f"[controller] sync {key} failed: {type(e).__name__}: {e}; retry on next resync")
        return False
    return True


def run_once(
    corev1: client.CoreV1Api,
    handler: PodHandler,
    settings: Settings,
    stop_event: threading.Event,
) -> Set[str]:
    """
    One watch cycle. The stream starts with a fresh list, so every pod is
    delivered again as ADDED; that doubles as the retry for failed syncs.
    Returns the namespaces seen during the cycle.
    """
    namespaces: Set[str] = set()
    failed = 0
    w = watch.Watch()
    for event in _stream(corev1, w, settings):
        if stop_event.is_set():
            w.stop()
            break
        pod = to_dict(corev1.api_client, event["object"])
        ns = ((pod.get("metadata") or {}).get("namespace")) or ""
        if ns:
            namespaces.add(ns)
        if not dispatch(handler, event["type"], pod):
            failed += 1

    if failed:
        print(f"[controller] {failed} sync(s) failed this cycle")
    return namespaces


def cleanup_orphans(pods: PodClient, npmgr: NetworkPolicyManager, namespaces: Set[str]) -> None:
    for ns in sorted(namespaces):
        try:
            npmgr.delete_orphans(ns, pods.list(ns))
        except TRANSIENT_ERRORS as e:
            print(f"[controller] orphan cleanup in {ns} failed: {e}")


def run(
    corev1: client.CoreV1Api,
    pods: PodClient,
    npmgr: NetworkPolicyManager,
    handler: PodHandler,
    settings: Settings,
    stop_event: threading.Event,
) -> None:
    backoff = 1.0
    while not stop_event.is_set():
        try:
            namespaces = run_once(corev1, handler, settings, stop_event)
            backoff = 1.0
        except TRANSIENT_ERRORS as e:
            print(f"[controller] watch error: {e}; restarting in {backoff:.1f}s")
            stop_event.wait(backoff)
            backoff = min(backoff * 2, 30.0)
            continue

        if settings.cleanup_orphans and not stop_event.is_set():
            cleanup_orphans(pods, npmgr, namespaces)


# ─────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────
def main() -> None:
    settings = load_settings()
    source = load_kube()
    print(f"[controller] using {source} config")
    print(f"[controller] watching namespace={settings.namespace or '<all>'} resync={settings.resync_seconds}s")

    corev1 = client.CoreV1Api()
    pods = PodClient(corev1)
    npmgr = NetworkPolicyManager(NetworkPolicyClient(client.NetworkingV1Api()))
    handler = PodHandler(pods=pods, npmgr=npmgr)

    # SIGTERM (pod shutdown) ends the loop at the next event or cycle boundary
    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    try:
        run(corev1, pods, npmgr, handler, settings, stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    print("[controller] shutting down")


if __name__ == "__main__":
    main()
