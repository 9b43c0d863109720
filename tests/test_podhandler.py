from __future__ import annotations

import copy

import pytest
from kubernetes.client.exceptions import ApiException

from fakes import FakePods, FakeProgrammer, pod
from podhandler import PodHandler
from policies.hostports import POD_NAME_LABEL


def _handler(pods=None, npmgr=None):
    pods = pods or FakePods()
    npmgr = npmgr or FakeProgrammer()
    return PodHandler(pods=pods, npmgr=npmgr), pods, npmgr


def test_sync_labels_pod_and_programs_policy() -> None:
    h, pods, npmgr = _handler()

    h.sync("default/web-1", pod("web-1", [[(8080, 30080, "TCP")]]))

    assert len(pods.updated) == 1
    assert pods.updated[0]["metadata"]["labels"] == {POD_NAME_LABEL: "web-1"}
    assert len(npmgr.programmed) == 1
    np = npmgr.programmed[0]
    assert np["metadata"]["name"] == "hp-web-1"
    assert np["spec"]["ingress"][0]["ports"] == [{"protocol": "TCP", "port": 8080}]


def test_sync_keeps_existing_labels_when_adding() -> None:
    h, pods, _ = _handler()

    h.sync("default/web-2", pod("web-2", [[(8080, 30080, "TCP")]], labels={"app": "web"}))

    assert pods.updated[0]["metadata"]["labels"] == {"app": "web", POD_NAME_LABEL: "web-2"}


def test_labeler_does_not_mutate_input() -> None:
    h, pods, _ = _handler()
    p = pod("web-1", [[(8080, 30080, "TCP")]])
    before = copy.deepcopy(p)

    h.add_label_if_host_ports_present(p)

    assert p == before
    assert len(pods.updated) == 1


def test_multi_port_policy_is_sorted() -> None:
    h, _, npmgr = _handler()

    h.sync("default/multi-1", pod("multi-1", [[(80, 30080, "TCP"), (22, 30022, "TCP")]]))

    ports = npmgr.programmed[0]["spec"]["ingress"][0]["ports"]
    assert [p["port"] for p in ports] == [22, 80]


def test_pod_without_host_ports_is_untouched() -> None:
    h, pods, npmgr = _handler()

    h.sync("default/nohp-1", pod("nohp-1", [[(8080, 0, "TCP")]]))

    assert pods.updated == []
    assert npmgr.programmed == []


def test_pod_without_containers_is_noop() -> None:
    h, pods, npmgr = _handler()

    h.sync("default/bare-1", pod("bare-1"))

    assert pods.updated == []
    assert npmgr.programmed == []


def test_label_is_sticky_after_host_ports_removed() -> None:
    h, pods, npmgr = _handler()
    p = pod("sticky-1", [[(8080, 0, "TCP")]], labels={POD_NAME_LABEL: "sticky-1"})

    h.sync("default/sticky-1", p)

    assert pods.updated == []
    assert npmgr.programmed == []
    assert p["metadata"]["labels"] == {POD_NAME_LABEL: "sticky-1"}


def test_already_labeled_pod_skips_update_but_still_programs() -> None:
    h, pods, npmgr = _handler()
    p = pod("web-1", [[(8080, 30080, "TCP")]], labels={POD_NAME_LABEL: "web-1"})

    h.sync("default/web-1", p)

    assert pods.updated == []
    assert len(npmgr.programmed) == 1


@pytest.mark.parametrize("p", [None, pod("gone-1", [[(8080, 30080, "TCP")]], deleting=True)])
def test_sync_noop_for_missing_or_terminating_pod(p) -> None:
    h, pods, npmgr = _handler()

    assert h.sync("default/gone-1", p) is None
    assert pods.updated == []
    assert npmgr.programmed == []


def test_pod_update_failure_aborts_sync() -> None:
    h, _, npmgr = _handler(pods=FakePods(fail=ApiException(status=409, reason="Conflict")))

    with pytest.raises(ApiException) as exc:
        h.sync("default/web-1", pod("web-1", [[(8080, 30080, "TCP")]]))

    assert exc.value.status == 409
    assert npmgr.programmed == []


def test_program_failure_propagates() -> None:
    h, pods, _ = _handler(npmgr=FakeProgrammer(fail=ApiException(status=500, reason="Boom")))

    with pytest.raises(ApiException):
        h.sync("default/web-1", pod("web-1", [[(8080, 30080, "TCP")]]))

    assert len(pods.updated) == 1


def test_repeated_sync_programs_identical_policy() -> None:
    h, _, npmgr = _handler()
    p = pod("web-1", [[(80, 30080, "TCP"), (22, 30022, "TCP")]], labels={POD_NAME_LABEL: "web-1"})

    h.sync("default/web-1", p)
    h.sync("default/web-1", p)

    assert npmgr.programmed[0] == npmgr.programmed[1]
