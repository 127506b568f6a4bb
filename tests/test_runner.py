import io
import json
import sys

import pytest

from vdocumentation.advisories import NullAdvisoryProvider
from vdocumentation.config import Config
from vdocumentation.errors import SelectorConflict, VCenterConnectionError
from vdocumentation.fetcher import HostFetcher
from vdocumentation.models import Selector, SelectorPolicy
from vdocumentation.runner import Runner

KINDS = ["hardware", "networking", "storage"]


def make_config(tmp_path, **overrides):
    values = dict(
        server="vcenter.lab.local",
        username="administrator@vsphere.local",
        password="pw",
        report_kinds=list(KINDS),
        folder_path=tmp_path,
        max_concurrency=2,
        poll_interval_sec=0.01,
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def lab(host_factory, inventory_factory):
    h1 = host_factory("h1", moid="host-11")
    h2 = host_factory("h2", moid="host-12")
    h3 = host_factory("h3", moid="host-13", state="disconnected")
    return inventory_factory([h3, h2, h1], clusters={"clusterB": [h1, h2]})


def run(config, inventory, session):
    out = io.StringIO()
    runner = Runner(config, session=session, inventory=inventory, advisories=NullAdvisoryProvider(), stream=out)
    return runner.execute(), out.getvalue()


def test_explicit_hosts_both_connected(tmp_path, lab, session_factory):
    session = session_factory()
    config = make_config(tmp_path, selector=Selector(hosts=["h1", "h2"]))

    result, output = run(config, lab, session)

    for kind in KINDS:
        assert [r["Hostname"] for r in result.collections[kind]] == ["h1", "h2"]
    assert result.skipped == []
    assert session.closed is True
    assert "=== vDocumentation Run Summary ===" in output


def test_unknown_cluster(tmp_path, lab, session_factory):
    config = make_config(tmp_path, selector=Selector(clusters=["clusterA"]))

    result, output = run(config, lab, session_factory())

    assert result.targets == []
    assert len(result.warnings) == 1
    assert all(len(c) == 0 for c in result.collections.values())
    assert result.skipped == []
    assert "Cluster 'clusterA' was not found" in output


def test_all_hosts_one_disconnected(tmp_path, lab, session_factory):
    config = make_config(tmp_path)

    result, output = run(config, lab, session_factory())

    assert result.targets == ["h1", "h2", "h3"]
    for kind in KINDS:
        assert [r["Hostname"] for r in result.collections[kind]] == ["h1", "h2"]
    assert len(result.skipped) == 1
    assert result.skipped[0].host == "h3"
    assert result.skipped[0].state == "Disconnected"
    assert "=== Skipped Hosts ===" in output


def test_excel_export_falls_back_to_csv(tmp_path, lab, session_factory, monkeypatch):
    monkeypatch.setitem(sys.modules, "openpyxl", None)
    config = make_config(tmp_path, selector=Selector(hosts=["h1", "h2"]), export_excel=True)

    result, _ = run(config, lab, session_factory())

    assert len(result.export_warnings) == 1
    assert "falling back to CSV" in result.export_warnings[0]
    assert len(result.exports) == len(KINDS)
    assert all(p.endswith(".csv") for p in result.exports)
    assert sorted(p.name.split("-", 1)[1] for p in tmp_path.glob("*.csv")) == [
        "Hardware.csv",
        "Networking.csv",
        "Storage.csv",
    ]


def test_excel_fallback_with_every_host_skipped(tmp_path, lab, session_factory, monkeypatch):
    monkeypatch.setitem(sys.modules, "openpyxl", None)
    config = make_config(tmp_path, selector=Selector(hosts=["h3"]), export_excel=True)

    result, _ = run(config, lab, session_factory())

    assert result.skipped[0].host == "h3"
    assert len(result.exports) == len(KINDS)
    for path in result.exports:
        with open(path, newline="", encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("Hostname")


def test_excel_export(tmp_path, lab, session_factory):
    config = make_config(tmp_path, selector=Selector(clusters=["clusterB"]), export_excel=True)

    result, _ = run(config, lab, session_factory())

    assert result.export_warnings == []
    assert len(result.exports) == 1
    assert result.exports[0].endswith("vDocumentation.xlsx")


def test_runs_are_idempotent(tmp_path, lab, session_factory):
    config = make_config(tmp_path)

    first, _ = run(config, lab, session_factory())
    second, _ = run(config, lab, session_factory())

    for kind in KINDS:
        assert first.collections[kind].records == second.collections[kind].records


def test_host_that_crashes_is_skipped(tmp_path, lab, session_factory, monkeypatch):
    original = HostFetcher.fetch

    def flaky_fetch(self, target):
        if target.name == "h2":
            raise RuntimeError("SOAP fault")
        return original(self, target)

    monkeypatch.setattr(HostFetcher, "fetch", flaky_fetch)
    config = make_config(tmp_path, selector=Selector(hosts=["h1", "h2"]))

    result, _ = run(config, lab, session_factory())

    assert [r["Hostname"] for r in result.collections["hardware"]] == ["h1"]
    assert result.skipped[0].host == "h2"
    assert result.skipped[0].reason == "error: SOAP fault"


def test_failed_cluster_lookup_does_not_abort_run(tmp_path, host_factory, inventory_factory, session_factory):
    h1 = host_factory("h1", moid="host-11")
    h2 = host_factory("h2", moid="host-12")
    inventory = inventory_factory([h1, h2], clusters={"Gone": [h1], "Prod": [h1, h2]}, broken={"Gone"})
    config = make_config(tmp_path, selector=Selector(clusters=["Gone", "Prod"]))

    result, output = run(config, inventory, session_factory())

    assert result.targets == ["h1", "h2"]
    assert [r["Hostname"] for r in result.collections["storage"]] == ["h1", "h2"]
    assert len(result.warnings) == 1
    assert "Cluster 'Gone' lookup failed" in output


def test_connection_error_is_fatal(tmp_path, host_factory, inventory_factory, session_factory):
    session = session_factory()
    inventory = inventory_factory([host_factory("h1")], unreachable=True)

    with pytest.raises(VCenterConnectionError):
        run(make_config(tmp_path), inventory, session)
    assert session.closed is True


def test_inactive_session_is_fatal(tmp_path, lab, session_factory):
    with pytest.raises(ConnectionError):
        run(make_config(tmp_path), lab, session_factory(active=False))


def test_exclusive_policy_fails_before_connecting(tmp_path, lab, session_factory):
    session = session_factory(active=False)
    config = make_config(
        tmp_path,
        selector=Selector(hosts=["h1"], clusters=["clusterB"]),
        selector_policy=SelectorPolicy.EXCLUSIVE,
    )

    with pytest.raises(SelectorConflict):
        run(config, lab, session)
    assert session.closed is False


def test_pass_thru_and_json_report(tmp_path, lab, session_factory):
    report_path = tmp_path / "reports" / "run.json"
    config = make_config(
        tmp_path,
        selector=Selector(hosts=["h1", "h3"]),
        report_kinds=["storage"],
        pass_thru=True,
        json_report_path=report_path,
    )

    result, output = run(config, lab, session_factory())

    printed = json.loads(output)
    assert printed["collections"]["storage"]["records"][0]["Hostname"] == "h1"
    assert printed["skipped"] == [{"host": "h3", "state": "Disconnected", "reason": "not connected"}]

    saved = json.loads(report_path.read_text(encoding="utf-8"))
    assert saved["server"] == "vcenter.lab.local"
    assert saved["targets"] == ["h1", "h3"]
    assert list(result.collections) == ["storage"]
