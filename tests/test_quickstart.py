"""Test that the 3-line quickstart API works for healthcore-sdk."""
from __future__ import annotations


def test_quickstart_import() -> None:
    from healthcore import HealthCore

    with HealthCore() as core:
        assert core is not None
        assert repr(core) == "HealthCore(probes=0)"


def test_quickstart_add_and_report() -> None:
    from healthcore import HealthCore, HealthStatus

    with HealthCore() as core:
        core.add("cache", "redis", lambda: True)
        report = core.report()
    assert report.status is HealthStatus.UP
    assert report.up_count == 1


def test_quickstart_decorator() -> None:
    from healthcore import HealthCore, HealthStatus

    with HealthCore() as core:

        @core.check("db", "database")
        def db_alive() -> bool:
            return False

        assert db_alive() is False
        report = core.report()
    assert report.status is HealthStatus.DOWN
    assert report.results[0].error_message == "Check returned False"


def test_quickstart_register_with_priority() -> None:
    from healthcore import CallableProbe, HealthCore

    with HealthCore() as core:
        core.add("late", "misc", lambda: True)
        core.register(CallableProbe("early", "misc", lambda: True), priority=-1)
        names = [r.component_name for r in core.report().results]
    assert names == ["early", "late"]


def test_quickstart_metrics_are_collected() -> None:
    from healthcore import HealthCore

    with HealthCore() as core:
        core.add("cache", "redis", lambda: True)
        core.report()
        core.report()
        summary = core.metrics.summary()
    assert summary["cycles"] == 2
    assert summary["cache"]["hits"] == 1


def test_quickstart_custom_config() -> None:
    from healthcore import HealthCore, HealthCoreConfig

    config = HealthCoreConfig.model_validate({"cache": {"enabled": False}})
    with HealthCore(config) as core:
        calls: list[int] = []
        core.add("svc", "http", lambda: calls.append(1) is None)
        core.report()
        core.report()
    assert len(calls) == 2


def test_quickstart_remove() -> None:
    from healthcore import HealthCore

    with HealthCore() as core:
        core.add("cache", "redis", lambda: True)
        core.add("db", "database", lambda: True)
        core.report()
        assert core.remove("cache") is True
        assert core.remove("cache") is False
        names = [r.component_name for r in core.report().results]
        assert core.orchestrator.cache.contains("cache") is False
    assert names == ["db"]
