"""Tests for run validation and end-to-end orchestration against an in-memory store."""

import asyncio

import pytest

from replication_orchestrator.core.exceptions import (
    AmbiguousDatabaseSelectionError,
    ControlDatabaseError,
    InvalidURLError,
    MonitorSuppressionError,
    NoDatabasesSelectedError,
    OrchestratorError,
    StoreError,
    TooManyLiveReplicationsError,
)
from replication_orchestrator.core.orchestrator import ReplicationOrchestrator
from replication_orchestrator.models.execution import JobOutcome, RunConfig
from replication_orchestrator.models.job import ReplicationState
from replication_orchestrator.services.monitoring_service import ProgressSink

from .conftest import FakeStore, SOURCE, TARGET


class RecordingSink(ProgressSink):
    def __init__(self):
        self.updates = []
        self.records = []
        self.summaries = []

    def on_status(self, update):
        self.updates.append(update)

    def on_finalized(self, record):
        self.records.append(record)

    def on_run_complete(self, summary):
        self.summaries.append(summary)


class BrokenSink(ProgressSink):
    def on_status(self, update):
        raise ValueError("display gone")


def config(**kwargs) -> RunConfig:
    values = dict(source_url=SOURCE, target_url=TARGET)
    values.update(kwargs)
    return RunConfig(**values)


def outcomes(summary):
    return {r.database_name: r.outcome for r in summary.records}


class TestValidation:
    """Run-level checks that abort before any job starts."""

    def test_invalid_source(self, store):
        with pytest.raises(InvalidURLError) as info:
            ReplicationOrchestrator(store).validate(config(source_url="source", databases=["a"]))
        assert info.value.which == "source"

    def test_invalid_target(self, store):
        with pytest.raises(InvalidURLError) as info:
            ReplicationOrchestrator(store).validate(config(target_url="", databases=["a"]))
        assert info.value.which == "target"

    def test_no_monitor_requires_live(self, store):
        with pytest.raises(MonitorSuppressionError):
            ReplicationOrchestrator(store).validate(config(databases=["a"], no_monitor=True))

    def test_names_in_urls_and_list(self, store):
        with pytest.raises(AmbiguousDatabaseSelectionError):
            ReplicationOrchestrator(store).validate(config(source_url=SOURCE + "/a", databases=["b"]))

    def test_names_in_urls_and_all(self, store):
        with pytest.raises(AmbiguousDatabaseSelectionError):
            ReplicationOrchestrator(store).validate(config(target_url=TARGET + "/a", all_databases=True))

    def test_no_names_anywhere(self, store):
        with pytest.raises(NoDatabasesSelectedError):
            ReplicationOrchestrator(store).validate(config())

    def test_target_named_without_source(self, store):
        with pytest.raises(InvalidURLError) as info:
            ReplicationOrchestrator(store).validate(config(target_url=TARGET + "/a"))
        assert info.value.which == "source"


class TestRun:
    """End-to-end runs."""

    @pytest.mark.asyncio
    async def test_list_of_databases(self, store):
        sink = RecordingSink()
        orchestrator = ReplicationOrchestrator(store, poll_interval=0)

        summary = await orchestrator.run(config(databases=["a", "b", "c"], concurrency=2), [sink])

        assert outcomes(summary) == {name: JobOutcome.SUCCEEDED for name in "abc"}
        assert not summary.has_errors
        assert store.created == [("source.example.com", "_replicator")]
        assert len(sink.records) == 3
        assert len(sink.summaries) == 1
        assert orchestrator.last_queue_statistics["peak_active"] <= 2
        for record in summary.records:
            assert record.state == ReplicationState.COMPLETED

    @pytest.mark.asyncio
    async def test_concurrency_bound_holds_during_polling(self):
        store = FakeStore(delay=0.001)
        for name in "abcdef":
            store.replication_script[name] = [{"_replication_state": "running"}] * 3 + [
                {"_replication_state": "completed"}
            ]
        orchestrator = ReplicationOrchestrator(store, poll_interval=0)

        summary = await orchestrator.run(config(databases=list("abcdef"), concurrency=2))

        assert summary.succeeded == 6
        assert store.peak_in_flight <= 2
        assert orchestrator.last_queue_statistics["peak_active"] == 2

    @pytest.mark.asyncio
    async def test_single_database_from_urls(self, store):
        summary = await ReplicationOrchestrator(store, poll_interval=0).run(
            config(source_url=SOURCE + "/orders", target_url=TARGET + "/orders_copy")
        )

        assert outcomes(summary) == {"orders": JobOutcome.SUCCEEDED}
        doc = next(iter(store.replication_docs.values()))
        assert doc["source"] == SOURCE + "/orders"
        assert doc["target"] == TARGET + "/orders_copy"

    @pytest.mark.asyncio
    async def test_single_database_target_extended(self, store):
        await ReplicationOrchestrator(store, poll_interval=0).run(config(source_url=SOURCE + "/orders"))

        doc = next(iter(store.replication_docs.values()))
        assert doc["target"] == TARGET + "/orders"

    @pytest.mark.asyncio
    async def test_all_databases_skips_reserved(self, store):
        store.all_dbs = ["_replicator", "_users", "orders", "customers"]

        summary = await ReplicationOrchestrator(store, poll_interval=0).run(config(all_databases=True))

        assert set(outcomes(summary)) == {"orders", "customers"}

    @pytest.mark.asyncio
    async def test_all_databases_only_reserved(self, store):
        store.all_dbs = ["_replicator", "_users"]

        with pytest.raises(NoDatabasesSelectedError):
            await ReplicationOrchestrator(store, poll_interval=0).run(config(all_databases=True))
        assert store.created == []

    @pytest.mark.asyncio
    async def test_listing_failure(self, store):
        store.list_error = StoreError("list_databases", "HTTP 401 unauthorized", status_code=401)

        with pytest.raises(OrchestratorError):
            await ReplicationOrchestrator(store, poll_interval=0).run(config(all_databases=True))

    @pytest.mark.asyncio
    async def test_control_database_failure_aborts(self, store):
        store.create_error = StoreError("create_database", "HTTP 500", status_code=500)

        with pytest.raises(ControlDatabaseError):
            await ReplicationOrchestrator(store, poll_interval=0).run(config(databases=["a", "b"]))
        assert store.replication_docs == {}

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, store):
        store.insert_errors["b"] = StoreError("insert_document", "HTTP 403", status_code=403, reason="forbidden")
        store.replication_script["c"] = [{"_replication_state": "error", "_replication_state_reason": "bad"}]
        sink = RecordingSink()

        summary = await ReplicationOrchestrator(store, poll_interval=0).run(
            config(databases=["a", "b", "c"], concurrency=3), [sink]
        )

        assert outcomes(summary) == {
            "a": JobOutcome.SUCCEEDED,
            "b": JobOutcome.FAILED,
            "c": JobOutcome.FAILED,
        }
        records = {r.database_name: r for r in summary.records}
        assert records["b"].error_message == "error - forbidden"
        assert records["c"].error_message == "error - bad"
        assert summary.has_errors
        assert summary.error_statistics["error_counts"] == {"RegistrationError": 1, "ReplicationFailedError": 1}
        assert len(sink.summaries) == 1

    @pytest.mark.asyncio
    async def test_copies_security_after_completion(self, store):
        store.security_docs["orders"] = {"cloudant": {"alice": ["_admin"], "carol": ["_reader"]}}

        summary = await ReplicationOrchestrator(store, poll_interval=0).run(
            config(databases=["orders", "empty"], copy_security=True)
        )

        assert summary.succeeded == 2
        assert store.writes == [(TARGET + "/orders", "_security", {"cloudant": {"carol": ["_reader"]}})]

    @pytest.mark.asyncio
    async def test_no_security_copy_for_failed_replication(self, store):
        store.security_docs["orders"] = {"cloudant": {"carol": ["_reader"]}}
        store.replication_script["orders"] = [{"_replication_state": "failed"}]

        summary = await ReplicationOrchestrator(store, poll_interval=0).run(
            config(databases=["orders"], copy_security=True)
        )

        assert store.writes == []
        assert summary.records[0].outcome == JobOutcome.FAILED
        assert summary.records[0].state == ReplicationState.ERROR

    @pytest.mark.asyncio
    async def test_security_failure_is_recorded(self, store):
        store.security_docs["orders"] = {"cloudant": {"carol": ["_reader"]}}
        store.security_write_error = StoreError("update_document", "HTTP 403", status_code=403)

        summary = await ReplicationOrchestrator(store, poll_interval=0).run(
            config(databases=["orders"], copy_security=True)
        )

        record = summary.records[0]
        assert record.outcome == JobOutcome.SUCCEEDED
        assert record.security_error is not None
        assert summary.has_errors

    @pytest.mark.asyncio
    async def test_broken_sink_does_not_stop_run(self, store):
        summary = await ReplicationOrchestrator(store, poll_interval=0).run(
            config(databases=["a", "b"]), [BrokenSink()]
        )
        assert summary.succeeded == 2


class TestLiveRuns:
    """Continuous replication runs."""

    @pytest.mark.asyncio
    async def test_fifty_live_replications_allowed(self, store):
        names = [f"db{i}" for i in range(50)]
        orchestrator = ReplicationOrchestrator(store, poll_interval=0)

        summary = await orchestrator.run(config(databases=names, live=True, no_monitor=True, concurrency=2))

        assert summary.detached == 50
        assert orchestrator.last_queue_statistics["concurrency"] == 50
        assert all(doc["continuous"] for doc in store.replication_docs.values())
        assert len(store.replication_docs) == 50

    @pytest.mark.asyncio
    async def test_fifty_one_live_replications_rejected(self, store):
        names = [f"db{i}" for i in range(51)]

        with pytest.raises(TooManyLiveReplicationsError):
            await ReplicationOrchestrator(store, poll_interval=0).run(config(databases=names, live=True))

        assert store.created == []
        assert store.replication_docs == {}

    @pytest.mark.asyncio
    async def test_reserved_names_do_not_count_towards_cap(self, store):
        names = [f"db{i}" for i in range(50)] + ["_users"]

        summary = await ReplicationOrchestrator(store).run(config(databases=names, live=True, no_monitor=True))

        assert summary.total == 50

    @pytest.mark.asyncio
    async def test_no_monitor_never_polls(self, store):
        sink = RecordingSink()

        summary = await ReplicationOrchestrator(store).run(
            config(databases=["a", "b"], live=True, no_monitor=True), [sink]
        )

        assert store.doc_polls == {}
        assert outcomes(summary) == {"a": JobOutcome.DETACHED, "b": JobOutcome.DETACHED}
        assert not summary.has_errors
        assert len(sink.summaries) == 1

    @pytest.mark.asyncio
    async def test_live_security_copied_at_submission(self, store):
        store.security_docs["a"] = {"cloudant": {"carol": ["_reader"]}}

        await ReplicationOrchestrator(store).run(
            config(databases=["a"], live=True, no_monitor=True, copy_security=True)
        )

        assert [w[0] for w in store.writes] == [TARGET + "/a"]

    @pytest.mark.asyncio
    async def test_stop_detaches_monitored_live_jobs(self, store):
        for name in ("a", "b"):
            store.replication_script[name] = [{"_replication_state": "triggered"}]
        orchestrator = ReplicationOrchestrator(store, poll_interval=0.01)

        task = asyncio.create_task(orchestrator.run(config(databases=["a", "b"], live=True)))
        while sum(store.doc_polls.values()) < 4:
            await asyncio.sleep(0.005)
        orchestrator.request_stop()
        summary = await asyncio.wait_for(task, timeout=5)

        assert orchestrator.stop_requested
        assert outcomes(summary) == {"a": JobOutcome.DETACHED, "b": JobOutcome.DETACHED}
        assert all(r.state == ReplicationState.TRIGGERED for r in summary.records)
