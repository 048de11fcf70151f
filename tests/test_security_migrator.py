"""Unit tests for security document migration."""

import pytest

from replication_orchestrator.core.exceptions import SecurityMigrationError, StoreError
from replication_orchestrator.services.job_builder import JobDescriptorBuilder
from replication_orchestrator.services.security_migrator import SecurityMigrator, strip_account


class TestStripAccount:
    """Tests for strip_account."""

    def test_removes_only_the_named_user(self):
        security = {
            "_id": "_security",
            "cloudant": {"alice": ["_reader", "_writer"], "bob": ["_reader"]},
            "members": {"names": ["alice"]}
        }

        result = strip_account(security, "alice")

        assert result == {"cloudant": {"bob": ["_reader"]}, "members": {"names": ["alice"]}}
        assert "alice" in security["cloudant"]

    def test_no_username(self):
        security = {"cloudant": {"alice": ["_reader"]}}
        assert strip_account(security, None) == security


class TestMigrate:
    """Tests for SecurityMigrator.migrate."""

    @pytest.mark.asyncio
    async def test_copies_without_source_account(self, store, source_url, target_url):
        store.security_docs["orders"] = {"cloudant": {"alice": ["_admin"], "bob": ["_reader"]}}
        job = JobDescriptorBuilder().build(source_url, target_url, "orders")

        written = await SecurityMigrator(store).migrate(job)

        assert written is True
        assert store.writes == [(target_url + "/orders", "_security", {"cloudant": {"bob": ["_reader"]}})]

    @pytest.mark.asyncio
    async def test_empty_document_is_a_no_op(self, store, source_url, target_url):
        job = JobDescriptorBuilder().build(source_url, target_url, "orders")

        written = await SecurityMigrator(store).migrate(job)

        assert written is False
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_write_failure(self, store, source_url, target_url):
        store.security_docs["orders"] = {"cloudant": {"bob": ["_reader"]}}
        store.security_write_error = StoreError("update_document", "HTTP 403 forbidden", status_code=403)
        job = JobDescriptorBuilder().build(source_url, target_url, "orders")

        with pytest.raises(SecurityMigrationError) as info:
            await SecurityMigrator(store).migrate(job)
        assert info.value.database_name == "orders"
