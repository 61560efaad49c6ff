"""SyncTimer / SyncMetrics."""

from __future__ import annotations

import pytest

from credential_sync.metrics import SyncMetrics, SyncTimer


class TestSyncTimer:
    @pytest.mark.asyncio
    async def test_success_records_counts(self):
        async with SyncTimer("fetch_all", namespace="a") as t:
            t.record_counts({"secrets": 2, "credentialsBindings": 3}, virtual_bindings=2)

        result = t.result
        assert isinstance(result, SyncMetrics)
        assert result.ok is True
        assert result.namespace == "a"
        assert result.counts == {"secrets": 2, "credentialsBindings": 3}
        assert result.virtual_bindings == 2
        assert result.end_ts >= result.start_ts
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_failure_clears_counts(self):
        t = SyncTimer("fetch_all", namespace="a")
        with pytest.raises(RuntimeError):
            async with t:
                t.record_counts({"secrets": 1}, virtual_bindings=1)
                raise RuntimeError("boom")

        assert t.result.ok is False
        assert t.result.counts == {}
        assert t.result.virtual_bindings == 0

    def test_to_dict_before_exit(self):
        assert SyncTimer("fetch_all").to_dict() == {}

    @pytest.mark.asyncio
    async def test_to_dict_after_exit(self):
        async with SyncTimer("fetch_all", namespace="a") as t:
            pass
        d = t.to_dict()
        assert d["operation"] == "fetch_all"
        assert d["ok"] is True
