"""credential-sync CLI — `list` subcommand output and exit codes."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from credential_sync.cli import _list_bindings
from credential_sync.client import CredentialsPayload
from credential_sync.errors import TransportError
from credential_sync.store.models import Secret

AWS = "provider.shoot.gardener.cloud/aws"


def _mock_client(payload=None, error=None) -> AsyncMock:
    client = AsyncMock()
    if error is not None:
        client.fetch_credentials = AsyncMock(side_effect=error)
    else:
        client.fetch_credentials = AsyncMock(return_value=payload or CredentialsPayload())
    return client


def _payload() -> CredentialsPayload:
    return CredentialsPayload(secrets=[Secret.from_dict({
        "metadata": {"namespace": "a", "name": "s1", "uid": "u1", "labels": {AWS: "true"}}
    })])


class TestListCommand:
    @pytest.mark.asyncio
    async def test_table_output(self, capsys):
        client = _mock_client(_payload())
        with patch("credential_sync.cli.DashboardClient", return_value=client):
            code = await _list_bindings("a", "all", as_json=False)

        assert code == 0
        out = capsys.readouterr().out
        assert "KIND" in out
        assert "Secret" in out
        assert "aws" in out
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_json_output(self, capsys):
        client = _mock_client(_payload())
        with patch("credential_sync.cli.DashboardClient", return_value=client):
            code = await _list_bindings("a", "all", as_json=True)

        assert code == 0
        records = json.loads(capsys.readouterr().out)
        assert records[0]["metadata"]["uid"] == "u1-aws"
        assert records[0]["secretRef"] == {"name": "s1", "namespace": "a"}

    @pytest.mark.asyncio
    async def test_empty_view(self, capsys):
        client = _mock_client()
        with patch("credential_sync.cli.DashboardClient", return_value=client):
            code = await _list_bindings("a", "dns", as_json=False)

        assert code == 0
        assert "No dns bindings" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_backend_failure_exit_code(self, capsys):
        client = _mock_client(error=TransportError("HTTP 401", status_code=401))
        with patch("credential_sync.cli.DashboardClient", return_value=client):
            code = await _list_bindings("a", "all", as_json=False)

        assert code == 2
        assert "HTTP 401" in capsys.readouterr().err
        client.close.assert_awaited_once()
