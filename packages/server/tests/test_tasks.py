"""
Tests for the ARQ provisioning tasks and the operator CLI.
"""

from __future__ import annotations

import json
import uuid

import pytest
import structlog

from conftest import TENANT_ID
from helpdesk.scripts.provision_tenant import build_parser, main
from helpdesk.services.provisioning import is_template_applied
from helpdesk.tasks.provisioning import WorkerSettings, provision_tenant, repair_tenant


@pytest.fixture
def ctx(engine, template, settings) -> dict:
    return {"engine": engine, "template": template, "settings": settings}


@pytest.mark.asyncio
async def test_provision_tenant(ctx):
    result = await provision_tenant(ctx, str(TENANT_ID), "admin")

    assert result["success"] is True
    assert result["tenant_id"] == str(TENANT_ID)
    assert result["hierarchy"]["actions"] == 30
    assert await is_template_applied(ctx["engine"], TENANT_ID)


@pytest.mark.asyncio
async def test_repair_tenant_skips_provisioned(ctx):
    await provision_tenant(ctx, str(TENANT_ID), "admin")

    assert await repair_tenant(ctx, str(TENANT_ID), "admin") is None


@pytest.mark.asyncio
async def test_repair_tenant_reapplies(ctx):
    result = await repair_tenant(ctx, str(TENANT_ID), "admin")

    assert result is not None
    assert result["company_created"] is True
    assert await is_template_applied(ctx["engine"], TENANT_ID)


def test_worker_settings():
    assert provision_tenant in WorkerSettings.functions
    assert repair_tenant in WorkerSettings.functions


class TestCli:
    @pytest.fixture(autouse=True)
    def quiet(self, monkeypatch):
        """Keep log lines out of the captured JSON output."""
        monkeypatch.setattr("helpdesk.scripts.provision_tenant.configure_logging", lambda *a, **kw: None)
        previous = structlog.get_config()
        structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
        yield
        structlog.configure(**previous)

    def test_parse_copy(self):
        source, target = uuid.uuid4(), uuid.uuid4()
        args = build_parser().parse_args(["copy", str(TENANT_ID), str(source), str(target)])
        assert args.command == "copy"
        assert (args.tenant_id, args.source, args.target) == (TENANT_ID, source, target)

    def test_parse_rejects_bad_uuid(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["status", "not-a-uuid"])

    def test_apply_prints_result(self, capsys):
        code = main(["--database-url", "sqlite+aiosqlite://", "apply", str(TENANT_ID), "--user", "ops"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["success"] is True
        assert output["hierarchy"]["categories"] == 5

    def test_copy_same_company_fails(self, capsys):
        company = str(uuid.uuid4())
        code = main(["--database-url", "sqlite+aiosqlite://", "copy", str(TENANT_ID), company, company])

        assert code == 1
        assert "same" in capsys.readouterr().err
