"""
Command-line provisioning for operators: apply the template to a tenant,
check its status, or copy a hierarchy between two companies.

    helpdesk-provision apply <tenant_id> --user ops@example.com
    helpdesk-provision status <tenant_id>
    helpdesk-provision copy <tenant_id> <source_company_id> <target_company_id>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from helpdesk.core.config import get_settings
from helpdesk.core.errors import ProvisioningError
from helpdesk.core.logging import configure_logging
from helpdesk.services import provisioning
from helpdesk.services.status import provisioning_status
from helpdesk.services.templates import load_configured_template, load_template

settings = get_settings()


async def _apply(engine: AsyncEngine, args: argparse.Namespace) -> dict:
    template = load_template(args.template) if args.template else load_configured_template(settings)
    result = await provisioning.apply_default_template(
        engine, args.tenant_id, args.user, template=template, settings=settings, force=args.force,
    )
    return result.model_dump(mode="json")


async def _status(engine: AsyncEngine, args: argparse.Namespace) -> dict:
    return {
        "tenant_id": str(args.tenant_id),
        "applied": await provisioning.is_template_applied(engine, args.tenant_id),
        "counts": await provisioning_status(engine, args.tenant_id),
    }


async def _copy(engine: AsyncEngine, args: argparse.Namespace) -> dict:
    result = await provisioning.copy_hierarchy(
        engine, args.tenant_id, args.source, args.target, settings=settings, holder=args.user,
    )
    return result.model_dump(mode="json")


async def run(args: argparse.Namespace) -> dict:
    engine = create_async_engine(args.database_url or settings.database_url)
    try:
        return await args.handler(engine, args)
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provision helpdesk tenants.")
    parser.add_argument("--database-url", help="Override HD_DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    apply_cmd = sub.add_parser("apply", help="Apply the default template to a tenant")
    apply_cmd.add_argument("tenant_id", type=uuid.UUID)
    apply_cmd.add_argument("--user", default=provisioning.SYSTEM_USER, help="Acting user id")
    apply_cmd.add_argument("--template", help="YAML template file (default: HD_TEMPLATE_PATH or shipped)")
    apply_cmd.add_argument("--force", action="store_true", help="Re-apply even if recorded as complete")
    apply_cmd.set_defaults(handler=_apply)

    status_cmd = sub.add_parser("status", help="Show whether the template was applied")
    status_cmd.add_argument("tenant_id", type=uuid.UUID)
    status_cmd.set_defaults(handler=_status)

    copy_cmd = sub.add_parser("copy", help="Copy a company's hierarchy to another company")
    copy_cmd.add_argument("tenant_id", type=uuid.UUID)
    copy_cmd.add_argument("source", type=uuid.UUID, help="Source company id")
    copy_cmd.add_argument("target", type=uuid.UUID, help="Target company id")
    copy_cmd.add_argument("--user", default=provisioning.SYSTEM_USER, help="Acting user id")
    copy_cmd.set_defaults(handler=_copy)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level, "text", stream=sys.stderr)

    try:
        output = asyncio.run(run(args))
    except ProvisioningError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
