from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
from dataclasses import replace
from pathlib import Path
from typing import Any

from travel_sales_wizard.config.settings import require_api_base_url, settings
from travel_sales_wizard.domain.enums import WizardStep
from travel_sales_wizard.domain.models import PendingFile, SaleDraft
from travel_sales_wizard.rest.http_client import HttpSalesApi
from travel_sales_wizard.rest.wire import draft_from_sale
from travel_sales_wizard.services import wizard
from travel_sales_wizard.services.cupo_reservation import check_seats
from travel_sales_wizard.services.sale_payload import (
    SalePayloadAssembler,
    build_payload,
    validate_passengers,
)
from travel_sales_wizard.utils.errors import WizardError
from travel_sales_wizard.utils.logging import configure_logging, get_logger

logger = get_logger("cli")


def _require_api_settings() -> str:
    return require_api_base_url()


def _load_json_file(path: str | None) -> dict | list:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise RuntimeError(f"JSON file not found: {path}")
    return json.loads(p.read_text(encoding="utf-8"))


def _pending_file(path: str, *, base: Path) -> PendingFile:
    p = Path(path)
    if not p.is_absolute():
        p = base / p
    if not p.exists():
        raise RuntimeError(f"Document not found: {path}")
    content_type = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
    return PendingFile(name=p.name, content=p.read_bytes(), content_type=content_type)


def _attach_local_files(draft: SaleDraft, raw: dict[str, Any], *, base: Path) -> SaleDraft:
    """Queues `services[i].providers[j].files` (local paths) on the matching assignments."""
    services_raw = raw.get("serviceTemplateInstances") or raw.get("services") or []
    services = list(draft.services)
    for i, service_raw in enumerate(services_raw):
        if i >= len(services):
            break
        providers = list(services[i].providers)
        for j, provider_raw in enumerate(service_raw.get("providers") or []):
            if j >= len(providers) or not isinstance(provider_raw, dict):
                continue
            paths = provider_raw.get("files") or []
            if paths:
                files = tuple(_pending_file(p, base=base) for p in paths)
                providers[j] = replace(providers[j], pending_files=files)
        services[i] = replace(services[i], providers=tuple(providers))
    return replace(draft, services=tuple(services))


def _load_draft(path: str) -> SaleDraft:
    raw = _load_json_file(path)
    if not isinstance(raw, dict):
        raise RuntimeError("--draft-json must be a JSON object shaped like a sale")
    draft = draft_from_sale(raw)
    return _attach_local_files(draft, raw, base=Path(path).resolve().parent)


def _walk_steps(draft: SaleDraft) -> wizard.WizardState:
    state = wizard.WizardState(draft=draft)
    while state.step < WizardStep.REVIEW:
        moved = wizard.advance(state)
        if moved.step == state.step:
            return moved
        state = moved
    return state


async def _print_catalog() -> None:
    async with HttpSalesApi() as api:
        templates, providers = await asyncio.gather(
            api.list_service_templates(), api.list_providers()
        )
    print(
        json.dumps(
            {
                "serviceTemplates": [
                    {"id": t.id, "name": t.name, "category": t.category} for t in templates
                ],
                "providers": [{"id": p.id, "name": p.name} for p in providers],
            },
            indent=2,
        )
    )


def _report_uploaded(before: SaleDraft, after: SaleDraft) -> None:
    """Lists documents stored before a failure so they can go into the draft JSON for a retry."""
    for old, new in zip(before.services, after.services):
        for old_a, new_a in zip(old.providers, new.providers):
            for doc in new_a.documents[len(old_a.documents) :]:
                print(f"UPLOADED: service={new.id} provider={new_a.provider_id} url={doc.url}")


async def _submit(draft: SaleDraft) -> None:
    progress: list[SaleDraft] = []
    async with HttpSalesApi() as api:
        try:
            outcome = await SalePayloadAssembler(api=api).submit(
                draft, on_progress=progress.append
            )
        except WizardError:
            if progress:
                _report_uploaded(draft, progress[-1])
            raise
    verb = "created" if outcome.created else "updated"
    print(f"OK: sale {verb}, sale_id={outcome.sale_id} documents={outcome.uploaded_documents}")


def main(argv: list[str] | None = None) -> int:
    """
    What it does:
    - Provides three run modes:
        1) catalog: prints the service templates and providers from the backend
        2) check-draft: walks a draft JSON through every step gate (no network)
        3) submit-draft: uploads documents and creates (or updates) the sale

    Why it matters:
    - Lets you debug the wizard rules and the backend contract without a UI.

    Behavior:
    - Draft JSON uses the same shape the backend returns for a sale.
    - `providers[j].files` lists local documents to upload on submit.
    - Exits 1 with the reason on any wizard error.
    """
    parser = argparse.ArgumentParser(prog="travel-sales-wizard")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("catalog", help="List service templates and providers from the backend.")

    p_check = sub.add_parser("check-draft", help="Run the step gates on a draft JSON (no network).")
    p_check.add_argument("--draft-json", type=str, required=True)
    p_check.add_argument("--print-payload", action="store_true", help="Print the sale payload.")

    p_submit = sub.add_parser("submit-draft", help="Upload documents and create/update the sale.")
    p_submit.add_argument("--draft-json", type=str, required=True)
    p_submit.add_argument("--sale-id", type=str, default=None, help="Update this sale instead.")

    args = parser.parse_args(argv)
    configure_logging(level=settings.log_level)

    try:
        if args.cmd == "catalog":
            _require_api_settings()
            asyncio.run(_print_catalog())
            return 0

        draft = _load_draft(args.draft_json)
        if getattr(args, "sale_id", None):
            draft = replace(draft, sale_id=args.sale_id)

        state = _walk_steps(draft)
        if state.step != WizardStep.REVIEW:
            print(f"BLOCKED at step {int(state.step)} ({state.step.title}): {state.message}")
            return 1

        validate_passengers(draft)
        check_seats(draft)

        if args.cmd == "check-draft":
            print(f"OK: draft reaches {state.step.title} with {len(draft.services)} service(s)")
            if args.print_payload:
                print(json.dumps(build_payload(draft), indent=2))
            return 0

        if args.cmd == "submit-draft":
            _require_api_settings()
            asyncio.run(_submit(draft))
            return 0
    except WizardError as e:
        logger.error("%s", e)
        print(f"ERROR: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
