from __future__ import annotations

import json

import pytest

import travel_sales_wizard.rest.run_sale_wizard as runner
from travel_sales_wizard.testing.fakes import FakeSalesApi

pytestmark = pytest.mark.unit


def _sale_json(**overrides):
    sale = {
        "clientId": "c1",
        "saleCurrency": "USD",
        "originalSalePrice": 1000,
        "destination": {"city": "Bariloche", "country": "Argentina"},
        "passengers": [
            {
                "isMainClient": True,
                "passengerId": {"_id": "c1", "name": "Ana", "surname": "Perez", "dni": "30111222"},
            }
        ],
        "serviceTemplateInstances": [
            {
                "_id": "svc-1",
                "templateId": "t-hotel",
                "templateName": "Hotel",
                "serviceInfo": "Hotel 3 nights",
                "checkIn": "2026-03-01",
                "checkOut": "2026-03-04",
                "cost": 300,
                "destination": {"city": "Bariloche", "country": "Argentina"},
                "providers": [
                    {"providerId": {"_id": "p1", "name": "Hilton"}, "files": ["voucher.pdf"]}
                ],
            }
        ],
    }
    sale.update(overrides)
    return sale


@pytest.fixture()
def draft_file(tmp_path):
    (tmp_path / "voucher.pdf").write_bytes(b"%PDF-1.4")
    path = tmp_path / "draft.json"
    path.write_text(json.dumps(_sale_json()), encoding="utf-8")
    return path


class _FakeHttpApi(FakeSalesApi):
    """FakeSalesApi usable as `async with HttpSalesApi() as api`."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


def test_check_draft_walks_every_gate(draft_file, capsys):
    code = runner.main(["check-draft", "--draft-json", str(draft_file), "--print-payload"])

    out = capsys.readouterr().out
    assert code == 0
    assert "OK: draft reaches Review & Create with 1 service(s)" in out
    assert '"salePriceUSD": 1000.0' in out


def test_check_draft_reports_blocking_step(tmp_path, capsys):
    path = tmp_path / "draft.json"
    path.write_text(json.dumps(_sale_json(passengers=[])), encoding="utf-8")

    code = runner.main(["check-draft", "--draft-json", str(path)])

    assert code == 1
    assert "BLOCKED at step 1 (Passengers & Companions)" in capsys.readouterr().out


def test_submit_draft_uploads_local_files_then_creates(draft_file, monkeypatch, capsys):
    fake = _FakeHttpApi()
    monkeypatch.setattr(runner, "HttpSalesApi", lambda: fake, raising=True)
    monkeypatch.setattr(runner, "require_api_base_url", lambda: "https://example.invalid")

    code = runner.main(["submit-draft", "--draft-json", str(draft_file)])

    assert code == 0
    assert fake.uploaded == [("p1", "voucher.pdf", None)]
    assert "OK: sale created, sale_id=sale-1 documents=1" in capsys.readouterr().out


def test_submit_draft_with_sale_id_updates(draft_file, monkeypatch, capsys):
    fake = _FakeHttpApi()
    monkeypatch.setattr(runner, "HttpSalesApi", lambda: fake, raising=True)
    monkeypatch.setattr(runner, "require_api_base_url", lambda: "https://example.invalid")

    code = runner.main(["submit-draft", "--draft-json", str(draft_file), "--sale-id", "s-7"])

    assert code == 0
    assert fake.updated_payloads[0][0] == "s-7"
    assert "sale updated" in capsys.readouterr().out


def test_upload_failure_exits_with_error(draft_file, monkeypatch, capsys):
    fake = _FakeHttpApi(fail_uploads_for={"p1"})
    monkeypatch.setattr(runner, "HttpSalesApi", lambda: fake, raising=True)
    monkeypatch.setattr(runner, "require_api_base_url", lambda: "https://example.invalid")

    code = runner.main(["submit-draft", "--draft-json", str(draft_file)])

    assert code == 1
    assert fake.created_payloads == []
    assert "ERROR: Failed to upload documents for provider Hilton" in capsys.readouterr().out


def test_missing_draft_file_raises(tmp_path):
    with pytest.raises(RuntimeError):
        runner.main(["check-draft", "--draft-json", str(tmp_path / "nope.json")])


def test_failed_create_lists_documents_already_uploaded(draft_file, monkeypatch, capsys):
    fake = _FakeHttpApi(fail_submission=True)
    monkeypatch.setattr(runner, "HttpSalesApi", lambda: fake, raising=True)
    monkeypatch.setattr(runner, "require_api_base_url", lambda: "https://example.invalid")

    code = runner.main(["submit-draft", "--draft-json", str(draft_file)])

    out = capsys.readouterr().out
    assert code == 1
    assert "UPLOADED: service=svc-1 provider=p1 url=/uploads/p1-1-voucher.pdf" in out
    assert "ERROR: Failed to create sale" in out
