# Overview: Pytest coverage for the document, fiscal year and health HTTP routes.

from app.models import Safe
from conftest import DOC_DATE, CLOSED_DATE, balance_of, tenant_headers


def _body(t, **overrides) -> dict:
    body = {
        "branch_id": t.branch_id,
        "store_id": t.store_id,
        "date": DOC_DATE,
        "payment_method": "cash",
        "payment_target": {"type": "safe"},
        "lines": [{"item_id": t.item_id, "quantity": 10, "unit_price_cents": 10000}],
    }
    body.update(overrides)
    return body


class TestDocumentRoutes:
    def test_tenant_header_required(self, client, db_session, tenant_a):
        response = client.post('/api/sales-invoices/', json=_body(tenant_a))
        assert response.status_code == 401

    def test_unknown_org_forbidden(self, client, db_session, tenant_a):
        response = client.get('/api/sales-invoices/', headers=tenant_headers(99999))
        assert response.status_code == 403

    def test_create_get_update_delete(self, client, db_session, tenant_a):
        headers = tenant_headers(tenant_a.org_id, user_id=4)

        response = client.post('/api/sales-invoices/', json=_body(tenant_a), headers=headers)
        assert response.status_code == 201
        doc = response.json["document"]
        assert doc["code"] == "INV-00001"
        assert doc["net_cents"] == 115000
        assert doc["created_by_user_id"] == 4
        assert len(doc["lines"]) == 1

        response = client.get(f'/api/sales-invoices/{doc["id"]}', headers=headers)
        assert response.status_code == 200

        response = client.patch(
            f'/api/sales-invoices/{doc["id"]}',
            json={"lines": [{"item_id": tenant_a.item_id, "quantity": 4, "unit_price_cents": 10000}]},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json["document"]["net_cents"] == 46000
        assert balance_of(Safe, tenant_a.safe_id) == 46000

        response = client.get('/api/sales-invoices/', headers=headers)
        assert response.json["total"] == 1

        response = client.delete(f'/api/sales-invoices/{doc["id"]}', headers=headers)
        assert response.status_code == 200
        assert response.json["deleted"] is True
        assert balance_of(Safe, tenant_a.safe_id) == 0

    def test_error_mapping(self, client, db_session, tenant_a):
        headers = tenant_headers(tenant_a.org_id)

        response = client.post('/api/sales-invoices/', json=_body(tenant_a, lines=[]), headers=headers)
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_FAILED"

        response = client.post('/api/sales-invoices/', json=_body(tenant_a, date=CLOSED_DATE), headers=headers)
        assert response.status_code == 403
        assert response.json["code"] == "FISCAL_PERIOD_CLOSED"

        response = client.post('/api/sales-invoices/', json=_body(tenant_a, date="2021-01-01"), headers=headers)
        assert response.status_code == 400
        assert response.json["code"] == "NO_OPEN_PERIOD"

        response = client.post(
            '/api/sales-invoices/',
            json=_body(tenant_a, lines=[{"item_id": tenant_a.item_id, "quantity": 500, "unit_price_cents": 1}]),
            headers=headers,
        )
        assert response.status_code == 409
        assert response.json["code"] == "INSUFFICIENT_STOCK"

        response = client.post('/api/purchase-invoices/', json=_body(tenant_a), headers=headers)
        assert response.status_code == 409
        assert response.json["code"] == "INSUFFICIENT_FUNDS"

        response = client.get('/api/sales-invoices/12345', headers=headers)
        assert response.status_code == 404
        assert response.json["code"] == "NOT_FOUND"

    def test_kinds_have_their_own_prefixes(self, client, db_session, tenant_a):
        headers = tenant_headers(tenant_a.org_id)
        credit = _body(tenant_a, payment_method="credit", payment_target=None)

        codes = {}
        for path, party in (
            ('/api/sales-returns/', tenant_a.customer_id),
            ('/api/purchase-invoices/', tenant_a.supplier_id),
            ('/api/purchase-returns/', tenant_a.supplier_id),
        ):
            response = client.post(path, json=dict(credit, counter_party_id=party), headers=headers)
            assert response.status_code == 201
            codes[path] = response.json["document"]["code"]

        assert codes == {
            '/api/sales-returns/': "RTN-00001",
            '/api/purchase-invoices/': "PUR-00001",
            '/api/purchase-returns/': "PRTN-00001",
        }


class TestFiscalYearRoutes:
    def test_create_close_reopen(self, client, db_session, org_a):
        headers = tenant_headers(org_a.id)

        response = client.post(
            '/api/fiscal-years/',
            json={"name": "FY2024", "start_date": "2024-01-01", "end_date": "2024-12-31"},
            headers=headers,
        )
        assert response.status_code == 201
        fy_id = response.json["fiscal_year"]["id"]

        response = client.post(f'/api/fiscal-years/{fy_id}/close', headers=headers)
        assert response.status_code == 200
        assert response.json["fiscal_year"]["status"] == "CLOSED"

        response = client.post(f'/api/fiscal-years/{fy_id}/close', headers=headers)
        assert response.status_code == 400

        response = client.post(f'/api/fiscal-years/{fy_id}/reopen', headers=headers)
        assert response.json["fiscal_year"]["status"] == "OPEN"

        response = client.get('/api/fiscal-years/', headers=headers)
        assert len(response.json["fiscal_years"]) == 1

    def test_overlap_rejected(self, client, db_session, org_a, open_year_a):
        response = client.post(
            '/api/fiscal-years/',
            json={"name": "Again", "start_date": "2024-03-01", "end_date": "2025-02-28"},
            headers=tenant_headers(org_a.id),
        )
        assert response.status_code == 400


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
