from __future__ import annotations

from typing import Any, Dict, List

import pytest

from core.data import build_data_context, prepare_context

DEALERS: List[Dict[str, Any]] = [
    {"id": "d1", "name": "Alpha Auto", "region": "North", "annualSpend": 100000},
    {"id": "d2", "name": "Bravo Motors", "region": "South", "annualSpend": 50000},
    {"id": "d3", "name": "Charlie Cars", "region": "North", "annualSpend": 0},
]

VENDORS: List[Dict[str, Any]] = [
    {"id": "v1", "name": "Parts Co", "category": "Parts", "baseRebateRate": 5.0},
    {"id": "v2", "name": "Shine Inc", "category": "Detailing", "baseRebateRate": 2.0},
]

PRODUCTS: List[Dict[str, Any]] = [
    {"id": "p1", "vendorId": "v1", "sku": "PC-1", "name": "Brake Pad", "category": "Parts", "unitCost": 8.0},
    {"id": "p2", "vendorId": "v1", "sku": "PC-2", "name": "Oil Filter", "category": "Parts", "unitCost": 15.0},
    {"id": "p3", "vendorId": "v2", "sku": "SH-1", "name": "Wax", "category": "Detailing", "unitCost": 4.0},
]

# i4 points at a dealer missing from the master list; i5 has no lines.
INVOICES: List[Dict[str, Any]] = [
    {"id": "i1", "dealerId": "d1", "vendorId": "v1", "invoiceNumber": "INV-001", "date": "2025-01-10",
     "lineItems": [{"productId": "p1", "quantity": 2, "unitPrice": 10.0}]},
    {"id": "i2", "dealerId": "d1", "vendorId": "v1", "invoiceNumber": "INV-002", "date": "2025-02-15",
     "lineItems": [{"productId": "p2", "quantity": 3, "unitPrice": 20.0}]},
    {"id": "i3", "dealerId": "d2", "vendorId": "v2", "invoiceNumber": "INV-003", "date": "2025-04-05",
     "lineItems": [{"productId": "p3", "quantity": 10, "unitPrice": 5.0}]},
    {"id": "i4", "dealerId": "dX", "vendorId": "v1", "invoiceNumber": "INV-004", "date": "2025-04-05",
     "lineItems": [{"productId": "p1", "quantity": 1, "unitPrice": 100.0}]},
    {"id": "i5", "dealerId": "d2", "vendorId": "v2", "invoiceNumber": "INV-005", "date": "2025-07-01",
     "lineItems": []},
]

REBATE_EARNINGS: List[Dict[str, Any]] = [
    {"id": "e1", "dealerId": "d1", "vendorId": "v1", "period": "2025-Q2", "spend": 600.0,
     "rebatePercentApplied": 5.0, "rebateAmount": 30.0},
    {"id": "e2", "dealerId": "d2", "vendorId": "v2", "period": "2025-Q1", "spend": 400.0,
     "rebatePercentApplied": 4.0, "rebateAmount": 20.0},
    {"id": "e3", "dealerId": "d2", "vendorId": "v1", "period": "2025-Q3", "spend": 0.0,
     "rebatePercentApplied": 4.0, "rebateAmount": 0.0},
]


def sample_data_context() -> Dict[str, object]:
    return build_data_context(
        dealers=DEALERS,
        vendors=VENDORS,
        products=PRODUCTS,
        invoices=INVOICES,
        rebate_earnings=REBATE_EARNINGS,
        files=["dealers.json", "vendors.json", "products.json", "invoices.json", "rebate-earnings.json"],
    )


@pytest.fixture()
def data_ctx() -> Dict[str, object]:
    return sample_data_context()


@pytest.fixture()
def ctx(data_ctx) -> Dict[str, object]:
    """Unfiltered context over the sample records."""
    return prepare_context({}, data_ctx)
