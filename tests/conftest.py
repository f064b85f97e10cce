"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path

import pytest

from csv_record_mapper.config_models import CsvConfiguration


@pytest.fixture
def no_header_config() -> CsvConfiguration:
    """Configuration for inputs without a header record."""
    return CsvConfiguration(has_header_record=False)


@pytest.fixture
def orders_csv_text() -> str:
    """Orders CSV with a header, a quoted delimiter and an empty optional field."""
    return (
        "order_id,customer,total,quantity,shipped\n"
        "ORD001,John Doe,150.25,3,yes\n"
        'ORD002,"Smith, Jane",275.50,1,no\n'
        "ORD003,Bob Johnson,99.99,2,\n"
    )


@pytest.fixture
def orders_csv_file(tmp_path, orders_csv_text) -> Path:
    """Write the orders CSV to disk."""
    csv_file = tmp_path / "orders.csv"
    csv_file.write_text(orders_csv_text, encoding="utf-8")
    return csv_file


@pytest.fixture
def orders_mapping_file(tmp_path) -> Path:
    """Declarative mapping for the orders CSV."""
    mapping = {
        "name": "Order",
        "members": [
            {"member": "order_id", "name": "order_id"},
            {"member": "customer", "name": "customer"},
            {"member": "total", "name": "total", "type": "decimal"},
            {"member": "quantity", "name": "quantity", "type": "int", "default": 0},
            {"member": "shipped", "name": "shipped", "type": "boolean", "nullable": True},
        ]
    }
    mapping_file = tmp_path / "mapping.json"
    mapping_file.write_text(json.dumps(mapping, indent=2))
    return mapping_file
