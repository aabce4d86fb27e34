from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict

import pytest


# Ensure src/ is importable for all tests (CI and local)
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def pytest_collection_modifyitems(config, items):
    """Default all tests to 'unit' unless explicitly marked otherwise.

    - If a test has @pytest.mark.integ or @pytest.mark.smoke, leave it.
    - If it already has @pytest.mark.unit, leave it.
    - Else, add @pytest.mark.unit to make unit the default selection.
    """
    for item in items:
        marks = {m.name for m in item.iter_markers()}
        if not ("integ" in marks or "smoke" in marks or "unit" in marks):
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def billing_agent() -> Dict[str, Any]:
    """A capability-bundle definition with one flow-backed function."""

    return {
        "id": "0Xx000000000001",
        "name": "Acme Bot",
        "label": "Acme Bot",
        "description": "Helps #Internal# customers   with billing.",
        "plannerRole": "You assist {!$CustomerName} with invoices.",
        "plannerToneType": "FORMAL",
        "locale": "en_US",
        "secondaryLocales": ["fr", "de"],
        "plugins": [
            {
                "name": "Billing",
                "pluginType": "TOPIC",
                "description": "Answers billing questions.",
                "scope": "Your job is to look up invoices.",
                "instructionDefinitions": [
                    {"name": "i1", "description": "Always confirm the {$OrderId} first."}
                ],
                "functions": [
                    {
                        "name": "GetInvoice",
                        "label": "Get Invoice",
                        "description": "Fetches an invoice.",
                        "invocationTargetType": "flow",
                        "invocationTargetName": "Get_Invoice_Flow",
                        "inputType": {
                            "required": ["Input:InvoiceId"],
                            "properties": {
                                "Input:InvoiceId": {
                                    "type": "string",
                                    "title": "Invoice Id",
                                    "description": "The invoice number",
                                },
                                "Input:Notes": {"type": "string"},
                            },
                        },
                        "outputType": {
                            "properties": {
                                "Output:Amount": {"type": "number", "title": "Amount"},
                                "Output:Lines": {
                                    "type": "array",
                                    "items": {"type": "object"},
                                },
                            }
                        },
                    }
                ],
            }
        ],
    }
