"""Shared pytest fixtures: raw camelCase documents as the upstream parsers produce them."""

import pytest


def _formula(
    mfc_no,
    product_code,
    product_name="Product",
    materials=(),
    packing_materials=(),
    filling_details=(),
    processes=(),
    license_no=None,
    **details,
):
    header = {
        "masterCardNo": mfc_no,
        "productCode": product_code,
        "productName": product_name,
    }
    if license_no is not None:
        header["manufacturingLicenseNo"] = license_no
    header.update(details)
    return {
        "_id": f"f-{mfc_no}",
        "fileName": f"{mfc_no}.xml",
        "masterFormulaDetails": header,
        "materials": list(materials),
        "packingMaterials": list(packing_materials),
        "fillingDetails": list(filling_details),
        "processes": list(processes),
    }


def _material(code, name=None, material_type=None):
    item = {"materialCode": code, "materialName": name or f"Material {code}"}
    if material_type is not None:
        item["materialType"] = material_type
    return item


def _batch_record(entries, file_name="batches.xml"):
    """entries: (item_code, batch_number) tuples or full batch dicts."""
    batches = []
    for entry in entries:
        if isinstance(entry, dict):
            batches.append(entry)
        else:
            item_code, batch_number = entry
            batches.append({
                "itemCode": item_code,
                "batchNumber": batch_number,
                "itemName": f"Item {item_code}",
            })
    return {"fileName": file_name, "companyName": "Acme Pharma", "batches": batches}


def _requisition(batches, file_name="requisition.xml"):
    """batches: {batch_number: [(material_code, material_type), ...]}"""
    return {
        "fileName": file_name,
        "batches": [
            {
                "batchNumber": batch_number,
                "materials": [
                    {"materialCode": code, "materialName": f"Material {code}", "materialType": kind}
                    for code, kind in materials
                ],
            }
            for batch_number, materials in batches.items()
        ],
    }


def _coa(batch_number, stage):
    return {"batchNumber": batch_number, "stage": stage}


@pytest.fixture
def make_formula():
    return _formula


@pytest.fixture
def make_material():
    return _material


@pytest.fixture
def make_batch_record():
    return _batch_record


@pytest.fixture
def make_requisition():
    return _requisition


@pytest.fixture
def make_coa():
    return _coa


@pytest.fixture
def scenario_records():
    """One MFC (P1, RM material M1), batches B1-B3, RM requisition for B1 only."""
    return {
        "formulas": [_formula("MFC-1", "P1", "Paracetamol Syrup", materials=[_material("M1", "Sugar")])],
        "batches": [_batch_record([("P1", "B1"), ("P1", "B2"), ("P1", "B3")])],
        "requisitions": [_requisition({"B1": [("M1", "RM")]})],
        "coa": [],
    }


@pytest.fixture
def scenario_store(scenario_records):
    from storage.memory import InMemoryRecordStore
    return InMemoryRecordStore(**scenario_records)


@pytest.fixture
def temp_db(tmp_path):
    """Path for a throwaway SQLite database."""
    return tmp_path / "records.db"


@pytest.fixture
def fresh_metrics():
    """The global metrics collector, emptied before and after the test."""
    from core.observability.metrics import get_metrics
    metrics = get_metrics()
    metrics.reset()
    yield metrics
    metrics.reset()
