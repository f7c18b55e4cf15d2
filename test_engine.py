"""Engine operations over loaded records."""

import pytest

from models.records import BatchRecord, FormulaRecord, RequisitionRecord, Section


def _formulas(docs):
    return [FormulaRecord.model_validate(doc) for doc in docs]


def _batches(docs):
    return [BatchRecord.model_validate(doc) for doc in docs]


class TestInputParsing:

    def test_parse_section(self):
        from reconciliation.engine import parse_section

        assert parse_section("PPM") == Section.PPM

    @pytest.mark.parametrize("value", [None, "", "Purple", "rm"])
    def test_invalid_section(self, value):
        from reconciliation.engine import InvalidInputError, parse_section

        with pytest.raises(InvalidInputError, match="Invalid section"):
            parse_section(value)

    def test_material_type_filter(self):
        from models.records import MaterialType
        from reconciliation.engine import InvalidInputError, parse_material_type

        assert parse_material_type(None) is None
        assert parse_material_type("  ") is None
        assert parse_material_type("ppm") == MaterialType.PPM
        with pytest.raises(InvalidInputError):
            parse_material_type("Bulk")

    @pytest.mark.parametrize("value, expected", [(None, 3), ("", 3), ("4", 4), (" 0 ", 0), (2, 2)])
    def test_parse_min_batches(self, value, expected):
        from reconciliation.engine import parse_min_batches

        assert parse_min_batches(value) == expected

    @pytest.mark.parametrize("value", ["abc", "2.5", "-1", -3])
    def test_invalid_min_batches(self, value):
        from reconciliation.engine import InvalidInputError, parse_min_batches

        with pytest.raises(InvalidInputError, match="Invalid minBatches"):
            parse_min_batches(value)


class TestMaterialValidation:

    def test_material_scenario(self, scenario_records):
        from reconciliation.engine import run_material_validation

        response = run_material_validation(
            _formulas(scenario_records["formulas"]),
            _batches(scenario_records["batches"]),
            [RequisitionRecord.model_validate(d) for d in scenario_records["requisitions"]],
        )

        assert response.success
        assert response.summary.total_mfcs == 1
        assert response.summary.total_batches == 3
        assert response.summary.total_missing_materials == 2
        assert response.summary.batches_with_missing_materials == 2
        assert response.summary.missing_by_type == {"RM": 2, "PPM": 0, "PM": 0}
        assert {(m.material_code, m.batch_number) for m in response.missing_materials} == {
            ("M1", "B2"), ("M1", "B3"),
        }
        assert response.material_code_summary[0].missing_in_batches == 2

    def test_missing_list_is_capped(self, make_formula, make_material, make_batch_record):
        from reconciliation.engine import run_material_validation
        from reconciliation.summarizer import MISSING_MATERIALS_LIMIT

        formula = make_formula("MFC-1", "P1", materials=[make_material(f"M{i}") for i in range(200)])
        batches = make_batch_record([("P1", f"B{i}") for i in range(3)])

        response = run_material_validation(_formulas([formula]), _batches([batches]), [])

        assert response.summary.total_missing_materials == 600
        assert len(response.missing_materials) == MISSING_MATERIALS_LIMIT
        assert len(response.material_code_summary) == 100


class TestSectionValidation:

    def test_bulk_uses_coa(self, make_formula, make_batch_record, make_coa):
        from models.records import COARecord
        from reconciliation.engine import run_section_validation

        response = run_section_validation(
            Section.BULK,
            _formulas([make_formula("MFC-1", "P1")]),
            _batches([make_batch_record([("P1", "B1"), ("P1", "B2"), ("P1", "B3")])]),
            [COARecord.model_validate(make_coa("B2", "BULK"))],
            [],
        )

        assert response.section == "Bulk"
        assert response.summary.batches_with_data == 1
        assert response.summary.batches_missing_data == 2
        assert response.message == "Validated Bulk data for 3 batches across 1 MFCs"


class TestBatchReconciliation:

    def test_orphan_batches_are_reported(self, make_formula, make_batch_record):
        from reconciliation.engine import run_batch_reconciliation

        response = run_batch_reconciliation(
            _formulas([make_formula("MFC-1", "P1")]),
            _batches([make_batch_record([("P1", "B1"), ("X9", "Z1"), ("X9", "Z2")])]),
        )
        report = response.data

        assert report.batch_reconciliation.total_batches_in_system == 3
        assert report.batch_reconciliation.batches_matched_to_formula == 1
        assert report.batch_reconciliation.batches_not_matched_to_formula > 0
        assert report.batch_reconciliation.all_batches_accounted_for is False
        assert report.batch_reconciliation.reconciliation_percentage == 33
        orphan = report.unmatched_batches[0]
        assert (orphan.item_code, orphan.batch_count, orphan.compliance_risk) == ("X9", 2, "medium")
        assert orphan.batch_numbers == ["Z1", "Z2"]

    def test_orphan_groups_sorted_and_risk_rated(self, make_batch_record):
        from reconciliation.engine import run_batch_reconciliation

        pairs = [("SMALL", "S1")] + [("BIG", f"B{i}") for i in range(6)]
        response = run_batch_reconciliation([], _batches([make_batch_record(pairs)]))
        report = response.data

        assert [g.item_code for g in report.unmatched_batches] == ["BIG", "SMALL"]
        assert report.unmatched_batches[0].compliance_risk == "high"
        assert [r.type for r in report.recommendations] == ["urgent_review"]

    def test_license_mismatch_detection(self, make_formula, make_batch_record):
        from reconciliation.engine import run_batch_reconciliation

        batch = lambda number, lic: {"itemCode": "P1", "batchNumber": number, "mfgLicNo": lic}
        response = run_batch_reconciliation(
            _formulas([make_formula("MFC-1", "P1", license_no="ML 123")]),
            _batches([make_batch_record([
                batch("B1", "ml123"),
                batch("B2", "ML-999"),
                batch("B3", "N/A"),
                batch("B4", None),
            ])]),
        )
        report = response.data
        result = report.formula_results[0]

        assert [m.batch_number for m in report.license_mismatches] == ["B2"]
        assert (result.total_batches, result.reconciled_batches, result.mismatched_batches) == (4, 3, 1)
        assert result.reconciliation_status == "partially_reconciled"
        assert report.batch_reconciliation.mismatched_batch_count == 1
        assert report.overall_stats.compliance_score == 50

    def test_formula_statuses_and_cleanup_recommendation(self, make_formula, make_batch_record):
        from reconciliation.engine import run_batch_reconciliation

        docs = [make_formula("MFC-1", "P1")] + [make_formula(f"EMPTY-{i}", f"E{i}") for i in range(6)]
        response = run_batch_reconciliation(
            _formulas(docs), _batches([make_batch_record([("P1", "B1")])])
        )
        report = response.data

        assert report.formula_results[0].master_card_no == "MFC-1"
        assert report.formula_results[0].reconciliation_status == "fully_reconciled"
        assert report.overall_stats.formulas_with_no_batches == 6
        assert report.overall_stats.compliance_score == 100
        assert any(r.type == "formula_cleanup" for r in report.recommendations)

    def test_shared_code_attributed_to_first_formula(self, make_formula, make_batch_record):
        from reconciliation.engine import run_batch_reconciliation

        response = run_batch_reconciliation(
            _formulas([
                make_formula("MFC-1", "P1", filling_details=[{"productCode": "P2"}]),
                make_formula("MFC-2", "P2"),
            ]),
            _batches([make_batch_record([("P2", "B1")])]),
        )
        by_mfc = {r.master_card_no: r for r in response.data.formula_results}

        assert by_mfc["MFC-1"].total_batches == 1
        assert by_mfc["MFC-2"].total_batches == 0

    def test_empty_collections(self):
        from reconciliation.engine import run_batch_reconciliation

        report = run_batch_reconciliation([], []).data

        assert report.batch_reconciliation.reconciliation_percentage == 100
        assert report.batch_reconciliation.all_batches_accounted_for is True


class TestDashboard:

    def test_tiers_totals_and_orphans(self, make_formula, make_batch_record):
        from reconciliation.engine import run_dashboard

        response = run_dashboard(
            _formulas([
                make_formula("MFC-MAIN", "P1"),
                make_formula("MFC-LOW", "P2"),
                make_formula("MFC-NONE", "P3"),
                make_formula("MFC-PLACEBO", "P4", "Placebo Caps"),
            ]),
            _batches([make_batch_record(
                [("P1", "B1"), ("P1", "B2"), ("P1", "B3"), ("P2", "C1"), ("P4", "D1"), ("X9", "Z1")]
            )]),
        )
        payload = response.to_payload()

        assert [f["mfcNo"] for f in payload["tiers"]["main"]] == ["MFC-MAIN"]
        assert [f["mfcNo"] for f in payload["tiers"]["lowBatch"]] == ["MFC-LOW"]
        assert [f["mfcNo"] for f in payload["tiers"]["noBatch"]] == ["MFC-NONE"]
        assert [f["mfcNo"] for f in payload["tiers"]["placebo"]] == ["MFC-PLACEBO"]
        assert payload["sectionBatchTotals"] == {"main": 3, "lowBatch": 1, "noBatch": 0, "placebo": 1}
        assert payload["totalBatches"] == 6
        assert payload["unmatchedBatches"][0]["itemCode"] == "X9"
        assert payload["batchReconciliation"]["batchesNotMatchedToFormula"] == 1

    def test_batches_are_flattened_once(self, make_formula, make_batch_record):
        from reconciliation.engine import run_dashboard

        # a one-shot iterator: a second pass over the registry would see nothing
        records = iter(_batches([make_batch_record([("P1", "B1"), ("X9", "Z1"), ("X9", "Z2")])]))

        payload = run_dashboard(_formulas([make_formula("MFC-1", "P1")]), records).to_payload()

        assert payload["totalBatches"] == 3
        assert [g["itemCode"] for g in payload["unmatchedBatches"]] == ["X9"]
        assert payload["batchReconciliation"]["batchesMatchedToFormula"] == 1
        assert payload["batchReconciliation"]["batchesNotMatchedToFormula"] == 2


class TestDuplicateReport:

    def test_repeated_batch_numbers_per_mfc(self, make_formula, make_batch_record):
        from reconciliation.engine import run_duplicate_report

        response = run_duplicate_report(
            _formulas([
                make_formula(" MFC-1 ", "P1"),
                make_formula("MFC-1", "P1B"),
                make_formula("MFC-2", "P2"),
            ]),
            _batches([
                make_batch_record([("P1", "B1"), ("P1B", "B1"), ("P1", "B2"), ("P2", "C1")]),
                make_batch_record([("P1", "B1"), ("P2", "C2")], file_name="reupload.xml"),
            ]),
        )

        assert response.total_mfcs_with_duplicates == 1
        report = response.reports[0]
        assert report.mfc_number == "MFC-1"
        assert report.product_codes == ["P1", "P1B"]
        assert report.total_batches == 4
        assert report.duplicates[0].batch_number == "B1"
        assert report.duplicates[0].occurrences == 3
        assert {o.file_name for o in report.duplicates[0].batches} == {"batches.xml", "reupload.xml"}

    def test_no_duplicates(self, make_formula, make_batch_record):
        from reconciliation.engine import run_duplicate_report

        response = run_duplicate_report(
            _formulas([make_formula("MFC-1", "P1")]),
            _batches([make_batch_record([("P1", "B1"), ("P1", "B2")])]),
        )

        assert response.reports == []
        assert response.total_duplicate_batch_numbers == 0


class TestMatchedBatches:

    def test_grouped_by_mfc_in_natural_order(self, make_formula, make_batch_record):
        from reconciliation.engine import run_matched_batches

        response = run_matched_batches(
            _formulas([
                make_formula("MFC-10", "P10"),
                make_formula("mfc-2", "P2", filling_details=[{"productCode": "P2B"}]),
            ]),
            _batches([make_batch_record([("P10", "A1"), ("P2", "B1"), ("P2B", "B2"), ("P2", "B3"), ("X", "Z")])]),
        )

        assert [g.master_card_no for g in response.data] == ["mfc-2", "MFC-10"]
        assert response.total == 2
        assert response.total_batches == 4
        codes = response.data[0].product_codes
        assert [(c.product_code, c.batch_count) for c in codes] == [("P2", 2), ("P2B", 1)]
        assert codes[0].batches[0].mfg_date == "N/A"

    def test_no_formulas(self, make_batch_record):
        from reconciliation.engine import run_matched_batches

        response = run_matched_batches([], _batches([make_batch_record([("P1", "B1")])]))

        assert response.success
        assert response.data == []
        assert response.message == "No matched product codes found"

    def test_natural_sort_key(self):
        from reconciliation.engine import natural_sort_key

        values = ["MFC-10", "mfc-9", "MFC-100", "ABC"]

        assert sorted(values, key=natural_sort_key) == ["ABC", "mfc-9", "MFC-10", "MFC-100"]
