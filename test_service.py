"""Async service layer: store reads, input rejection, failure conversion, metrics."""

import asyncio

from storage.base import Collection, RecordStore


class FailingStore(RecordStore):
    """Store whose every read fails."""

    name = "failing"

    async def load_documents(self, collection):
        raise RuntimeError("store offline")


class CountingStore(RecordStore):
    """Records which collections were read."""

    name = "counting"

    def __init__(self):
        self.reads = []

    async def load_documents(self, collection):
        self.reads.append(collection)
        return []


class TestValidateSection:

    def test_invalid_section_is_rejected_without_reading(self, fresh_metrics):
        from reconciliation.service import validate_section

        store = CountingStore()
        response = asyncio.run(validate_section(store, "Purple"))

        assert response.success is False
        assert response.status_code == 400
        assert response.section == "Purple"
        assert "Must be one of: Bulk, Finish, RM, PPM, PM" in response.message
        assert response.summary.total_batches == 0
        assert store.reads == []
        assert fresh_metrics.get_summary()["runs"]["rejected"] == 1

    def test_missing_section_echoes_default(self):
        from reconciliation.service import validate_section

        response = asyncio.run(validate_section(CountingStore(), None))

        assert response.status_code == 400
        assert response.section == "Bulk"

    def test_rm_section_reads_requisitions(self, scenario_store):
        from reconciliation.service import validate_section

        response = asyncio.run(validate_section(scenario_store, "RM"))

        assert response.success
        assert response.status_code == 200
        assert response.summary.batches_with_data == 1
        assert [i.batch_number for i in response.issues] == ["B2", "B3"]

    def test_bulk_section_reads_only_matching_coa_stage(self, make_formula, make_batch_record, make_coa):
        from reconciliation.service import validate_section
        from storage.memory import InMemoryRecordStore

        store = InMemoryRecordStore(
            formulas=[make_formula("MFC-1", "P1")],
            batches=[make_batch_record([("P1", "B1"), ("P1", "B2"), ("P1", "B3")])],
            coa=[make_coa("B1", "bulk"), make_coa("B2", "FINISH")],
        )

        response = asyncio.run(validate_section(store, "Bulk"))

        assert [b.has_data for b in response.batches] == [True, False, False]

    def test_store_failure_returns_zeroed_500(self, fresh_metrics):
        from reconciliation.service import validate_section

        response = asyncio.run(validate_section(FailingStore(), "PM"))

        assert response.success is False
        assert response.status_code == 500
        assert response.message == "store offline"
        assert response.section == "PM"
        assert response.issues == []
        assert fresh_metrics.get_summary()["runs"]["failed"] == 1


class TestValidateMaterials:

    def test_material_scenario(self, scenario_store, fresh_metrics):
        from reconciliation.service import validate_materials

        response = asyncio.run(validate_materials(scenario_store))

        assert response.success
        assert response.summary.missing_by_type["RM"] == 2
        assert response.message == "Found 2 missing material entries across 3 batches in 1 MFCs"

        summary = fresh_metrics.get_summary()
        assert summary["runs"]["completed"] == 1
        assert summary["last_results"]["validate_materials"]["missing_materials"] == 2

    def test_type_filter_is_case_insensitive(self, scenario_store):
        from reconciliation.service import validate_materials

        response = asyncio.run(validate_materials(scenario_store, material_type="pm"))

        assert response.success
        assert response.summary.total_missing_materials == 0
        assert response.summary.total_materials_in_mfc == 1

    def test_invalid_type_is_rejected(self, scenario_store):
        from reconciliation.service import validate_materials

        response = asyncio.run(validate_materials(scenario_store, material_type="XYZ"))

        assert response.success is False
        assert response.status_code == 400
        assert response.missing_materials == []

    def test_min_batches_override(self, scenario_store):
        from reconciliation.service import validate_materials

        response = asyncio.run(validate_materials(scenario_store, min_batches=4))

        assert response.summary.total_mfcs == 0
        assert response.summary.total_missing_materials == 0

    def test_min_batches_from_query_string(self, scenario_store):
        from reconciliation.service import validate_materials

        response = asyncio.run(validate_materials(scenario_store, min_batches="4"))

        assert response.success
        assert response.summary.total_mfcs == 0

    def test_non_integer_min_batches_is_rejected(self, scenario_store, fresh_metrics):
        from reconciliation.service import validate_materials, validate_section

        materials = asyncio.run(validate_materials(scenario_store, min_batches="abc"))
        section = asyncio.run(validate_section(scenario_store, "RM", min_batches="abc"))

        for response in (materials, section):
            assert response.success is False
            assert response.status_code == 400
            assert response.message == "Invalid minBatches. Must be a non-negative integer"
        assert section.section == "RM"
        assert fresh_metrics.get_summary()["runs"]["rejected"] == 2


class TestReports:

    def test_reconcile_batches(self, scenario_store):
        from reconciliation.service import reconcile_batches

        response = asyncio.run(reconcile_batches(scenario_store))

        assert response.success
        assert response.data.batch_reconciliation.total_batches_in_system == 3
        assert response.data.batch_reconciliation.reconciliation_percentage == 100
        assert response.data.report_id.startswith("RECON-")

    def test_reconcile_failure(self):
        from reconciliation.service import reconcile_batches

        response = asyncio.run(reconcile_batches(FailingStore()))

        assert response.status_code == 500
        assert response.data is None

    def test_dashboard_failure_is_zeroed(self):
        from reconciliation.service import build_dashboard

        response = asyncio.run(build_dashboard(FailingStore()))
        payload = response.to_payload()

        assert response.status_code == 500
        assert payload["success"] is False
        assert payload["totalBatches"] == 0
        assert payload["sectionBatchTotals"] == {"main": 0, "lowBatch": 0, "noBatch": 0, "placebo": 0}
        assert payload["batchReconciliation"]["reconciliationPercentage"] == 0
        assert payload["batchReconciliation"]["allBatchesAccountedFor"] is False

    def test_dashboard_reads_formulas_and_batches_only(self):
        from reconciliation.service import build_dashboard

        store = CountingStore()
        response = asyncio.run(build_dashboard(store))

        assert response.success
        assert sorted(c.value for c in store.reads) == ["batches", "formulas"]

    def test_duplicates_and_matched(self, scenario_store):
        from reconciliation.service import find_duplicate_batches, list_matched_batches

        duplicates = asyncio.run(find_duplicate_batches(scenario_store))
        matched = asyncio.run(list_matched_batches(scenario_store))

        assert duplicates.total_mfcs_with_duplicates == 0
        assert matched.total_batches == 3
        assert matched.data[0].master_card_no == "MFC-1"

    def test_operations_counted_per_name(self, scenario_store, fresh_metrics):
        from reconciliation.service import build_dashboard, reconcile_batches

        asyncio.run(build_dashboard(scenario_store))
        asyncio.run(reconcile_batches(scenario_store))
        asyncio.run(reconcile_batches(FailingStore()))

        runs = fresh_metrics.get_summary()["runs"]
        assert runs["started"] == 3
        assert runs["in_progress"] == 0
        assert runs["by_operation"]["reconcile_batches"]["failed"] == 1
        assert runs["by_operation"]["build_dashboard"]["completed"] == 1


class TestStoreInteraction:

    def test_fetch_coa_filters_by_stage(self, make_coa):
        from models.records import COAStage
        from storage.memory import InMemoryRecordStore

        store = InMemoryRecordStore(coa=[make_coa("B1", "BULK"), make_coa("B2", "Finish")])

        finish = asyncio.run(store.fetch_coa(COAStage.FINISH))

        assert [r.batch_number for r in finish] == ["B2"]
        assert len(asyncio.run(store.fetch_coa())) == 2

    def test_added_documents_are_visible(self, scenario_store, make_batch_record):
        from reconciliation.service import validate_materials

        scenario_store.add(Collection.BATCHES, make_batch_record([("P1", "B4")]))

        response = asyncio.run(validate_materials(scenario_store))

        assert response.summary.total_batches == 4
