"""Source record views: tolerant reading of imperfectly parsed documents."""


class TestFormulaRecord:
    """FormulaRecord validation from raw camelCase documents."""

    def test_reads_camel_case_document(self, make_formula, make_material):
        from models.records import FormulaRecord

        formula = FormulaRecord.model_validate(make_formula(
            "MFC-7", "P7", "Ointment",
            materials=[make_material("M1")],
            filling_details=[{"productCode": "P7A", "packingMaterials": [make_material("T1")]}],
        ))

        assert formula.id == "f-MFC-7"
        assert formula.mfc_no == "MFC-7"
        assert formula.product_code == "P7"
        assert formula.product_name == "Ointment"
        assert formula.materials[0].material_code == "M1"
        assert formula.filling_details[0].packing_materials[0].material_code == "T1"

    def test_missing_sections_read_as_empty(self):
        from models.records import FormulaRecord

        formula = FormulaRecord.model_validate({"_id": "x"})

        assert formula.materials == []
        assert formula.processes == []
        assert formula.mfc_no == "N/A"
        assert formula.product_code is None
        assert formula.product_name == "Unknown"

    def test_malformed_arrays_contribute_nothing(self):
        """null, scalars and non-object elements never fail validation."""
        from models.records import FormulaRecord

        formula = FormulaRecord.model_validate({
            "masterFormulaDetails": "corrupt",
            "materials": None,
            "packingMaterials": "PM-1",
            "fillingDetails": [None, 3, {"productCode": "P2"}],
            "processes": [{"materials": {"materialCode": "M9"}, "fillingProducts": None}],
        })

        assert formula.materials == []
        assert formula.packing_materials == []
        assert [d.product_code for d in formula.filling_details] == ["P2"]
        assert formula.processes[0].materials == []
        assert formula.processes[0].filling_products == []
        assert formula.master_formula_details.master_card_no is None

    def test_numeric_codes_become_strings(self):
        from models.records import FormulaRecord

        formula = FormulaRecord.model_validate({
            "masterFormulaDetails": {"masterCardNo": 1042, "productCode": 300120.0},
            "materials": [{"materialCode": 77, "materialName": {"nested": True}}],
        })

        assert formula.mfc_no == "1042"
        assert formula.product_code == "300120"
        assert formula.materials[0].material_code == "77"
        assert formula.materials[0].material_name is None


class TestRequisitionAndCoa:
    """Category codes are normalised on read."""

    def test_material_type_is_upper_cased(self):
        from models.records import RequisitionRecord

        requisition = RequisitionRecord.model_validate({
            "batches": [{"batchNumber": "B1", "materials": [{"materialCode": "M1", "materialType": " ppm "}]}],
        })

        assert requisition.batches[0].materials[0].material_type == "PPM"

    def test_coa_stage_is_upper_cased(self):
        from models.records import COARecord

        coa = COARecord.model_validate({"batchNumber": "B1", "stage": "bulk"})

        assert coa.stage == "BULK"

    def test_batch_record_ignores_unknown_fields(self):
        from models.records import BatchRecord

        record = BatchRecord.model_validate({
            "fileName": "b.xml",
            "uploadedAt": "2024-01-01",
            "batches": [{"itemCode": "P1", "batchNumber": "B1", "mrpValue": 12.5}],
        })

        assert record.batches[0].item_code == "P1"
        assert not hasattr(record, "uploaded_at")
