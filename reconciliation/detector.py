"""Missing-data detection for qualifying MFCs.

Two variants:
- detect_section_gaps: one issue per batch lacking data for a section
- detect_missing_materials: one entry per (batch, material) lacking a requisition line

Both return uncapped results; truncation happens in the summarizer.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from core.observability.logging import get_logger, with_correlation
from models.api_responses import BatchAvailability, MissingMaterial, ValidationIssue
from models.records import MaterialType, Section

from reconciliation.eligibility import FormulaBatches
from reconciliation.materials import collect_materials


logger = get_logger(__name__)


SECTION_MESSAGES: Dict[Section, str] = {
    Section.BULK: "With batch {batch_number}, Bulk data was not available.",
    Section.FINISH: "With batch {batch_number}, Finished Product data was missing.",
    Section.RM: "With batch {batch_number}, RM data was not found in the requisition.",
    Section.PPM: "With batch {batch_number}, PPM details were missing.",
    Section.PM: "With batch {batch_number}, PM data was not present.",
}

MISSING_MATERIAL_MESSAGE = (
    "Material {code} ({name}) was not found in {type} requisition for batch {batch_number}"
)


# =============================================================================
# Section-based detection
# =============================================================================

@dataclass
class SectionDetection:
    total_mfcs: int = 0
    total_batches: int = 0
    batches_with_data: int = 0
    batches_missing_data: int = 0
    issues: List[ValidationIssue] = field(default_factory=list)
    batches: List[BatchAvailability] = field(default_factory=list)


def detect_section_gaps(
    qualifying: List[FormulaBatches],
    availability: Mapping[str, bool],
    section: Section,
) -> SectionDetection:
    """Check every batch of every qualifying MFC against the section index."""
    result = SectionDetection(total_mfcs=len(qualifying))
    template = SECTION_MESSAGES[section]

    for item in qualifying:
        with with_correlation(mfc_no=item.mfc_no):
            missing_before = result.batches_missing_data
            for batch in item.batches:
                has_data = availability.get(batch.batch_number, False)
                product_name = batch.item_name or item.product_name
                result.total_batches += 1
                result.batches.append(BatchAvailability(
                    batch_number=batch.batch_number,
                    mfc_no=item.mfc_no,
                    product_name=product_name,
                    has_data=has_data,
                ))
                if has_data:
                    result.batches_with_data += 1
                    continue
                result.batches_missing_data += 1
                result.issues.append(ValidationIssue(
                    batch_number=batch.batch_number,
                    mfc_no=item.mfc_no,
                    product_name=product_name,
                    section=section.value,
                    message=template.format(batch_number=batch.batch_number),
                ))
            logger.debug("Checked MFC batches", extra_fields={
                "batches": len(item.batches),
                "missing_data": result.batches_missing_data - missing_before,
            })

    return result


# =============================================================================
# Material-based detection
# =============================================================================

@dataclass
class MaterialDetection:
    total_mfcs: int = 0
    total_batches: int = 0
    total_materials_in_mfc: int = 0
    missing: List[MissingMaterial] = field(default_factory=list)


def detect_missing_materials(
    qualifying: List[FormulaBatches],
    requisition_codes: Mapping[str, Set[str]],
    material_type: Optional[MaterialType] = None,
) -> MaterialDetection:
    """Check every MFC material against the requisition of every batch.

    ``total_materials_in_mfc`` counts all collected materials regardless of
    the type filter; only the checks are restricted to ``material_type``.
    """
    result = MaterialDetection(total_mfcs=len(qualifying))

    for item in qualifying:
        with with_correlation(mfc_no=item.mfc_no):
            materials = collect_materials(item.formula)
            result.total_materials_in_mfc += len(materials)
            checked = [
                ref for ref in materials
                if material_type is None or ref.material_type == material_type
            ]
            missing_before = len(result.missing)

            for batch in item.batches:
                result.total_batches += 1
                requisitioned = requisition_codes.get(batch.batch_number, set())
                for ref in checked:
                    if ref.material_code in requisitioned:
                        continue
                    result.missing.append(MissingMaterial(
                        material_code=ref.material_code,
                        material_name=ref.material_name,
                        material_type=ref.material_type.value,
                        mfc_no=item.mfc_no,
                        product_name=item.product_name,
                        batch_number=batch.batch_number,
                        message=MISSING_MATERIAL_MESSAGE.format(
                            code=ref.material_code,
                            name=ref.material_name,
                            type=ref.material_type.value,
                            batch_number=batch.batch_number,
                        ),
                    ))
            logger.debug("Checked MFC materials", extra_fields={
                "batches": len(item.batches),
                "materials_checked": len(checked),
                "missing": len(result.missing) - missing_before,
            })

    return result
