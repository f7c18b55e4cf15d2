"""Material reference extraction from Master Formula Cards."""

from dataclasses import dataclass
from typing import List, Optional

from models.records import FormulaRecord, MaterialItem, MaterialType


@dataclass(frozen=True)
class MaterialRef:
    """A material an MFC expects to be requisitioned."""
    material_code: str
    material_name: str
    material_type: MaterialType


def resolve_process_material_type(raw_type: Optional[str]) -> MaterialType:
    """Categorise a process material by its declared type.

    PM and PPM are honoured; RM, a missing type, and any unrecognised value
    are all treated as raw (mixing) material.
    """
    if raw_type == MaterialType.PM.value:
        return MaterialType.PM
    if raw_type == MaterialType.PPM.value:
        return MaterialType.PPM
    return MaterialType.RM


def _ref(item: MaterialItem, material_type: MaterialType) -> Optional[MaterialRef]:
    if not item.material_code:
        return None
    return MaterialRef(
        material_code=item.material_code,
        material_name=item.material_name or "",
        material_type=material_type,
    )


def collect_materials(formula: FormulaRecord) -> List[MaterialRef]:
    """Collect every material reference embedded in an MFC.

    Sources, in order: mixing materials (RM), packing materials (PM),
    filling-detail packing materials (PPM), process materials (typed per
    entry) and process filling-product materials (PPM). Nothing is
    deduplicated: a code appearing in two places is checked twice.
    """
    candidates = []
    candidates.extend(_ref(item, MaterialType.RM) for item in formula.materials)
    candidates.extend(_ref(item, MaterialType.PM) for item in formula.packing_materials)

    for detail in formula.filling_details:
        candidates.extend(_ref(item, MaterialType.PPM) for item in detail.packing_materials)

    for process in formula.processes:
        candidates.extend(
            _ref(item, resolve_process_material_type(item.material_type))
            for item in process.materials
        )
        for filling_product in process.filling_products:
            candidates.extend(_ref(item, MaterialType.PPM) for item in filling_product.materials)

    return [ref for ref in candidates if ref is not None]
