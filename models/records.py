"""Source record views over the Formula, Batch, Requisition and COA collections.

These models are read-only views of documents produced by the upstream
parsers. Parsing is imperfect, so every non-identity field is optional and
every nested array degrades to an empty list when it is missing or malformed.
Raw camelCase documents validate directly; Python code uses snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


NOT_AVAILABLE = "N/A"


# =============================================================================
# Enums
# =============================================================================

class Section(str, Enum):
    """Validation sections a batch is checked against."""
    BULK = "Bulk"
    FINISH = "Finish"
    RM = "RM"
    PPM = "PPM"
    PM = "PM"


class MaterialType(str, Enum):
    """Requisition material categories."""
    RM = "RM"
    PPM = "PPM"
    PM = "PM"


class COAStage(str, Enum):
    """Certificate of Analysis stages."""
    BULK = "BULK"
    FINISH = "FINISH"


class BatchTier(str, Enum):
    """Dashboard batch-volume tiers, in aggregation order."""
    MAIN = "main"
    LOW_BATCH = "lowBatch"
    NO_BATCH = "noBatch"
    PLACEBO = "placebo"


# =============================================================================
# Value Parsers (tolerate whatever the upstream parsers produced)
# =============================================================================

def _parse_text(value):
    """Coerce scalars to str; anything structured becomes None."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    return None


def _parse_code(value):
    """Parse a category/stage code, normalised to upper case."""
    text = _parse_text(value)
    if text is None:
        return None
    return text.strip().upper()


def _parse_object(value):
    """A missing or malformed sub-document reads as an empty one."""
    if isinstance(value, (dict, BaseModel)):
        return value
    return {}


def _parse_list(value) -> List[Any]:
    """Missing or malformed arrays contribute nothing."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, (dict, BaseModel))]


Text = Annotated[Optional[str], BeforeValidator(_parse_text)]
Code = Annotated[Optional[str], BeforeValidator(_parse_code)]


# =============================================================================
# Base Model
# =============================================================================

class RecordBase(BaseModel):
    """Base model for all source record views."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Formula (Master Formula Card)
# =============================================================================

class MaterialItem(RecordBase):
    """A material line on a formula (mixing, packing or process material)."""
    sr_no: Text = None
    material_code: Text = None
    material_name: Text = None
    material_type: Code = None
    required_quantity: Text = None


MaterialItems = Annotated[List[MaterialItem], BeforeValidator(_parse_list)]


class FillingProduct(RecordBase):
    """A filling product declared inside a process stage."""
    product_code: Text = None
    product_name: Text = None
    materials: MaterialItems = Field(default_factory=list)


FillingProducts = Annotated[List[FillingProduct], BeforeValidator(_parse_list)]


class Process(RecordBase):
    """A manufacturing process stage on a formula."""
    process_name: Text = None
    stage: Text = None
    materials: MaterialItems = Field(default_factory=list)
    filling_products: FillingProducts = Field(default_factory=list)


Processes = Annotated[List[Process], BeforeValidator(_parse_list)]


class FillingDetail(RecordBase):
    """Filling detail row; each carries its own product code."""
    product_code: Text = None
    product_name: Text = None
    packing_size: Text = None
    packing_materials: MaterialItems = Field(default_factory=list)


FillingDetails = Annotated[List[FillingDetail], BeforeValidator(_parse_list)]


class MasterFormulaDetails(RecordBase):
    """Header block of a Master Formula Card."""
    master_card_no: Text = None
    product_code: Text = None
    product_name: Text = None
    generic_name: Text = None
    specification: Text = None
    manufacturer: Text = None
    manufacturing_license_no: Text = None
    manufacturing_location: Text = None
    revision_no: Text = None
    shelf_life: Text = None


class FormulaRecord(RecordBase):
    """Master Formula Card (MFC) document."""
    id: Text = Field(default=None, alias="_id")
    file_name: Text = None
    master_formula_details: Annotated[
        MasterFormulaDetails, BeforeValidator(_parse_object)
    ] = Field(default_factory=MasterFormulaDetails)
    materials: MaterialItems = Field(default_factory=list)
    packing_materials: MaterialItems = Field(default_factory=list)
    filling_details: FillingDetails = Field(default_factory=list)
    processes: Processes = Field(default_factory=list)

    @property
    def mfc_no(self) -> str:
        return self.master_formula_details.master_card_no or NOT_AVAILABLE

    @property
    def product_code(self) -> Optional[str]:
        return self.master_formula_details.product_code

    @property
    def product_name(self) -> str:
        return self.master_formula_details.product_name or "Unknown"


# =============================================================================
# Batch Registry
# =============================================================================

class BatchEntry(RecordBase):
    """A single manufactured batch inside a batch registry document."""
    sr_no: Text = None
    item_code: Text = None
    batch_number: Text = None
    item_name: Text = None
    item_detail: Text = None
    mfg_date: Text = None
    expiry_date: Text = None
    batch_size: Text = None
    unit: Text = None
    type: Text = None
    mfg_lic_no: Text = None
    department: Text = None
    pack: Text = None
    make: Text = None
    location_id: Text = None


BatchEntries = Annotated[List[BatchEntry], BeforeValidator(_parse_list)]


class BatchRecord(RecordBase):
    """Batch registry document holding many batch entries."""
    id: Text = Field(default=None, alias="_id")
    file_name: Text = None
    company_name: Text = None
    batches: BatchEntries = Field(default_factory=list)


# =============================================================================
# Material Requisition
# =============================================================================

class RequisitionMaterial(RecordBase):
    """A material drawn for a batch."""
    sr_no: Text = None
    material_code: Text = None
    material_name: Text = None
    material_type: Code = None
    unit: Text = None


RequisitionMaterials = Annotated[List[RequisitionMaterial], BeforeValidator(_parse_list)]


class RequisitionBatch(RecordBase):
    """Per-batch group of requisitioned materials."""
    batch_number: Text = None
    item_code: Text = None
    item_name: Text = None
    mfc_no: Text = None
    materials: RequisitionMaterials = Field(default_factory=list)


RequisitionBatches = Annotated[List[RequisitionBatch], BeforeValidator(_parse_list)]


class RequisitionRecord(RecordBase):
    """Material requisition document."""
    id: Text = Field(default=None, alias="_id")
    file_name: Text = None
    batches: RequisitionBatches = Field(default_factory=list)


# =============================================================================
# Certificate of Analysis
# =============================================================================

class COARecord(RecordBase):
    """COA presence record for one (batch, stage)."""
    id: Text = Field(default=None, alias="_id")
    batch_number: Text = None
    stage: Code = None
    product_code: Text = None
    product_name: Text = None
