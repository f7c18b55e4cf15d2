"""Product code resolution for Master Formula Cards.

An MFC can claim several product codes: its main code, one per filling
detail, and one per process filling product. Batches are keyed by product
code, so this set is the join key between formulas and batches.
"""

from typing import Dict, List, Sequence

from models.records import NOT_AVAILABLE, FormulaRecord


def resolve_product_codes(formula: FormulaRecord) -> List[str]:
    """Return the MFC's product codes, unique, in first-seen order.

    The main code and filling-detail codes exclude the "N/A" sentinel;
    process filling-product codes are taken as-is, only empty values are
    skipped.
    """
    codes: List[str] = []
    seen = set()

    def _add(code):
        if code and code not in seen:
            seen.add(code)
            codes.append(code)

    main_code = formula.product_code
    if main_code != NOT_AVAILABLE:
        _add(main_code)

    for detail in formula.filling_details:
        if detail.product_code != NOT_AVAILABLE:
            _add(detail.product_code)

    for process in formula.processes:
        for filling_product in process.filling_products:
            _add(filling_product.product_code)

    return codes


def claim_product_codes(formulas: Sequence[FormulaRecord]) -> Dict[str, int]:
    """Map each product code to the position of the first formula claiming it.

    A code shared by several MFCs is attributed to whichever appears first,
    the same tie-break the deduplicating aggregator applies.
    """
    claims: Dict[str, int] = {}
    for position, formula in enumerate(formulas):
        for code in resolve_product_codes(formula):
            claims.setdefault(code, position)
    return claims
