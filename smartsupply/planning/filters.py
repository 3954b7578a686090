"""
Result Filtering

Comma-separated search over product ids and names. Within one field any
term may match; when both fields carry terms, both must match.
"""

from typing import List, Optional, Sequence

from smartsupply.models import ProductResult


def split_terms(query: Optional[str]) -> List[str]:
    if not query:
        return []
    return [term.strip().lower() for term in query.split(",") if term.strip()]


def filter_results(
    results: Sequence[ProductResult],
    sku_query: Optional[str] = None,
    name_query: Optional[str] = None,
) -> List[ProductResult]:
    """Filter results by product id and/or name substrings (case-insensitive)"""
    sku_terms = split_terms(sku_query)
    name_terms = split_terms(name_query)
    if not sku_terms and not name_terms:
        return list(results)

    def matches(product: ProductResult) -> bool:
        sku_match = not sku_terms or any(term in product.id.lower() for term in sku_terms)
        name_match = not name_terms or any(term in product.name.lower() for term in name_terms)
        return sku_match and name_match

    return [product for product in results if matches(product)]
