from app.core.tax_rules.at import AustrianTaxRules
from app.core.tax_rules.de import GermanTaxRules
from app.core.tax_rules.base import TaxRules
from app.core.tax_rules.registry import (
    JurisdictionProfile,
    describe_jurisdiction,
    get_tax_rules,
    is_supported,
    supported_jurisdictions,
)

__all__ = [
    "AustrianTaxRules",
    "GermanTaxRules",
    "JurisdictionProfile",
    "TaxRules",
    "describe_jurisdiction",
    "get_tax_rules",
    "is_supported",
    "supported_jurisdictions",
]
