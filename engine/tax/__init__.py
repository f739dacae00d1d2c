from .rules import TAX_TIERS, apply_tax, tax_multiplier

__all__ = ["TAX_TIERS", "apply_tax", "tax_multiplier"]
