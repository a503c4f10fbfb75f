"""KitchZero core: inventory, recipe costing, production and approvals."""

__version__ = "0.1.0"
