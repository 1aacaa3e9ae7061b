"""
Freelance Ledger - Recalculation Engine

Keeps every freelance project's money waterfall (platform fee, allocated
expenses, charity, partner shares) consistent with the records it
depends on.

DESIGN PRINCIPLES:
1. Derived amounts are computed, never typed in
2. A mutation recalculates every project it touched, before and after
3. Reject bad partner shares, never clamp them
4. A failed write never replaces the previous aggregate
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Freelance Ledger Team"
