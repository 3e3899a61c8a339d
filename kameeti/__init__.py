"""
Kameeti - Committee Ledger Engine

Keeps the books for rotating-savings groups ("committees"): members pay a
fixed monthly contribution and every month one member, or a pair of
half-share members, draws the whole pool.

DESIGN PRINCIPLES:
1. One snapshot, replaced whole on every change
2. Derived values (duration, lateness, demerits) are never caller input
3. Rejections are typed and leave state untouched
4. Every mutation is auditable and undoable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Kameeti Team"
