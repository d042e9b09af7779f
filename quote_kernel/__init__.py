"""
Quote Kernel - approval and procurement core

The state-bearing core of the quote / purchase-order workflow:
- Named approval routes with ordered approver steps
- Per-document approval instances driven by conditional updates
- Procurement status of quote items derived from purchase orders
- Append-only procurement activity log
"""

__version__ = "0.1.0"
