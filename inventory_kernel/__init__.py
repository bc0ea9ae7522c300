"""
Inventory Kernel

Stock-consistency engine for a donated-goods charity:
- Per-item stock counters that never go negative under concurrent mutation
- Gapless, strictly increasing batch serial numbers
- Append-only inventory log with compensating reversals
- Expiry monitoring derived from donation line items
"""

__version__ = "0.1.0"
