"""
Liquidity Kernel

Tranche accounting core for a pooled lending fund:
- Profit, loss and loss-recovery waterfall across senior and junior tranches
- First-loss cover reserves that absorb losses ahead of tranches
- Proportional share ledgers per tranche with an epoch redemption queue
- Atomic, serialized state transitions backed by a transactional store
"""

__version__ = "0.1.0"
