"""
Module: liquidity_kernel.db.types
Responsibility: Annotated column aliases shared by every model so that all
    amounts, timestamps and identifiers use identical column definitions.
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from models/, services/ or selectors/.
"""

from typing import Annotated

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import mapped_column

from liquidity_kernel.db.base import AmountString

# Fixed-width amount (96-bit tranche figures, share counts) stored as text.
Amount = Annotated[int, mapped_column(AmountString(), nullable=False, default=0)]

# Seconds since the Unix epoch.
Timestamp = Annotated[int, mapped_column(BigInteger, nullable=False, default=0)]

# Account identifier (lender, provider, treasury, holding account).
AccountId = Annotated[str, mapped_column(String(128), nullable=False)]

# Pool identifier.
PoolId = Annotated[str, mapped_column(String(64), nullable=False, index=True)]
