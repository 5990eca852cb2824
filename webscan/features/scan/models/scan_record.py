from sqlalchemy import Column, String, BigInteger, JSON, Index

from webscan.platform.db.base import RecordBase


class ScanRecord(RecordBase):
    """
    Latest completed scan result for a URL.

    One row per URL, upserted on every completed scan and never deleted.
    Freshness is decided by the reader comparing ``expires_at`` to now.
    """
    __tablename__ = "scans"

    url = Column(String(512), unique=True, nullable=False)
    status = Column(String(50), nullable=False)

    # ScanResult.to_document() output
    result = Column(JSON, nullable=False)

    # Epoch milliseconds
    timestamp = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index('idx_scans_expires_at', 'expires_at'),
    )
