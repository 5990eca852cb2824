"""
Scan models package.
"""
from webscan.features.scan.models.scan_record import ScanRecord

__all__ = ["ScanRecord"]
