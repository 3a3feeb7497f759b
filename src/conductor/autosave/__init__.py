"""
Auto-save of knowledge records found in agent responses.

- patterns.py: pure detect() / extract() over six pattern kinds
- detector.py: AutoSaveDetector, persists candidates through the gateway
"""

from .detector import AutoSaveDetector, AutoSaveResult, SavedRecordRef
from .patterns import detect, extract, scan_tech
