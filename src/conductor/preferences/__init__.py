"""
Preference commands.

- commands.py: Command Detector (list / save / delete / none)
- extractor.py: free text -> (category, key, value)
- handler.py: runs a command against the persistence gateway
"""

from .commands import Command, CommandKind, detect
from .extractor import ExtractedPreference, extract, normalize_key
from .handler import PreferenceCommandHandler, format_preference_list
