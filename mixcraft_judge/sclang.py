"""Locating the sclang interpreter."""

import os
import platform
import shutil
from typing import Optional

from .config import SCLANG_PATH

# Common install locations per platform, checked after PATH
SCLANG_LOCATIONS = {
    "Darwin": [
        "/Applications/SuperCollider.app/Contents/MacOS/sclang",
        "/Applications/SuperCollider/SuperCollider.app/Contents/MacOS/sclang",
        "~/Applications/SuperCollider.app/Contents/MacOS/sclang",
    ],
    "Linux": [
        "/usr/bin/sclang",
        "/usr/local/bin/sclang",
        "/opt/SuperCollider/bin/sclang",
    ],
    "Windows": [
        r"C:\Program Files\SuperCollider\sclang.exe",
        r"C:\Program Files (x86)\SuperCollider\sclang.exe",
    ],
}


def find_sclang() -> Optional[str]:
    """Find the sclang executable path.

    MIXCRAFT_SCLANG wins when it points at a file, then PATH, then the
    platform's usual install locations.
    """
    if SCLANG_PATH:
        expanded = os.path.expanduser(SCLANG_PATH)
        if os.path.isfile(expanded):
            return expanded

    sclang_path = shutil.which("sclang")
    if sclang_path:
        return sclang_path

    for path in SCLANG_LOCATIONS.get(platform.system(), []):
        expanded = os.path.expanduser(path)
        if os.path.isfile(expanded):
            return expanded

    return None
