from __future__ import annotations

from pathlib import Path

apdir = Path.home() / ".accesspath"
"""Directory for user-wide accesspath files, such as the default cost settings."""
