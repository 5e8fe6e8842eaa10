"""FrameLord - relationship CRM backend with FrameScan and psychometric inference"""

from __future__ import annotations

__version__ = "1.0.0"
