# ai_bridge/core/__init__.py

"""
Core runtime pieces shared by the bridge components.

``BridgeComponents`` lives in ``ai_bridge.core.components`` and is imported
from there directly; the components themselves import ``PeriodicSweeper``
from this package.
"""

from .periodic import PeriodicSweeper

__all__ = ["PeriodicSweeper"]
