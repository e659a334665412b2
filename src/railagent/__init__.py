"""
RailAgent transfer pipeline.

Policy gate -> settlement provider -> transfer store -> signed webhook notifications.
"""

__version__ = "0.1.0"
