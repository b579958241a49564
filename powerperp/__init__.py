"""
powerperp: margin, funding and liquidation engine for a squared-power perpetual
"""

__version__ = "0.1.0"
