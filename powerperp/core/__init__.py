"""
Core algorithms: fixed-point math, CPMM swap quotes and the power engine
"""
