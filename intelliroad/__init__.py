"""
IntelliRoad: tamper-evident geolocated observations with on-chain
proof-of-existence anchoring.
"""

__version__ = "0.1.0"
