"""
Shipping labels

Label creation through ShipStation and the label void lifecycle.
"""

__all__ = []
