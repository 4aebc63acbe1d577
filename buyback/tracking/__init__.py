"""
Carrier tracking

- Classifying provider responses into tracking snapshots
- Choosing the shipment leg and carrier to query
- Deriving order status transitions from a snapshot
- Refreshing an order end to end (TrackingService)
"""

__all__ = []
