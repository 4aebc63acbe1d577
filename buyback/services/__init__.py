"""
Order services

- OrderRecordStore: transactional order writes with activity log and mirror
- SequenceAllocator: order numbers, promo redemptions and print batches
"""

__all__ = []
