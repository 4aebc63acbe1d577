"""
Buyback order reconciliation core.

Turns carrier tracking responses into canonical order statuses, allocates
order numbers, promo redemptions and print-batch ids exactly once, and
mirrors every order mutation into the per-customer view with an
append-only activity log.
"""
