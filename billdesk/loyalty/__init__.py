"""
billdesk/loyalty
----------------
Loyalty point redemption rules. Accrual (points earned per bill) is part
of the totals engine in billdesk/billing/totals.py.
"""
