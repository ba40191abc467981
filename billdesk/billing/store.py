"""
billdesk/billing/store.py
--------------------------
Keeps the cashier's open bill tabs in the Flask session.

Stored under key 'bills' as BillSessionManager.to_dict():
{
    "taxMode":  "exclusive",
    "taxType":  "intra",
    "nextId":   3,
    "activeId": 2,
    "bills":    [ {<BillSession.to_dict()>}, ... ]
}

Money values are strings so they survive JSON serialisation without
float contamination. Totals are never stored: every load recomputes
them, with the tax mode taken from app config rather than the cookie.
"""
from flask import current_app, session

from billdesk.billing.sessions import BillSessionManager


BILLS_KEY = 'bills'


def load_manager() -> BillSessionManager:
    """Return the cashier's tabs (a single empty tab on first use)."""
    return BillSessionManager.from_dict(
        session.get(BILLS_KEY),
        tax_mode=current_app.config['TAX_PRICE_MODE'],
        default_jurisdiction=current_app.config['DEFAULT_TAX_TYPE'],
    )


def save_manager(manager: BillSessionManager) -> None:
    session[BILLS_KEY] = manager.to_dict()
    session.modified = True
