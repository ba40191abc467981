from flask import Blueprint

billing = Blueprint('billing', __name__)

from billdesk.billing import routes  # noqa: F401, E402
