from .auth import bp as auth_bp
from .buildings import bp as buildings_bp
from .invoices import bp as invoices_bp
from .leases import bp as leases_bp
from .maintenance import bp as maintenance_bp
from .organizations import bp as organizations_bp
from .parking import bp as parking_bp
from .payments import bp as payments_bp
from .reports import bp as reports_bp
from .tenants import bp as tenants_bp
from .users import bp as users_bp
from .visitors import bp as visitors_bp
from .webhooks import bp as webhooks_bp

BLUEPRINTS = [
    auth_bp,
    organizations_bp,
    users_bp,
    buildings_bp,
    tenants_bp,
    leases_bp,
    invoices_bp,
    payments_bp,
    webhooks_bp,
    parking_bp,
    visitors_bp,
    maintenance_bp,
    reports_bp,
]
