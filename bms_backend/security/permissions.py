"""Role → module → action permission matrix."""

SUPER_ADMIN = "SUPER_ADMIN"
ORG_ADMIN = "ORG_ADMIN"
BUILDING_MANAGER = "BUILDING_MANAGER"
FACILITY_MANAGER = "FACILITY_MANAGER"
ACCOUNTANT = "ACCOUNTANT"
SECURITY = "SECURITY"
TECHNICIAN = "TECHNICIAN"
TENANT = "TENANT"
AUDITOR = "AUDITOR"

ROLES = (
    SUPER_ADMIN,
    ORG_ADMIN,
    BUILDING_MANAGER,
    FACILITY_MANAGER,
    ACCOUNTANT,
    SECURITY,
    TECHNICIAN,
    TENANT,
    AUDITOR,
)

MODULES = (
    "organizations",
    "buildings",
    "units",
    "tenants",
    "leases",
    "invoices",
    "payments",
    "complaints",
    "maintenance",
    "assets",
    "utilities",
    "security",
    "parking",
    "reporting",
    "users",
)

PERMISSIONS = {
    SUPER_ADMIN: {
        "organizations": ["create", "read", "update", "deactivate", "list_all"],
        "buildings": ["read_all", "list_all"],
        "units": ["read_all", "list_all"],
        "tenants": ["read_all", "list_all"],
        "leases": ["read_all", "list_all"],
        "invoices": ["read_all", "list_all"],
        "payments": ["read_all", "list_all"],
        "complaints": ["read_all", "list_all"],
        "maintenance": ["read_all", "list_all"],
        "assets": ["read_all", "list_all"],
        "utilities": ["read_all", "list_all"],
        "security": ["read_all", "list_all"],
        "parking": ["read_all", "list_all"],
        "reporting": ["view_cross_org", "system_health", "all_metrics"],
        "users": ["create_org_admin", "read_all", "list_all"],
    },
    ORG_ADMIN: {
        "organizations": ["read", "update"],
        "buildings": ["create", "read", "update", "delete", "list"],
        "units": ["create", "read", "update", "delete", "list"],
        "tenants": ["create", "read", "update", "delete", "list"],
        "leases": ["create", "read", "update", "delete", "list", "terminate"],
        "invoices": ["create", "read", "update", "delete", "list", "send"],
        "payments": ["read", "list", "record", "reconcile"],
        "complaints": ["read", "update", "assign", "resolve", "list"],
        "maintenance": ["read", "create", "update", "assign", "list"],
        "assets": ["create", "read", "update", "delete", "list"],
        "utilities": ["read", "update", "list"],
        "security": ["read", "update", "list"],
        "parking": ["create", "read", "update", "delete", "list", "assign"],
        "reporting": ["view_org", "export"],
        "users": ["create", "read", "update", "delete", "list", "assign_roles"],
    },
    BUILDING_MANAGER: {
        "organizations": ["read"],
        "buildings": ["read", "update"],
        "units": ["read", "update", "list"],
        "tenants": ["read", "update", "list"],
        "leases": ["read", "update", "list"],
        "invoices": ["read", "create", "update", "list"],
        "payments": ["read", "list", "record"],
        "complaints": ["read", "update", "assign", "resolve", "list"],
        "maintenance": ["read", "create", "update", "assign", "list"],
        "assets": ["read", "update", "list"],
        "utilities": ["read", "update", "list"],
        "security": ["read", "update", "list"],
        "parking": ["read", "update", "list", "assign"],
        "reporting": ["view_building"],
        "users": ["read", "list"],
    },
    FACILITY_MANAGER: {
        "organizations": ["read"],
        "buildings": ["read"],
        "units": ["read", "list"],
        "tenants": ["read", "list"],
        "leases": ["read", "list"],
        "invoices": ["read", "list"],
        "payments": ["read", "list"],
        "complaints": ["read", "update", "resolve", "list"],
        "maintenance": ["read", "create", "update", "assign", "list", "schedule"],
        "assets": ["read", "update", "list"],
        "utilities": ["read", "update", "list"],
        "security": ["read", "list"],
        "parking": ["read", "list"],
        "reporting": ["view_facility"],
        "users": ["read", "list"],
    },
    ACCOUNTANT: {
        "organizations": ["read"],
        "buildings": ["read"],
        "units": ["read", "list"],
        "tenants": ["read", "list"],
        "leases": ["read", "list"],
        "invoices": ["read", "create", "update", "delete", "list", "send"],
        "payments": ["read", "create", "update", "list", "reconcile", "export"],
        "complaints": ["read", "list"],
        "maintenance": ["read", "list"],
        "assets": ["read", "list"],
        "utilities": ["read", "list"],
        "security": ["read"],
        "parking": ["read"],
        "reporting": ["view_financial", "export"],
        "users": ["read", "list"],
    },
    SECURITY: {
        "organizations": ["read"],
        "buildings": ["read"],
        "units": ["read", "list"],
        "tenants": ["read", "list"],
        "leases": ["read"],
        "invoices": ["read"],
        "payments": ["read"],
        "complaints": ["read", "create", "list"],
        "maintenance": ["read", "list"],
        "assets": ["read"],
        "utilities": ["read"],
        "security": ["read", "create", "update", "list", "log_entry", "log_exit"],
        "parking": ["read", "update", "list"],
        "reporting": ["view_security"],
        "users": ["read"],
    },
    TECHNICIAN: {
        "organizations": ["read"],
        "buildings": ["read"],
        "units": ["read", "list"],
        "tenants": ["read", "list"],
        "leases": ["read"],
        "invoices": ["read"],
        "payments": ["read"],
        "complaints": ["read", "update", "list"],
        "maintenance": ["read", "update", "list", "complete", "log_work"],
        "assets": ["read", "update", "list"],
        "utilities": ["read", "update", "list"],
        "security": ["read"],
        "parking": ["read"],
        "reporting": ["view_work"],
        "users": ["read"],
    },
    TENANT: {
        "organizations": ["read"],
        "buildings": ["read"],
        "units": ["read"],
        "tenants": ["read", "update_own"],
        "leases": ["read_own"],
        "invoices": ["read_own", "list_own"],
        "payments": ["read_own", "create_own", "list_own"],
        "complaints": ["read_own", "create", "update_own", "list_own"],
        "maintenance": ["read_own", "create", "list_own"],
        "assets": ["read"],
        "utilities": ["read_own"],
        "security": ["read"],
        "parking": ["read_own"],
        "reporting": ["view_own"],
        "users": [],
    },
    AUDITOR: {
        "organizations": ["read"],
        "buildings": ["read", "list"],
        "units": ["read", "list"],
        "tenants": ["read", "list"],
        "leases": ["read", "list"],
        "invoices": ["read", "list"],
        "payments": ["read", "list"],
        "complaints": ["read", "list"],
        "maintenance": ["read", "list"],
        "assets": ["read", "list"],
        "utilities": ["read", "list"],
        "security": ["read", "list"],
        "parking": ["read", "list"],
        "reporting": ["view_all", "export"],
        "users": ["read", "list"],
    },
}

REPORTING_VIEW_ACTIONS = (
    "view_org",
    "view_building",
    "view_facility",
    "view_financial",
    "view_security",
    "view_all",
    "view_cross_org",
)


def has_permission(role: str, module: str, action: str) -> bool:
    role_permissions = PERMISSIONS.get(role)
    if not role_permissions:
        return False
    return action in role_permissions.get(module, ())


def has_any_role_permission(roles, module: str, action: str) -> bool:
    return any(has_permission(role, module, action) for role in roles or ())
