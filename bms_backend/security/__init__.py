from .permissions import PERMISSIONS, ROLES, has_any_role_permission, has_permission
from .rbac import (
    AuthContext,
    current_context,
    current_organization_id,
    ensure_own,
    load_auth_context,
    own_tenant_scope,
    require_any_permission,
    require_permission,
)
