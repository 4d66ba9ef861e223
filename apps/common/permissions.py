from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


ROLE_CAPABILITIES = {
    UserRole.ADMIN: {
        "catalog.view",
        "catalog.manage",
        "inventory.view",
        "inventory.manage",
        "customers.view",
        "customers.manage",
        "sales.view",
        "sales.create",
        "sales.manage",
        "debts.view",
        "debts.collect",
        "debts.manage",
        "deposits.view",
        "deposits.manage",
        "expenses.view",
        "expenses.manage",
        "reports.view",
        "settings.manage",
        "cash.view",
        "cash.manage",
        "audit.view",
    },
    UserRole.MANAGER: {
        "catalog.view",
        "catalog.manage",
        "inventory.view",
        "inventory.manage",
        "customers.view",
        "customers.manage",
        "sales.view",
        "sales.create",
        "sales.manage",
        "debts.view",
        "debts.collect",
        "debts.manage",
        "deposits.view",
        "deposits.manage",
        "expenses.view",
        "expenses.manage",
        "reports.view",
        "settings.manage",
        "cash.view",
        "cash.manage",
    },
    UserRole.ACCOUNTANT: {
        "catalog.view",
        "inventory.view",
        "customers.view",
        "sales.view",
        "debts.view",
        "debts.collect",
        "deposits.view",
        "expenses.view",
        "expenses.manage",
        "reports.view",
        "cash.view",
    },
    UserRole.CASHIER: {
        "catalog.view",
        "inventory.view",
        "customers.view",
        "customers.manage",
        "sales.view",
        "sales.create",
        "debts.view",
        "debts.collect",
        "deposits.view",
        "deposits.manage",
    },
}


def resolve_role(user):
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (UserRole.ADMIN, UserRole.MANAGER, UserRole.ACCOUNTANT, UserRole.CASHIER):
        if role in group_names:
            return role
    return getattr(user, "role", UserRole.CASHIER)


class RolePermission(BasePermission):
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", None) or request.method.lower()
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True

        user_caps = ROLE_CAPABILITIES.get(resolve_role(request.user), set())
        return all(cap in user_caps for cap in required)


class IsAdminRole(BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and resolve_role(request.user) == UserRole.ADMIN)
