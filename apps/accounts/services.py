import logging

from django.contrib.auth.models import Group
from django.db import transaction
from django.db.models import ProtectedError, Q

from apps.accounts.models import User, UserRole
from apps.audit.services import record_audit
from apps.common.exceptions import BusinessRuleError, InvalidAdminKey
from apps.common.permissions import resolve_role

logger = logging.getLogger(__name__)


def verify_admin_key(*, user, password):
    """Check an admin key typed in to authorize a destructive action.

    Admins confirm with their own password. Any other role needs the password
    of an active admin account standing next to them.
    """
    if not password:
        return False
    if user is not None and user.is_authenticated and resolve_role(user) == UserRole.ADMIN:
        return user.check_password(password)
    candidates = User.objects.filter(Q(role=UserRole.ADMIN) | Q(groups__name=UserRole.ADMIN), is_active=True).distinct()
    return any(
        resolve_role(admin) == UserRole.ADMIN and admin.check_password(password) for admin in candidates
    )


def require_admin_key(*, user, password, action):
    if not verify_admin_key(user=user, password=password):
        logger.warning("Admin key rejected for %s by user %s", action, getattr(user, "username", None))
        raise InvalidAdminKey(action)


def sync_role_group(user):
    """Keep a user in exactly the role group matching ``user.role`` (when role groups exist)."""
    role_groups = list(Group.objects.filter(name__in=UserRole.values))
    stale = [group for group in role_groups if group.name != user.role]
    if stale:
        user.groups.remove(*stale)
    current = next((group for group in role_groups if group.name == user.role), None)
    if current is not None:
        user.groups.add(current)
        return True
    return False


def _user_snapshot(user):
    return {
        "username": user.username,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "is_active": user.is_active,
    }


def create_user(*, password, actor=None, **fields):
    with transaction.atomic():
        user = User(**fields)
        user.set_password(password)
        user.save()
        sync_role_group(user)
        record_audit(actor=actor, action="user.create", entity_type="user", entity_id=user.id, details=_user_snapshot(user))
    return user


def update_user(*, user, actor=None, **changes):
    with transaction.atomic():
        before = _user_snapshot(user)
        for field, value in changes.items():
            setattr(user, field, value)
        user.save()
        if "role" in changes:
            sync_role_group(user)
        record_audit(
            actor=actor,
            action="user.update",
            entity_type="user",
            entity_id=user.id,
            details={"before": before, "after": _user_snapshot(user)},
        )
    return user


def set_user_password(*, user, password, actor=None):
    user.set_password(password)
    user.save(update_fields=["password"])
    action = "user.password_change" if actor is not None and actor.pk == user.pk else "user.password_reset"
    record_audit(actor=actor, action=action, entity_type="user", entity_id=user.id, details={"username": user.username})
    logger.info("Password updated for %s", user.username)


def delete_user(*, user, actor=None):
    if actor is not None and actor.pk == user.pk:
        raise BusinessRuleError("Cannot delete your own account.")
    with transaction.atomic():
        snapshot = _user_snapshot(user)
        user_id = user.id
        try:
            user.delete()
        except ProtectedError:
            raise BusinessRuleError(
                f'User "{user.username}" has recorded sales. Deactivate the account instead.'
            ) from None
        record_audit(actor=actor, action="user.delete", entity_type="user", entity_id=user_id, details=snapshot)
