"""
Role based permission classes.

``authorize(*roles)`` builds a DRF permission class that admits only
authenticated users whose ``role`` is one of ``roles``; the named
classes below cover the common combinations.
"""
from rest_framework.permissions import BasePermission


def authorize(*roles: str) -> type[BasePermission]:
    allowed = frozenset(roles)

    class RolePermission(BasePermission):
        def has_permission(self, request, view) -> bool:  # type: ignore[override]
            user = getattr(request, "user", None)
            if not (user and user.is_authenticated):
                return False
            role = getattr(user, "role", None)
            if role in allowed:
                return True
            self.message = f"Role {role} is not authorized to access this resource"
            return False

    RolePermission.__name__ = "Is" + "Or".join(r.capitalize() for r in sorted(allowed))
    return RolePermission


IsDoctorRole = authorize("doctor")
IsClinicRole = authorize("clinic")
IsAdminOrClinic = authorize("admin", "clinic")
IsFrontDesk = authorize("clinic", "receptionist", "nurse")
