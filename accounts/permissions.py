from rest_framework import permissions


class IsAdminUser(permissions.BasePermission):
    """Permission class for tournament administrators"""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_tournament_admin


class IsTeamUser(permissions.BasePermission):
    """Permission class for Team users"""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.user_type == "team"


class IsAdminOrTeamOwner(permissions.BasePermission):
    """Admins manage every team, a team account only its own"""

    def has_permission(self, request, view):
        return request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        if request.user.is_tournament_admin:
            return True
        team = getattr(obj, "team", obj)
        return team.user_id == request.user.id
