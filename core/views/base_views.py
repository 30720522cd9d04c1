from rest_framework import permissions
from rest_framework.views import APIView

from ..exceptions import Forbidden, ValidationFailed
from ..models import Company
from ..tenant import TenantContext


# ==================== TENANT MIXINS ====================

class CompanyFilterMixin:
    """
    Resolves the caller's company once per request and filters querysets by it.

    Super admins have no company of their own and pick one per request with
    the X-Company-Id header.
    """
    company_header = 'HTTP_X_COMPANY_ID'

    def get_user_profile(self):
        user = self.request.user
        if not user or not user.is_authenticated:
            return None
        return getattr(user, 'profile', None)

    def get_user_company(self):
        """Get the user's company from profile"""
        profile = self.get_user_profile()
        if profile is None:
            return None

        header_value = self.request.META.get(self.company_header)
        if header_value and profile.role == 'super_admin':
            try:
                return Company.objects.filter(pk=int(header_value), is_active=True).first()
            except ValueError:
                raise ValidationFailed('X-Company-Id must be a number')

        return profile.company

    def get_tenant(self):
        cached = getattr(self.request, '_hrms_tenant', None)
        if cached is not None:
            return cached

        company = self.get_user_company()
        if company is None:
            raise Forbidden('Company context required')

        profile = self.get_user_profile()
        position = None
        if profile.employee_id and profile.employee.position_id:
            position = profile.employee.position

        tenant = TenantContext(
            company=company,
            user=self.request.user,
            profile=profile,
            outlet=profile.outlet,
            admin_role=profile.role,
            position_role=position.role if position else None,
            position_name=position.name if position else None,
        )
        self.request._hrms_tenant = tenant
        return tenant

    def filter_queryset_by_company(self, queryset, field_name='company'):
        """Filter queryset by user's company"""
        return self.get_tenant().scope(queryset, field_name)


class TenantAPIView(CompanyFilterMixin, APIView):
    """Authenticated API view with tenant context."""
    permission_classes = [permissions.IsAuthenticated]

    @property
    def tenant(self):
        return self.get_tenant()

    def validated(self, serializer_class, data=None, **kwargs):
        """Validated data of the request body (or ``data``, e.g. the query string)."""
        serializer = serializer_class(data=self.request.data if data is None else data, **kwargs)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

