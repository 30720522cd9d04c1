"""
Per-request tenant capability.

Services never look up the caller's company on their own. They receive a
``TenantContext`` and scope every queryset through it.
"""
from dataclasses import dataclass
from typing import Optional

from .exceptions import Forbidden, NotFound

ADMIN_ROLES = ('super_admin', 'boss', 'admin', 'director')


@dataclass(frozen=True)
class TenantContext:
    company: object
    user: object = None
    profile: object = None
    outlet: object = None
    admin_role: Optional[str] = None
    position_role: Optional[str] = None
    position_name: Optional[str] = None

    @property
    def company_id(self):
        return self.company.pk

    @property
    def is_elevated(self):
        return self.admin_role in ADMIN_ROLES

    @property
    def is_super_admin(self):
        return self.admin_role == 'super_admin'

    @property
    def actor_id(self):
        return self.user.pk if self.user is not None else None

    def scope(self, queryset, field_name='company'):
        """Restrict a queryset to the tenant's company."""
        return queryset.filter(**{f'{field_name}_id': self.company.pk})

    def get(self, queryset, message='Record not found', field_name='company', **lookup):
        """Fetch one row inside the tenant or raise NotFound."""
        obj = self.scope(queryset, field_name).filter(**lookup).first()
        if obj is None:
            raise NotFound(message)
        return obj

    def require_elevated(self, message='Admin access required'):
        if not self.is_elevated:
            raise Forbidden(message)

    def require_super_admin(self, message='Super admin access required'):
        if not self.is_super_admin:
            raise Forbidden(message)

    @classmethod
    def system(cls, company):
        """Context used by background jobs acting on behalf of a company."""
        return cls(company=company, admin_role='super_admin')
