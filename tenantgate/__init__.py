"""
tenantgate

Session and authorization core for a multi-tenant SaaS platform:
credential issuance and rotation, tenant resolution, tenant RBAC and the
membership/invite lifecycle.
"""

__version__ = "1.0.0"
