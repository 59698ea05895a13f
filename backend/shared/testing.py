from __future__ import annotations

from django.contrib.auth import get_user_model

from apps.companies.models import Company, CompanyGroup


def create_company_context(*, code: str = "TST", username: str = "tester", admin: bool = False):
    """Group, company and a user with access to it, for test setUp methods."""
    from apps.users.models import UserCompanyRole

    group = CompanyGroup.objects.create(name=f"{code} Group")
    company = Company.objects.create(
        company_group=group,
        code=code,
        name=f"{code} Company",
        legal_name=f"{code} Company Ltd",
        currency_code="USD",
        email=f"ops@{code.lower()}.example.com",
    )
    User = get_user_model()
    user = User.objects.create_user(username=username, password="pass123", email=f"{username}@example.com")
    role = UserCompanyRole.Role.ADMIN if admin else UserCompanyRole.Role.MEMBER
    user.grant_company_access(company, role=role)
    return group, company, user
