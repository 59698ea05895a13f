from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Extended user model with multi-company support
    """
    companies = models.ManyToManyField(
        'companies.Company',
        through='UserCompanyRole',
        related_name='users',
        blank=True,
    )
    default_company = models.ForeignKey(
        'companies.Company',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='default_users'
    )
    phone = models.CharField(max_length=20, blank=True)

    class Meta:
        db_table = 'users'

    def has_company_access(self, company):
        """Check if user has access to company"""
        if self.is_superuser:
            return True
        return self.companies.filter(id=company.id).exists()

    def grant_company_access(self, company, role=None):
        role = role or UserCompanyRole.Role.MEMBER
        membership, _ = UserCompanyRole.objects.update_or_create(
            user=self,
            company=company,
            defaults={"role": role, "is_active": True},
        )
        if not self.default_company_id:
            self.default_company = company
            self.save(update_fields=["default_company"])
        return membership


class UserCompanyRole(models.Model):
    """
    Many-to-many relationship between users and companies
    with role assignment
    """
    class Role(models.TextChoices):
        ADMIN = "admin", "Administrator"
        MANAGER = "manager", "Manager"
        MEMBER = "member", "Member"

    user = models.ForeignKey(User, on_delete=models.CASCADE)
    company = models.ForeignKey('companies.Company', on_delete=models.CASCADE)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.MEMBER)
    is_active = models.BooleanField(default=True)
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [['user', 'company']]
        db_table = 'user_company_roles'

    def __str__(self):
        return f"{self.user} @ {self.company} ({self.role})"
