from django.conf import settings
from django.db import models

from .managers import CompanyManager


class CompanyAwareModel(models.Model):
    """
    Abstract base model that adds company isolation
    to all transactional data
    """
    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.PROTECT,
        db_index=True,
        help_text="Company this record belongs to"
    )
    company_group = models.ForeignKey(
        'companies.CompanyGroup',
        on_delete=models.PROTECT,
        db_index=True,
        help_text="Company group this record belongs to"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    objects = CompanyManager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self.company_id:
            raise ValueError("Company must be specified")
        if not self.company_group_id:
            # Auto-populate company_group from company if not provided
            self.company_group = self.company.company_group
        super().save(*args, **kwargs)

    def scope_kwargs(self) -> dict:
        """Company fields for records created on behalf of this one."""
        return {"company": self.company, "company_group": self.company_group}
