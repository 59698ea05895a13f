from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone


CURRENCY_CHOICES = [
    ('USD', 'US Dollar'),
    ('EUR', 'Euro'),
    ('GBP', 'British Pound'),
    ('CAD', 'Canadian Dollar'),
    ('AUD', 'Australian Dollar'),
    ('JPY', 'Japanese Yen'),
    ('CNY', 'Chinese Yuan'),
    ('INR', 'Indian Rupee'),
    ('SGD', 'Singapore Dollar'),
    ('AED', 'UAE Dirham'),
]


class CompanyGroup(models.Model):
    """
    Top-level holding entity. Every company belongs to exactly one group
    so records can be rolled up across subsidiaries.
    """
    code = models.CharField(max_length=20, unique=True, null=True, blank=True)
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    base_currency = models.CharField(max_length=3, choices=CURRENCY_CHOICES, default='USD')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Company Group"
        verbose_name_plural = "Company Groups"
        ordering = ['name']

    def __str__(self):
        return f"{self.code} - {self.name}" if self.code else self.name

    def save(self, *args, **kwargs):
        is_new = self._state.adding
        super().save(*args, **kwargs)
        # Auto-generate code using a consistent pattern if not provided
        if is_new and not self.code:
            self.code = f"CG-{timezone.now():%Y}-{self.id:05d}"
            super().save(update_fields=['code'])


class Company(models.Model):
    """Legal business entity that owns all transactional data."""
    code = models.CharField(
        max_length=20,
        validators=[RegexValidator(r'^[A-Z0-9]+$')],
        help_text="Unique company code"
    )
    name = models.CharField(max_length=255)
    legal_name = models.CharField(max_length=255, blank=True)
    company_group = models.ForeignKey(
        CompanyGroup,
        on_delete=models.PROTECT,
        related_name='companies',
    )
    currency_code = models.CharField(max_length=3, choices=CURRENCY_CHOICES, default='USD')
    email = models.EmailField(blank=True, help_text="Default sender/contact address")
    phone = models.CharField(max_length=50, blank=True)
    address = models.TextField(blank=True)
    tax_id = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Companies"
        ordering = ['company_group', 'code']
        unique_together = [['company_group', 'code']]

    def __str__(self):
        return f"{self.code} - {self.name}"
