from django.db import models

from shared.models import CompanyAwareModel


class Customer(CompanyAwareModel):
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    billing_address = models.TextField(blank=True)
    shipping_address = models.TextField(blank=True)
    payment_terms = models.IntegerField(default=30, help_text="Payment terms in days")
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = ('company', 'code')
        ordering = ['company', 'code']

    def __str__(self):
        return f"{self.code} - {self.name}"
