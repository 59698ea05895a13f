from decimal import Decimal

from django.db import models

from shared.models import CompanyAwareModel


class Warehouse(CompanyAwareModel):
    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = ('company', 'code')
        ordering = ['code']

    def __str__(self):
        return f"{self.code} - {self.name}"


class Product(CompanyAwareModel):
    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=20, default='EA')
    cost_price = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    unit_price = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    preferred_vendor = models.ForeignKey(
        'procurement.Vendor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='preferred_products',
    )
    lead_time_days = models.PositiveIntegerField(default=0, help_text="0 means use the vendor's lead time")
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = ('company', 'sku')
        ordering = ['sku']
        indexes = [
            models.Index(fields=['company', 'is_active']),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"

    @property
    def purchase_price(self) -> Decimal:
        return self.cost_price or self.unit_price or Decimal('0')


class StockLevel(CompanyAwareModel):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='stock_levels')
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='stock_levels')
    quantity = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    reserved_quantity = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    reorder_level = models.DecimalField(max_digits=15, decimal_places=3, null=True, blank=True)
    reorder_quantity = models.DecimalField(max_digits=15, decimal_places=3, default=0)

    class Meta:
        unique_together = ('product', 'warehouse')
        indexes = [
            models.Index(fields=['company', 'product', 'warehouse']),
        ]

    def __str__(self):
        return f"{self.product.sku} @ {self.warehouse.code}: {self.quantity}"

    @property
    def available_quantity(self) -> Decimal:
        return (self.quantity or Decimal('0')) - (self.reserved_quantity or Decimal('0'))

    @property
    def is_below_reorder_level(self) -> bool:
        return self.reorder_level is not None and self.quantity <= self.reorder_level


class RawMaterialStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    DISCONTINUED = "discontinued", "Discontinued"


class RawMaterial(CompanyAwareModel):
    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    unit = models.CharField(max_length=20, default='EA')
    unit_cost = models.DecimalField(max_digits=20, decimal_places=4, default=0)
    currency = models.CharField(max_length=3, default='USD')
    min_order_quantity = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    lead_time_days = models.PositiveIntegerField(default=0, help_text="0 means use the vendor's lead time")
    preferred_vendor = models.ForeignKey(
        'procurement.Vendor',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='preferred_materials',
    )
    status = models.CharField(max_length=20, choices=RawMaterialStatus.choices, default=RawMaterialStatus.ACTIVE)

    class Meta:
        unique_together = ('company', 'sku')
        ordering = ['sku']

    def __str__(self):
        return f"{self.sku} - {self.name}"


class RawMaterialStock(CompanyAwareModel):
    raw_material = models.ForeignKey(RawMaterial, on_delete=models.CASCADE, related_name='stock_levels')
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name='material_stock_levels')
    quantity = models.DecimalField(max_digits=15, decimal_places=3, default=0)

    class Meta:
        unique_together = ('raw_material', 'warehouse')

    def __str__(self):
        return f"{self.raw_material.sku} @ {self.warehouse.code}: {self.quantity}"
