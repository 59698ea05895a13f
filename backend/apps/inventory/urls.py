from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    ProductViewSet,
    RawMaterialStockViewSet,
    RawMaterialViewSet,
    StockLevelViewSet,
    WarehouseViewSet,
)

router = DefaultRouter()
router.register(r"warehouses", WarehouseViewSet, basename="inventory-warehouse")
router.register(r"products", ProductViewSet, basename="inventory-product")
router.register(r"stock-levels", StockLevelViewSet, basename="inventory-stock-level")
router.register(r"raw-materials", RawMaterialViewSet, basename="inventory-raw-material")
router.register(r"raw-material-stock", RawMaterialStockViewSet, basename="inventory-raw-material-stock")

urlpatterns = [
    path("", include(router.urls)),
]
