from .forecasting import DemandForecastService, project_demand
from .mrp import MaterialRequirementsService, ProductionPlanService
from .suggestions import SuggestedPurchaseOrderService, SuggestionRun

__all__ = [
    "DemandForecastService",
    "MaterialRequirementsService",
    "ProductionPlanService",
    "SuggestedPurchaseOrderService",
    "SuggestionRun",
    "project_demand",
]
