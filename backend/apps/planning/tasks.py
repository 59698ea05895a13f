import logging

from celery import shared_task

from .models import ProductionPlan
from .services import DemandForecastService, MaterialRequirementsService, SuggestedPurchaseOrderService

logger = logging.getLogger(__name__)


@shared_task(name="apps.planning.tasks.run_mrp")
def run_mrp(company_id=None):
    """Recompute material requirements and suggested POs for approved production plans."""
    plans = ProductionPlan.objects.filter(status=ProductionPlan.Status.APPROVED).select_related("bom")
    if company_id:
        plans = plans.filter(company_id=company_id)
    results = []
    failures = 0
    for plan in plans:
        try:
            requirements = MaterialRequirementsService.calculate_for_plan(plan)
            run = SuggestedPurchaseOrderService.generate_for_plan(plan)
            results.append({"plan": plan.plan_number, "requirements": len(requirements), **run.as_dict()})
        except Exception as exc:
            failures += 1
            logger.exception("MRP run failed for plan %s: %s", plan.plan_number, exc)
    logger.info("Planning: MRP processed %s plan(s), %s failure(s)", len(results), failures)
    return {"status": "ok", "plans": results, "failures": failures}


@shared_task(name="apps.planning.tasks.expire_forecasts")
def expire_forecasts():
    try:
        expired = DemandForecastService.expire_past()
        logger.info("Planning: expired %s forecast(s)", len(expired))
        return {"status": "ok", "expired": len(expired)}
    except Exception as exc:
        logger.exception("Forecast expiry failed: %s", exc)
        return {"status": "error", "error": str(exc)}
