from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.procurement.serializers import PurchaseOrderSerializer
from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import DemandForecast, MaterialRequirement, ProductionPlan, SuggestedPurchaseOrder
from .serializers import (
    DemandForecastSerializer,
    GenerateForecastSerializer,
    MaterialRequirementSerializer,
    PlanFromForecastSerializer,
    ProductionPlanSerializer,
    SuggestedPurchaseOrderSerializer,
)
from .services import (
    DemandForecastService,
    MaterialRequirementsService,
    ProductionPlanService,
    SuggestedPurchaseOrderService,
)


class DemandForecastViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = DemandForecastSerializer

    def get_queryset(self):
        qs = self.scope_queryset(DemandForecast.objects.select_related("product"))
        for param, lookup in (("product", "product_id"), ("status", "status")):
            value = self.request.query_params.get(param)
            if value:
                qs = qs.filter(**{lookup: value})
        return qs

    @action(detail=False, methods=["post"])
    def generate(self, request):
        serializer = GenerateForecastSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            forecast = DemandForecastService.generate(
                data["product"],
                data["period_start"],
                data["period_end"],
                lookback_months=data.get("lookback_months"),
                user=request.user,
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(forecast).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        forecast = self.get_object()
        try:
            DemandForecastService.activate(forecast)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(forecast).data)


class ProductionPlanViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = ProductionPlanSerializer

    def get_queryset(self):
        qs = self.scope_queryset(ProductionPlan.objects.select_related("product", "bom", "forecast"))
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    @action(detail=False, methods=["post"], url_path="from-forecast")
    def from_forecast(self, request):
        serializer = PlanFromForecastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        forecast = DemandForecast.objects.filter(
            company=self.get_company(), pk=serializer.validated_data["forecast"]
        ).first()
        if forecast is None:
            return Response({"detail": "Forecast not found."}, status=status.HTTP_404_NOT_FOUND)
        try:
            plan = ProductionPlanService.create_from_forecast(
                forecast,
                safety_stock=serializer.validated_data.get("safety_stock"),
                reorder_point=serializer.validated_data.get("reorder_point"),
                user=request.user,
            )
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(plan).data, status=status.HTTP_201_CREATED)

    def _transition(self, method_name, *args):
        plan = self.get_object()
        try:
            getattr(plan, method_name)(*args)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(plan).data)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        return self._transition("approve", request.user)

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        return self._transition("start")

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        return self._transition("complete")

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._transition("cancel")

    @action(detail=True, methods=["post"], url_path="calculate-requirements")
    def calculate_requirements(self, request, pk=None):
        plan = self.get_object()
        try:
            requirements = MaterialRequirementsService.calculate_for_plan(plan)
        except ValueError as exc:
            return bad_request(exc)
        return Response(MaterialRequirementSerializer(requirements, many=True).data)

    @action(detail=True, methods=["post"], url_path="generate-suggestions")
    def generate_suggestions(self, request, pk=None):
        plan = self.get_object()
        run = SuggestedPurchaseOrderService.generate_for_plan(plan)
        return Response(
            {
                "suggestions": SuggestedPurchaseOrderSerializer(run.suggestions, many=True).data,
                "skipped": run.as_dict()["skipped"],
            },
            status=status.HTTP_201_CREATED if run.suggestions else status.HTTP_200_OK,
        )


class MaterialRequirementViewSet(CompanyScopedQuerysetMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = MaterialRequirementSerializer

    def get_queryset(self):
        qs = self.scope_queryset(MaterialRequirement.objects.select_related("raw_material", "preferred_vendor"))
        plan_id = self.request.query_params.get("plan")
        if plan_id:
            qs = qs.filter(production_plan_id=plan_id)
        if self.request.query_params.get("urgent") in {"1", "true", "yes"}:
            qs = qs.filter(is_urgent=True)
        return qs


class SuggestedPurchaseOrderViewSet(
    CompanyScopedQuerysetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = SuggestedPurchaseOrderSerializer

    def get_queryset(self):
        qs = self.scope_queryset(
            SuggestedPurchaseOrder.objects.select_related("vendor", "converted_po").prefetch_related("items__raw_material")
        )
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        suggestion = self.get_object()
        try:
            SuggestedPurchaseOrderService.approve(suggestion, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(suggestion).data)

    @action(detail=True, methods=["post"])
    def convert(self, request, pk=None):
        suggestion = self.get_object()
        try:
            order = SuggestedPurchaseOrderService.convert(suggestion, user=request.user)
        except ValueError as exc:
            return bad_request(exc)
        return Response(PurchaseOrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        suggestion = self.get_object()
        try:
            SuggestedPurchaseOrderService.reject(suggestion, user=request.user, reason=request.data.get("reason", ""))
        except ValueError as exc:
            return bad_request(exc)
        return Response(self.get_serializer(suggestion).data)
