from __future__ import annotations

from decimal import Decimal

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.utils import log_audit_event
from shared.views import CompanyScopedQuerysetMixin, bad_request

from .models import BillOfMaterials
from .serializers import BillOfMaterialsSerializer, RequirementsRequestSerializer
from .services import BomService

FOURPLACES = Decimal("0.0001")


class BillOfMaterialsViewSet(CompanyScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = BillOfMaterialsSerializer

    def get_queryset(self):
        qs = self.scope_queryset(BillOfMaterials.objects.select_related("product").prefetch_related("components"))
        product_id = self.request.query_params.get("product")
        if product_id:
            qs = qs.filter(product_id=product_id)
        status_filter = self.request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        bom = self.get_object()
        try:
            BomService.activate(bom)
        except ValueError as exc:
            return bad_request(exc)
        log_audit_event(
            user=request.user,
            company=bom.company,
            action="STATUS_CHANGE",
            entity_type="BillOfMaterials",
            entity_id=bom.pk,
            description=f"Activated BOM {bom.name} v{bom.version}",
            after={"status": bom.status},
        )
        return Response(self.get_serializer(bom).data)

    @action(detail=True, methods=["post"])
    def recalculate(self, request, pk=None):
        bom = BomService.recalculate_costs(self.get_object())
        return Response(self.get_serializer(bom).data)

    @action(detail=True, methods=["post"])
    def requirements(self, request, pk=None):
        bom = self.get_object()
        serializer = RequirementsRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            requirements = BomService.calculate_requirements(bom, serializer.validated_data["quantity"])
        except ValueError as exc:
            return bad_request(exc)
        return Response(
            [
                {
                    "component": req.component.id,
                    "name": req.component.name,
                    "raw_material": req.component.raw_material_id,
                    "product": req.component.product_id,
                    "unit": req.component.unit,
                    "required_quantity": str(req.required_quantity.quantize(FOURPLACES)),
                }
                for req in requirements
            ]
        )
