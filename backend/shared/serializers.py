from rest_framework import serializers

COMPANY_MANAGED_FIELDS = ["company", "company_group", "created_by", "created_at", "updated_at"]


class CompanyScopedRelatedField(serializers.PrimaryKeyRelatedField):
    """Primary key field limited to rows of the serializer's active company."""

    def get_queryset(self):
        queryset = super().get_queryset()
        company = self.context.get("company")
        if company is None:
            return queryset.none()
        return queryset.filter(company=company)
