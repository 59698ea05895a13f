from django.db import models


class CompanyQuerySet(models.QuerySet):
    def for_company(self, company):
        """Rows owned by ``company``; nothing when there is no active company."""
        if company is None:
            return self.none()
        return self.filter(company=company)


class CompanyManager(models.Manager.from_queryset(CompanyQuerySet)):
    pass
