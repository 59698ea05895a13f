from django.utils.deprecation import MiddlewareMixin

from apps.companies.models import Company


def resolve_company(request, user=None):
    """
    Resolve the active company for a user.

    Priority: X-Company-ID header > session > user's default company >
    first accessible active company. Companies the user cannot access are
    ignored.
    """
    user = user or getattr(request, 'user', None)
    if not user or not user.is_authenticated:
        return None

    accessible = Company.objects.filter(is_active=True)
    if not user.is_superuser:
        accessible = accessible.filter(users=user)

    session = getattr(request, 'session', None)
    company_id = request.META.get('HTTP_X_COMPANY_ID') or (session.get('active_company_id') if session else None)
    if company_id:
        try:
            return accessible.get(pk=int(company_id))
        except (Company.DoesNotExist, TypeError, ValueError):
            return None

    default_company = getattr(user, 'default_company', None)
    if default_company and default_company.is_active and user.has_company_access(default_company):
        return default_company
    return accessible.order_by('id').first()


class CompanyContextMiddleware(MiddlewareMixin):
    """
    Injects the active company and company group into requests
    based on headers, session or the user's defaults.
    """
    def process_request(self, request):
        request.company = None
        request.company_group = None
        if not request.user.is_authenticated:
            return

        company = resolve_company(request)
        if company:
            request.company = company
            request.company_group = company.company_group
            request.session['active_company_id'] = str(company.id)
