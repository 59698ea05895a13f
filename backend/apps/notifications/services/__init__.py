from .notifier import notify, notify_company_admins

__all__ = ["notify", "notify_company_admins"]
