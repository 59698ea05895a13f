from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.notifications.models import NotificationSeverity
from apps.notifications.services import notify, notify_company_admins

from ..models import AutoReplyRule, EmailCategory, EmailPriority, InboundEmail, PendingReply
from .outbound import EmailService
from .templates import render_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryRule:
    category: str
    subject_patterns: tuple
    sender_patterns: tuple
    priority: str
    action: str


def _compile(*patterns):
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


# first matching rule wins
CATEGORY_RULES = (
    CategoryRule(
        EmailCategory.DELIVERY_NOTIFICATION,
        _compile(r"deliver(ed|y)", r"arrived", r"signed for", r"proof of delivery"),
        _compile(r"ups\.com", r"fedex\.com", r"dhl\.com"),
        EmailPriority.HIGH,
        "Confirm receipt and update inventory",
    ),
    CategoryRule(
        EmailCategory.SHIPPING_CONFIRMATION,
        _compile(r"ship(ped|ment|ping)", r"tracking", r"dispatch", r"in transit", r"on its way"),
        _compile(r"ups\.com", r"fedex\.com", r"dhl\.com", r"usps\.com", r"maersk"),
        EmailPriority.MEDIUM,
        "Update shipment tracking",
    ),
    CategoryRule(
        EmailCategory.INVOICE,
        _compile(r"invoice", r"bill\s", r"payment due", r"amount due"),
        _compile(r"billing", r"accounts", r"payable"),
        EmailPriority.HIGH,
        "Review and schedule payment",
    ),
    CategoryRule(
        EmailCategory.RECEIPT,
        _compile(r"receipt", r"payment received", r"thank you for your (payment|purchase)", r"confirmation"),
        _compile(r"receipt", r"noreply"),
        EmailPriority.LOW,
        "File for records",
    ),
    CategoryRule(
        EmailCategory.PURCHASE_ORDER,
        _compile(r"purchase order", r"\bpo\b", r"order #", r"order confirmation"),
        _compile(r"procurement", r"purchasing"),
        EmailPriority.HIGH,
        "Process purchase order",
    ),
    CategoryRule(
        EmailCategory.FREIGHT_QUOTE,
        _compile(r"quote", r"rate", r"freight", r"shipping cost", r"estimate", r"rfq"),
        _compile(r"freight", r"logistics", r"carrier"),
        EmailPriority.MEDIUM,
        "Compare quotes and select carrier",
    ),
    CategoryRule(
        EmailCategory.ORDER_CONFIRMATION,
        _compile(r"order confirm", r"order placed", r"order received", r"thank you for your order"),
        (),
        EmailPriority.LOW,
        "Verify order details",
    ),
    CategoryRule(
        EmailCategory.PAYMENT_CONFIRMATION,
        _compile(r"payment confirm", r"payment processed", r"wire transfer", r"funds received"),
        _compile(r"bank", r"paypal", r"stripe"),
        EmailPriority.MEDIUM,
        "Reconcile payment",
    ),
)

CATEGORY_COLORS = {
    EmailCategory.RECEIPT: "green",
    EmailCategory.PURCHASE_ORDER: "blue",
    EmailCategory.INVOICE: "orange",
    EmailCategory.SHIPPING_CONFIRMATION: "purple",
    EmailCategory.FREIGHT_QUOTE: "cyan",
    EmailCategory.DELIVERY_NOTIFICATION: "emerald",
    EmailCategory.ORDER_CONFIRMATION: "indigo",
    EmailCategory.PAYMENT_CONFIRMATION: "teal",
    EmailCategory.GENERAL: "gray",
}


@dataclass
class Categorization:
    category: str
    confidence: int
    keywords: List[str] = field(default_factory=list)
    priority: str = EmailPriority.LOW
    suggested_action: str = ""


def quick_categorize(subject: str, from_email: str) -> Categorization:
    """
    Pattern based categorisation of an inbound email from its subject and sender.

    The first rule whose subject or sender patterns match wins. Keywords are
    every subject pattern of that rule that matched (up to five), not just
    the first hit, so a subject like "Invoice 7 - amount due" reports both
    "invoice" and "amount due".
    """
    subject = (subject or "").lower()
    sender = (from_email or "").lower()
    for rule in CATEGORY_RULES:
        keywords = []
        for pattern in rule.subject_patterns:
            match = pattern.search(subject)
            if match:
                keywords.append(match.group(0))
        subject_match = bool(keywords)
        sender_match = any(pattern.search(sender) for pattern in rule.sender_patterns)
        if subject_match or sender_match:
            if subject_match and sender_match:
                confidence = 85
            elif subject_match:
                confidence = 75
            else:
                confidence = 60
            return Categorization(rule.category, confidence, keywords[:5], rule.priority, rule.action)
    return Categorization(EmailCategory.GENERAL, 50, [], EmailPriority.LOW, "Review manually")


def category_display(category: str) -> dict:
    if category not in CATEGORY_COLORS:
        category = EmailCategory.GENERAL
    return {"label": EmailCategory(category).label, "color": CATEGORY_COLORS[category]}


def _sender_name(inbound: InboundEmail) -> str:
    if inbound.from_name:
        return inbound.from_name
    return inbound.from_email.split("@", 1)[0]


def _quote(inbound: InboundEmail) -> str:
    sent = timezone.localtime(inbound.received_at).strftime("%d %b %Y %H:%M")
    quoted = "\n".join(f"> {line}" for line in (inbound.body or "").splitlines())
    return f"On {sent}, {_sender_name(inbound)} <{inbound.from_email}> wrote:\n{quoted}"


def _reply_subject(prefix: str, subject: str) -> str:
    prefix = (prefix or "").strip()
    if not prefix or subject.lower().startswith(prefix.lower()):
        return subject
    return f"{prefix} {subject}".strip()


class InboundEmailService:
    @staticmethod
    def receive(
        *, company, from_email: str, subject: str = "", body: str = "", from_name: str = "", received_at=None
    ) -> InboundEmail:
        result = quick_categorize(subject, from_email)
        inbound = InboundEmail.objects.create(
            company=company,
            company_group=company.company_group,
            from_email=from_email,
            from_name=from_name,
            subject=subject,
            body=body,
            received_at=received_at or timezone.now(),
            category=result.category,
            category_confidence=result.confidence,
            keywords=result.keywords,
            priority=result.priority,
            suggested_action=result.suggested_action,
        )
        logger.info(
            "Inbound email %s from %s categorised as %s (%s%%)",
            inbound.pk,
            from_email,
            result.category,
            result.confidence,
        )
        return inbound

    @staticmethod
    def rule_matches(rule: AutoReplyRule, inbound: InboundEmail) -> bool:
        if rule.category and rule.category != inbound.category:
            return False
        if inbound.category_confidence < rule.min_confidence:
            return False
        try:
            if rule.sender_pattern and not re.search(rule.sender_pattern, inbound.from_email, re.IGNORECASE):
                return False
            if rule.subject_pattern and not re.search(rule.subject_pattern, inbound.subject, re.IGNORECASE):
                return False
        except re.error as exc:
            logger.warning("Auto-reply rule %s has an invalid pattern: %s", rule.pk, exc)
            return False
        if rule.body_keywords:
            body = (inbound.body or "").lower()
            if not any(str(keyword).lower() in body for keyword in rule.body_keywords):
                return False
        return True

    @staticmethod
    def find_matching_rule(inbound: InboundEmail) -> Optional[AutoReplyRule]:
        """Highest priority enabled rule of the inbound email's company that matches it."""
        rules = AutoReplyRule.objects.for_company(inbound.company).filter(is_enabled=True).order_by("-priority", "id")
        for rule in rules:
            if InboundEmailService.rule_matches(rule, inbound):
                return rule
        return None

    @staticmethod
    def render_reply(rule: AutoReplyRule, inbound: InboundEmail):
        payload = {
            "sender_name": _sender_name(inbound),
            "subject": inbound.subject,
            "category": category_display(inbound.category)["label"],
            "company_name": inbound.company.name,
        }
        body = render_template(rule.reply_template, payload)
        if rule.include_original:
            body = f"{body}\n\n{_quote(inbound)}"
        return _reply_subject(rule.reply_subject_prefix, inbound.subject), body

    @staticmethod
    @transaction.atomic
    def apply_rule(rule: AutoReplyRule, inbound: InboundEmail, *, now=None):
        """
        Reply to ``inbound`` using ``rule``.

        Auto-send rules queue the reply after the rule's delay; otherwise a
        ``PendingReply`` is created for approval. Returns the queued
        ``EmailMessage`` or the ``PendingReply``.
        """
        now = now or timezone.now()
        subject, body = InboundEmailService.render_reply(rule, inbound)
        if rule.auto_send:
            result = EmailService.queue_email(
                company=inbound.company,
                to_email=inbound.from_email,
                to_name=inbound.from_name,
                subject=subject,
                body=body,
                idempotency_key=f"auto-reply:{inbound.pk}:{rule.pk}",
                related_entity_type="InboundEmail",
                related_entity_id=inbound.pk,
                scheduled_at=now + timedelta(minutes=rule.delay_minutes) if rule.delay_minutes else None,
            )
            outcome = result.message
            inbound.status = InboundEmail.Status.REPLIED
        else:
            outcome = PendingReply.objects.create(
                **inbound.scope_kwargs(),
                inbound_email=inbound,
                rule=rule,
                to_email=inbound.from_email,
                to_name=inbound.from_name,
                subject=subject,
                body=body,
            )
            inbound.status = InboundEmail.Status.PROCESSED
        inbound.save(update_fields=["status", "updated_at"])
        AutoReplyRule.objects.filter(pk=rule.pk).update(
            times_triggered=F("times_triggered") + 1, last_triggered_at=now
        )

        if rule.notify_owner or rule.create_task:
            InboundEmailService._alert_owner(rule, inbound, outcome)
        return outcome

    @staticmethod
    def _alert_owner(rule: AutoReplyRule, inbound: InboundEmail, outcome):
        if isinstance(outcome, PendingReply):
            title = f"Reply awaiting approval for {inbound.from_email}"
        else:
            title = f"Auto-reply sent to {inbound.from_email}"
        payload = dict(
            company=inbound.company,
            title=title,
            body=f"Rule '{rule.name}' matched: {inbound.subject}",
            severity=NotificationSeverity.WARNING if rule.create_task else NotificationSeverity.INFO,
            group_key=f"auto-reply:{inbound.pk}",
            entity_type="InboundEmail",
            entity_id=inbound.pk,
        )
        if rule.owner_id:
            notify(user=rule.owner, **payload)
        else:
            notify_company_admins(**payload)

    @staticmethod
    def process(inbound: InboundEmail):
        """Run auto-reply rules for a new inbound email."""
        if inbound.status != InboundEmail.Status.NEW:
            raise ValueError(f"Inbound email {inbound.pk} was already {inbound.status}.")
        rule = InboundEmailService.find_matching_rule(inbound)
        if rule is None:
            return None
        return InboundEmailService.apply_rule(rule, inbound)

    @staticmethod
    @transaction.atomic
    def approve_pending_reply(reply: PendingReply, *, user=None, subject: str = "", body: str = ""):
        if reply.status != PendingReply.Status.PENDING:
            raise ValueError(f"Reply to {reply.to_email} is already {reply.status}.")
        if subject:
            reply.subject = subject
        if body:
            reply.body = body
        result = EmailService.queue_email(
            company=reply.company,
            to_email=reply.to_email,
            to_name=reply.to_name,
            subject=reply.subject,
            body=reply.body,
            idempotency_key=f"pending-reply:{reply.pk}",
            related_entity_type="InboundEmail",
            related_entity_id=reply.inbound_email_id,
            triggered_by=user,
        )
        reply.status = PendingReply.Status.APPROVED
        reply.email_message = result.message
        reply.reviewed_by = user if getattr(user, "is_authenticated", False) else None
        reply.reviewed_at = timezone.now()
        reply.save()
        InboundEmail.objects.filter(pk=reply.inbound_email_id).update(
            status=InboundEmail.Status.REPLIED, updated_at=timezone.now()
        )
        return result.message

    @staticmethod
    def reject_pending_reply(reply: PendingReply, *, user=None) -> PendingReply:
        if reply.status != PendingReply.Status.PENDING:
            raise ValueError(f"Reply to {reply.to_email} is already {reply.status}.")
        reply.status = PendingReply.Status.REJECTED
        reply.reviewed_by = user if getattr(user, "is_authenticated", False) else None
        reply.reviewed_at = timezone.now()
        reply.save(update_fields=["status", "reviewed_by", "reviewed_at", "updated_at"])
        return reply
