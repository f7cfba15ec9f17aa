"""Prompt templates for oracle-driven subscription detection."""

from __future__ import annotations

from textwrap import dedent

from ..core.datetime_utils import serialize_datetime
from ..core.models import ExtractedContent
from .catalog import DEFAULT_CATALOG, ServiceCatalog

_CATEGORY_GUIDE = (
    ("Entertainment & Media", "Netflix, Disney+, Hulu, Prime Video, streaming services"),
    ("Music & Audio", "Spotify, Apple Music, Audible, podcast platforms"),
    ("Software & Productivity", "Microsoft Office, Adobe, Notion, Slack, Zoom, AI tools"),
    ("Design & Creative", "Canva, Figma, Creative Cloud, design tools"),
    ("Web Services & Hosting", "Namecheap, AWS, Webflow, domain and hosting services"),
    ("Health & Fitness", "PureGym, Peloton, fitness apps, gym memberships"),
    ("Gaming", "Steam, Xbox, PlayStation, game subscriptions"),
    ("Education & Learning", "Coursera, Udemy, online courses"),
    ("Security & Privacy", "VPN services, password managers, antivirus"),
    ("Storage & Cloud", "Dropbox, Google Drive, backup services"),
    ("Communication", "WhatsApp Business, Discord, communication tools"),
    ("Food & Delivery", "Uber Eats, meal kits, delivery services"),
    ("Finance & Banking", "QuickBooks, payment processors, financial tools"),
    ("News & Magazines", "NYT, WSJ, magazine subscriptions"),
    ("Transportation", "Uber, ride-sharing, transit passes"),
    ("Business & Professional", "Salesforce, CRM tools, business services"),
    ("Shopping & Retail", "Amazon Prime, membership clubs"),
    ("Travel & Tourism", "Booking platforms, travel services"),
)

# Dedented before formatting so interpolated multi-line blocks stay flush left.
_SYSTEM_TEMPLATE = dedent(
    """
    You are an expert email analyzer specializing in subscription and billing email
    detection. Identify confirmed subscription payments and extract precise
    financial information.

    MARK AS SUBSCRIPTION IF:
    - It confirms a payment with a specific amount ($X.XX, AED X.XX, ...)
    - It is a billing statement, invoice or receipt for a recurring service
    - It is a membership fee invoice, even when the amount is in an attachment
    - It is a renewal notification for a paid service, even without an amount
    - It confirms an auto-payment, top-up or credit for a subscription service

    MARK AS CANCELLATION (isSubscription true, type "cancellation") IF:
    - It confirms that a subscription, plan or membership was cancelled or ended

    MARK AS NOT SUBSCRIPTION IF:
    - It is a free trial offer, promotion or marketing email
    - It is a generic bank notification without service context
    - It is a newsletter, job alert or social media notification
    - It is a one-time purchase, security notification or password reset

    AMOUNT EXTRACTION PRIORITY:
    1. Payment confirmations: "Charged $X.XX", "Payment of AED X.XX"
    2. Invoice totals: "Total: $X.XX", "Amount due: $X.XX"
    3. Receipts: "You paid $X.XX", "Transaction amount: $X.XX"
    4. Fee statements: "Monthly fee: $X.XX", "Membership: AED X.XX"
    5. Top-ups: "topped up your balance by $X.XX"

    AMOUNT ESTIMATES when the amount is hidden (attachment, renewal notice):
    {estimates}
    Always prefer an actual amount when one is present.

    RESPONSE FORMAT (JSON ONLY):
    {{
      "isSubscription": boolean,
      "type": "subscription" | "cancellation" | "receipt" | "renewal" | null,
      "serviceName": string | null,
      "amount": number | null,
      "currency": "USD" | "EUR" | "GBP" | "AED" | null,
      "nextRenewalDate": "YYYY-MM-DD" | null,
      "renewalDay": number | null,
      "category": {categories} | null,
      "confidence": number (1-10),
      "isMonthlyCharge": boolean,
      "description": string | null,
      "reasons": [string, ...]
    }}

    EXAMPLES:
    1. Subject "PureGym membership invoice", content "Your monthly membership fee of
       AED 129.00 has been charged to your card ending in 1234."
       -> isSubscription true, amount 129.00, currency "AED", serviceName "PureGym"
    2. Subject "PureGym membership invoice", content "Deduction notification from
       Pure Gym. Please see your invoice in the attachments."
       -> isSubscription true, amount {gym_amount}, currency "{gym_currency}",
          serviceName "PureGym" (estimated gym fee)
    3. Subject "Your CDN Free subscription will be renewed in 3 days", content "You
       have an upcoming renewal for CDN service."
       -> isSubscription true, amount {cdn_amount}, currency "{cdn_currency}",
          serviceName "Namecheap CDN" (estimated basic hosting fee)
    4. Subject "Payment Confirmation", content "You have successfully topped up your
       balance by $10.00. Best regards, team fal"
       -> isSubscription true, amount 10.00, currency "USD", serviceName "fal.ai"
    5. Subject "Your subscription to Leonardo Interactive PTY LTD", content "Thank you
       for choosing Leonardo Interactive! Your subscription will renew."
       -> isSubscription true, amount 9.45, currency "USD",
          serviceName "Leonardo Interactive"
    6. Subject "Your Webflow plan has been renewed", content "Your Webflow Site plan
       subscription of $14/month has been renewed and is active."
       -> isSubscription true, amount 14.00, currency "USD", serviceName "Webflow",
          category "Web Services & Hosting"
    7. Subject "Claude Pro subscription payment", content "Your Claude Pro
       subscription for $20/month has been successfully charged."
       -> isSubscription true, amount 20.00, currency "USD",
          serviceName "Anthropic Claude", category "Software & Productivity"
    8. Subject "50% off your next subscription!", content "Don't miss out! Get 50%
       off your first month. Click here to subscribe now!"
       -> isSubscription false
    9. Subject "Credit card payment", content "A payment was processed on your
       credit card. Login to view details."
       -> isSubscription false (generic bank notification, no service details)

    CATEGORIZATION GUIDE:
    {guide}

    Read the entire email, assign the most specific category for the service and
    respond with a single JSON object and nothing else.
    """
).strip()

_USER_TEMPLATE = dedent(
    """
    Analyze this email for subscription payment detection.

    Subject: {subject}
    From: {sender}
    Date: {received}

    Email body:
    {body}

    Only mark it as a subscription when there is evidence of an actual payment or
    billing relationship. Respond with valid JSON only.
    """
).strip()


def build_system_prompt(catalog: ServiceCatalog = DEFAULT_CATALOG) -> str:
    """Compose the fixed instruction prompt shared by every request."""
    gym_amount, gym_currency = catalog.amount_estimates["gym membership"]
    cdn_amount, cdn_currency = catalog.amount_estimates["basic hosting or cdn"]
    return _SYSTEM_TEMPLATE.format(
        estimates="\n".join(
            f"  * {label}: about {amount} {currency}/month"
            for label, (amount, currency) in catalog.amount_estimates.items()
        ),
        categories=" | ".join(f'"{name}"' for name in catalog.categories),
        gym_amount=gym_amount,
        gym_currency=gym_currency,
        cdn_amount=cdn_amount,
        cdn_currency=cdn_currency,
        guide="\n".join(f"- {name}: {examples}" for name, examples in _CATEGORY_GUIDE),
    )


def build_user_prompt(content: ExtractedContent, *, body_char_limit: int) -> str:
    """Compose the per-email prompt with the body truncated to the limit."""
    return _USER_TEMPLATE.format(
        subject=content.subject or "(no subject)",
        sender=content.sender or "(unknown sender)",
        received=serialize_datetime(content.date_received) or "(unknown date)",
        body=content.plain_text[:body_char_limit] or "(empty body)",
    )


__all__ = ["build_system_prompt", "build_user_prompt"]
