"""Shared service tables used by both classifiers and the category mapper."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

CATEGORIES: tuple[str, ...] = (
    "Entertainment & Media",
    "Software & Productivity",
    "Health & Fitness",
    "Web Services & Hosting",
    "Gaming",
    "Education & Learning",
    "Food & Delivery",
    "Transportation",
    "Finance & Banking",
    "Communication",
    "News & Magazines",
    "Music & Audio",
    "Video & Streaming",
    "Design & Creative",
    "Business & Professional",
    "Security & Privacy",
    "Storage & Cloud",
    "Shopping & Retail",
    "Utilities & Services",
    "Travel & Tourism",
    "Sports & Recreation",
    "Other",
)

DEFAULT_CATEGORY = "Other"

# Specific brands checked first when naming a detected service.
BRAND_ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("puregym", ("puregym", "pure gym")),
    ("namecheap", ("namecheap", "cdn")),
    ("anthropic", ("anthropic", "claude")),
    ("paddle", ("paddle", "leonardo interactive")),
    ("emirates nbd", ("emirates nbd", "emiratesnbd")),
    ("webflow", ("webflow",)),
    ("github", ("github",)),
    ("fal", ("fal.ai", "team fal")),
    ("leonardo", ("leonardo interactive", "leonardo ai")),
)

TRUSTED_SERVICES: tuple[str, ...] = (
    "netflix",
    "spotify",
    "apple",
    "google",
    "microsoft",
    "adobe",
    "amazon",
    "dropbox",
    "github",
    "slack",
    "zoom",
    "notion",
    "discord",
    "youtube",
    "hulu",
    "disney",
    "prime video",
    "office 365",
    "icloud",
    "onedrive",
    "canva",
    "figma",
    "trello",
    "asana",
    "monday",
    "salesforce",
    "twitch",
    "patreon",
    "mailchimp",
    "stripe",
    "paypal",
    "namecheap",
    "paddle",
    "puregym",
    "leonardo",
    "fal.ai",
    "webflow",
    "vercel",
    "netlify",
    "planetscale",
    "railway",
)

# Checked in order; the first key contained in the service name wins.
SERVICE_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("netflix", "Entertainment & Media"),
    ("disney", "Entertainment & Media"),
    ("hulu", "Entertainment & Media"),
    ("prime video", "Entertainment & Media"),
    ("amazon prime", "Entertainment & Media"),
    ("paramount", "Entertainment & Media"),
    ("peacock", "Entertainment & Media"),
    ("hbo", "Entertainment & Media"),
    ("showtime", "Entertainment & Media"),
    ("starz", "Entertainment & Media"),
    ("crunchyroll", "Entertainment & Media"),
    ("spotify", "Music & Audio"),
    ("apple music", "Music & Audio"),
    ("youtube music", "Music & Audio"),
    ("pandora", "Music & Audio"),
    ("tidal", "Music & Audio"),
    ("soundcloud", "Music & Audio"),
    ("audible", "Music & Audio"),
    ("podcast", "Music & Audio"),
    ("microsoft", "Software & Productivity"),
    ("office 365", "Software & Productivity"),
    ("adobe", "Software & Productivity"),
    ("notion", "Software & Productivity"),
    ("slack", "Software & Productivity"),
    ("zoom", "Software & Productivity"),
    ("teams", "Software & Productivity"),
    ("asana", "Software & Productivity"),
    ("trello", "Software & Productivity"),
    ("monday", "Software & Productivity"),
    ("clickup", "Software & Productivity"),
    ("airtable", "Software & Productivity"),
    ("zapier", "Software & Productivity"),
    ("calendly", "Software & Productivity"),
    ("anthropic", "Software & Productivity"),
    ("openai", "Software & Productivity"),
    ("github", "Software & Productivity"),
    ("gitlab", "Software & Productivity"),
    ("fal", "Software & Productivity"),
    ("canva", "Design & Creative"),
    ("figma", "Design & Creative"),
    ("sketch", "Design & Creative"),
    ("invision", "Design & Creative"),
    ("framer", "Design & Creative"),
    ("creative cloud", "Design & Creative"),
    ("photoshop", "Design & Creative"),
    ("illustrator", "Design & Creative"),
    ("leonardo", "Design & Creative"),
    ("runway", "Design & Creative"),
    ("midjourney", "Design & Creative"),
    ("namecheap", "Web Services & Hosting"),
    ("godaddy", "Web Services & Hosting"),
    ("bluehost", "Web Services & Hosting"),
    ("hostgator", "Web Services & Hosting"),
    ("cloudflare", "Web Services & Hosting"),
    ("aws", "Web Services & Hosting"),
    ("google cloud", "Web Services & Hosting"),
    ("azure", "Web Services & Hosting"),
    ("digitalocean", "Web Services & Hosting"),
    ("linode", "Web Services & Hosting"),
    ("heroku", "Web Services & Hosting"),
    ("vercel", "Web Services & Hosting"),
    ("netlify", "Web Services & Hosting"),
    ("webflow", "Web Services & Hosting"),
    ("squarespace", "Web Services & Hosting"),
    ("wix", "Web Services & Hosting"),
    ("wordpress", "Web Services & Hosting"),
    ("cdn", "Web Services & Hosting"),
    ("puregym", "Health & Fitness"),
    ("peloton", "Health & Fitness"),
    ("fitbit", "Health & Fitness"),
    ("myfitnesspal", "Health & Fitness"),
    ("strava", "Health & Fitness"),
    ("headspace", "Health & Fitness"),
    ("calm", "Health & Fitness"),
    ("noom", "Health & Fitness"),
    ("gym", "Health & Fitness"),
    ("fitness", "Health & Fitness"),
    ("steam", "Gaming"),
    ("xbox", "Gaming"),
    ("playstation", "Gaming"),
    ("nintendo", "Gaming"),
    ("epic games", "Gaming"),
    ("origin", "Gaming"),
    ("ubisoft", "Gaming"),
    ("blizzard", "Gaming"),
    ("twitch", "Gaming"),
    ("discord nitro", "Gaming"),
    ("coursera", "Education & Learning"),
    ("udemy", "Education & Learning"),
    ("skillshare", "Education & Learning"),
    ("masterclass", "Education & Learning"),
    ("linkedin learning", "Education & Learning"),
    ("pluralsight", "Education & Learning"),
    ("codecademy", "Education & Learning"),
    ("khan academy", "Education & Learning"),
    ("duolingo", "Education & Learning"),
    ("babbel", "Education & Learning"),
    ("rosetta stone", "Education & Learning"),
    ("dropbox", "Storage & Cloud"),
    ("google drive", "Storage & Cloud"),
    ("icloud", "Storage & Cloud"),
    ("onedrive", "Storage & Cloud"),
    ("box", "Storage & Cloud"),
    ("mega", "Storage & Cloud"),
    ("backblaze", "Storage & Cloud"),
    ("nordvpn", "Security & Privacy"),
    ("expressvpn", "Security & Privacy"),
    ("surfshark", "Security & Privacy"),
    ("protonvpn", "Security & Privacy"),
    ("lastpass", "Security & Privacy"),
    ("1password", "Security & Privacy"),
    ("bitwarden", "Security & Privacy"),
    ("dashlane", "Security & Privacy"),
    ("malwarebytes", "Security & Privacy"),
    ("norton", "Security & Privacy"),
    ("mcafee", "Security & Privacy"),
    ("whatsapp", "Communication"),
    ("telegram", "Communication"),
    ("signal", "Communication"),
    ("discord", "Communication"),
    ("skype", "Communication"),
    ("uber eats", "Food & Delivery"),
    ("doordash", "Food & Delivery"),
    ("grubhub", "Food & Delivery"),
    ("postmates", "Food & Delivery"),
    ("deliveroo", "Food & Delivery"),
    ("zomato", "Food & Delivery"),
    ("talabat", "Food & Delivery"),
    ("careem", "Food & Delivery"),
    ("hellofresh", "Food & Delivery"),
    ("blue apron", "Food & Delivery"),
    ("uber", "Transportation"),
    ("lyft", "Transportation"),
    ("lime", "Transportation"),
    ("bird", "Transportation"),
    ("zipcar", "Transportation"),
    ("mint", "Finance & Banking"),
    ("ynab", "Finance & Banking"),
    ("quickbooks", "Finance & Banking"),
    ("freshbooks", "Finance & Banking"),
    ("wave", "Finance & Banking"),
    ("stripe", "Finance & Banking"),
    ("paypal", "Finance & Banking"),
    ("square", "Finance & Banking"),
    ("new york times", "News & Magazines"),
    ("wall street journal", "News & Magazines"),
    ("washington post", "News & Magazines"),
    ("the guardian", "News & Magazines"),
    ("medium", "News & Magazines"),
    ("substack", "News & Magazines"),
    ("economist", "News & Magazines"),
    ("bloomberg", "News & Magazines"),
    ("salesforce", "Business & Professional"),
    ("hubspot", "Business & Professional"),
    ("mailchimp", "Business & Professional"),
    ("constant contact", "Business & Professional"),
    ("surveymonkey", "Business & Professional"),
    ("typeform", "Business & Professional"),
    ("intercom", "Business & Professional"),
    ("zendesk", "Business & Professional"),
    ("freshdesk", "Business & Professional"),
    ("costco", "Shopping & Retail"),
    ("walmart", "Shopping & Retail"),
    ("target", "Shopping & Retail"),
    ("instacart", "Shopping & Retail"),
    ("shipt", "Shopping & Retail"),
    ("airbnb", "Travel & Tourism"),
    ("booking", "Travel & Tourism"),
    ("expedia", "Travel & Tourism"),
    ("hotels", "Travel & Tourism"),
    ("tripadvisor", "Travel & Tourism"),
    ("kayak", "Travel & Tourism"),
)

KEYWORD_FAMILIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Entertainment & Media",
        ("tv", "movie", "film", "entertainment", "media", "streaming", "video"),
    ),
    ("Music & Audio", ("music", "audio", "sound", "radio", "podcast", "song")),
    (
        "Software & Productivity",
        ("software", "app", "tool", "productivity", "api", "ai", "analytics"),
    ),
    (
        "Health & Fitness",
        ("health", "fitness", "gym", "workout", "exercise", "medical", "wellness"),
    ),
    ("Gaming", ("game", "gaming", "play", "esports")),
    (
        "Education & Learning",
        ("education", "learning", "course", "training", "tutorial", "study"),
    ),
    (
        "Food & Delivery",
        ("food", "delivery", "restaurant", "meal", "recipe", "cooking"),
    ),
    ("Transportation", ("transport", "ride", "taxi", "car", "bike", "scooter")),
    (
        "Finance & Banking",
        ("bank", "finance", "money", "payment", "accounting", "invoice"),
    ),
    (
        "Security & Privacy",
        ("security", "privacy", "vpn", "password", "antivirus", "protection"),
    ),
    (
        "News & Magazines",
        ("news", "magazine", "journal", "newspaper", "article", "publication"),
    ),
    (
        "Web Services & Hosting",
        ("hosting", "domain", "web", "server", "cloud", "infrastructure", "cdn"),
    ),
    (
        "Design & Creative",
        ("design", "creative", "art", "photo", "image", "graphics", "logo"),
    ),
    ("Storage & Cloud", ("storage", "backup", "sync", "drive", "cloud")),
    (
        "Communication",
        ("chat", "message", "call", "video", "communication", "meeting"),
    ),
)

# Typical monthly prices quoted to the oracle when an invoice hides the amount.
AMOUNT_ESTIMATES: Mapping[str, tuple[Decimal, str]] = {
    "gym membership": (Decimal("150.00"), "AED"),
    "basic hosting or cdn": (Decimal("0.99"), "USD"),
    "premium hosting": (Decimal("25.00"), "USD"),
    "software service": (Decimal("20.00"), "USD"),
    "ai or api service": (Decimal("20.00"), "USD"),
    "free plan that auto-renews to paid": (Decimal("0.99"), "USD"),
}

MEMBERSHIP_INVOICE_PLACEHOLDER = Decimal("50")


@dataclass(frozen=True)
class ServiceCatalog:
    """Single source of the service tables shared across classifiers."""

    brand_aliases: tuple[tuple[str, tuple[str, ...]], ...] = BRAND_ALIASES
    trusted_services: tuple[str, ...] = TRUSTED_SERVICES
    service_categories: tuple[tuple[str, str], ...] = SERVICE_CATEGORIES
    keyword_families: tuple[tuple[str, tuple[str, ...]], ...] = KEYWORD_FAMILIES
    categories: tuple[str, ...] = CATEGORIES
    amount_estimates: Mapping[str, tuple[Decimal, str]] = field(
        default_factory=lambda: dict(AMOUNT_ESTIMATES)
    )
    membership_invoice_placeholder: Decimal = MEMBERSHIP_INVOICE_PLACEHOLDER

    def match_brand(self, *haystacks: str) -> str | None:
        """Return the first brand whose alias appears in any haystack."""
        for service, aliases in self.brand_aliases:
            for alias in aliases:
                if any(alias in haystack for haystack in haystacks):
                    return service
        return None

    def match_trusted(self, *haystacks: str) -> str | None:
        """Return the first trusted service named in any haystack."""
        for service in self.trusted_services:
            if any(service in haystack for haystack in haystacks):
                return service
        return None

    def trusted_matches(self, *haystacks: str) -> tuple[str, ...]:
        """Return every trusted service named in any haystack."""
        return tuple(
            service
            for service in self.trusted_services
            if any(service in haystack for haystack in haystacks)
        )


DEFAULT_CATALOG = ServiceCatalog()


__all__ = [
    "AMOUNT_ESTIMATES",
    "BRAND_ALIASES",
    "CATEGORIES",
    "DEFAULT_CATALOG",
    "DEFAULT_CATEGORY",
    "KEYWORD_FAMILIES",
    "MEMBERSHIP_INVOICE_PLACEHOLDER",
    "SERVICE_CATEGORIES",
    "ServiceCatalog",
    "TRUSTED_SERVICES",
]
