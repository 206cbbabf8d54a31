"""
Vendor Knowledge Base
Static map of known vendors to deductibility categories, used to
cross-check the external classifier.

Lookup order:
  1. Sender domain, against every category in VENDOR_CATEGORY_PRIORITY order
  2. Text patterns over "domain subject body", in the same category order

A domain matches a vendor entry when it equals the entry or is a subdomain of
it ("billing.hetzner.com" matches "hetzner.com"; "nothetzner.com" does not).
"""

import re
from dataclasses import dataclass

from app.core.categories import DeductibleCategory


@dataclass(frozen=True)
class KnownVendor:
    deductible: DeductibleCategory
    vendor_category: str
    name: str | None = None
    domain: str | None = None
    pattern: re.Pattern | None = None
    percent: int | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.vendor_category


@dataclass(frozen=True)
class VendorMatch:
    vendor: KnownVendor
    matched_on: str  # "domain" or "pattern"

    @property
    def deductible(self) -> DeductibleCategory:
        return self.vendor.deductible

    @property
    def name(self) -> str:
        return self.vendor.display_name


# Categories are checked in this order; the first hit wins.
VENDOR_CATEGORY_PRIORITY: tuple[DeductibleCategory, ...] = (
    DeductibleCategory.VEHICLE,
    DeductibleCategory.MEALS,
    DeductibleCategory.FULL,
    DeductibleCategory.TELECOM,
    DeductibleCategory.NONE,
    DeductibleCategory.UNCLEAR,
)


def _d(deductible: DeductibleCategory, domain: str, name: str, vendor_category: str, percent: int | None = None) -> KnownVendor:
    return KnownVendor(deductible, vendor_category, name=name, domain=domain, percent=percent)


def _p(deductible: DeductibleCategory, pattern: str, vendor_category: str, name: str | None = None, percent: int | None = None) -> KnownVendor:
    return KnownVendor(deductible, vendor_category, name=name, pattern=re.compile(pattern, re.IGNORECASE), percent=percent)


FULL = DeductibleCategory.FULL
VEHICLE = DeductibleCategory.VEHICLE
MEALS = DeductibleCategory.MEALS
TELECOM = DeductibleCategory.TELECOM
NONE = DeductibleCategory.NONE
UNCLEAR = DeductibleCategory.UNCLEAR

KNOWN_VENDORS: dict[DeductibleCategory, list[KnownVendor]] = {
    FULL: [
        # Software & SaaS
        _d(FULL, "jetbrains.com", "JetBrains", "Software"),
        _d(FULL, "github.com", "GitHub", "Dev Tools"),
        _d(FULL, "gitlab.com", "GitLab", "Dev Tools"),
        _d(FULL, "atlassian.com", "Atlassian", "Software"),
        _d(FULL, "atlassian.net", "Atlassian", "Software"),
        _d(FULL, "figma.com", "Figma", "Design Tools"),
        _d(FULL, "notion.so", "Notion", "Productivity"),
        _d(FULL, "linear.app", "Linear", "Project Management"),
        _d(FULL, "1password.com", "1Password", "Security"),
        _d(FULL, "bitwarden.com", "Bitwarden", "Security"),
        _d(FULL, "adobe.com", "Adobe", "Software"),
        _d(FULL, "canva.com", "Canva", "Design Tools"),
        _d(FULL, "miro.com", "Miro", "Collaboration"),
        _d(FULL, "asana.com", "Asana", "Project Management"),
        _d(FULL, "trello.com", "Trello", "Project Management"),
        _d(FULL, "dropbox.com", "Dropbox", "Cloud Storage"),
        # Cloud & hosting
        _d(FULL, "aws.amazon.com", "AWS", "Cloud"),
        _d(FULL, "amazonaws.com", "AWS", "Cloud"),
        _d(FULL, "cloud.google.com", "Google Cloud", "Cloud"),
        _d(FULL, "azure.microsoft.com", "Azure", "Cloud"),
        _d(FULL, "digitalocean.com", "DigitalOcean", "Cloud"),
        _d(FULL, "hetzner.com", "Hetzner", "Hosting"),
        _d(FULL, "hetzner.de", "Hetzner", "Hosting"),
        _d(FULL, "vercel.com", "Vercel", "Hosting"),
        _d(FULL, "netlify.com", "Netlify", "Hosting"),
        _d(FULL, "cloudflare.com", "Cloudflare", "CDN/DNS"),
        _d(FULL, "render.com", "Render", "Hosting"),
        _d(FULL, "fly.io", "Fly.io", "Hosting"),
        _d(FULL, "heroku.com", "Heroku", "Hosting"),
        _d(FULL, "scaleway.com", "Scaleway", "Cloud"),
        _d(FULL, "ovhcloud.com", "OVH", "Hosting"),
        # Domains
        _d(FULL, "namecheap.com", "Namecheap", "Domains"),
        _d(FULL, "gandi.net", "Gandi", "Domains"),
        _d(FULL, "porkbun.com", "Porkbun", "Domains"),
        _d(FULL, "nic.at", "nic.at", "Domains"),
        _d(FULL, "denic.de", "DENIC", "Domains"),
        # Monitoring & email services
        _d(FULL, "sentry.io", "Sentry", "Monitoring"),
        _d(FULL, "datadoghq.com", "Datadog", "Monitoring"),
        _d(FULL, "plausible.io", "Plausible", "Analytics"),
        _d(FULL, "posthog.com", "PostHog", "Analytics"),
        _d(FULL, "postmarkapp.com", "Postmark", "Email Service"),
        _d(FULL, "sendgrid.com", "SendGrid", "Email Service"),
        _d(FULL, "mailgun.com", "Mailgun", "Email Service"),
        _d(FULL, "resend.com", "Resend", "Email Service"),
        # Communication
        _d(FULL, "slack.com", "Slack", "Communication"),
        _d(FULL, "zoom.us", "Zoom", "Communication"),
        _d(FULL, "workspace.google.com", "Google Workspace", "Productivity"),
        _d(FULL, "microsoft.com", "Microsoft", "Software"),
        _d(FULL, "office.com", "Microsoft 365", "Software"),
        _d(FULL, "loom.com", "Loom", "Communication"),
        _d(FULL, "calendly.com", "Calendly", "Productivity"),
        # AI services
        _d(FULL, "openai.com", "OpenAI", "AI Services"),
        _d(FULL, "anthropic.com", "Anthropic", "AI Services"),
        _d(FULL, "replicate.com", "Replicate", "AI Services"),
        _d(FULL, "huggingface.co", "Hugging Face", "AI Services"),
        _d(FULL, "elevenlabs.io", "ElevenLabs", "AI Services"),
        # Payment processing
        _d(FULL, "stripe.com", "Stripe", "Payment Processing"),
        _d(FULL, "paddle.com", "Paddle", "Payment Processing"),
        _d(FULL, "lemonsqueezy.com", "Lemon Squeezy", "Payment Processing"),
        # Dev tools & CI
        _d(FULL, "npmjs.com", "npm", "Dev Tools"),
        _d(FULL, "docker.com", "Docker", "Dev Tools"),
        _d(FULL, "circleci.com", "CircleCI", "CI/CD"),
        _d(FULL, "buildkite.com", "Buildkite", "CI/CD"),
        _d(FULL, "codecov.io", "Codecov", "Dev Tools"),
        _d(FULL, "snyk.io", "Snyk", "Security"),
        _d(FULL, "browserstack.com", "BrowserStack", "Testing"),
        # Education
        _d(FULL, "udemy.com", "Udemy", "Education"),
        _d(FULL, "pluralsight.com", "Pluralsight", "Education"),
        _d(FULL, "frontendmasters.com", "Frontend Masters", "Education"),
        _d(FULL, "oreilly.com", "O'Reilly", "Education"),
        _d(FULL, "manning.com", "Manning", "Education"),
        # Hardware
        _d(FULL, "apple.com", "Apple", "Hardware"),
        _d(FULL, "dell.com", "Dell", "Hardware"),
        _d(FULL, "lenovo.com", "Lenovo", "Hardware"),
        _d(FULL, "logitech.com", "Logitech", "Hardware"),
        # Professional services
        _p(FULL, r"steuerber", "Professional", name="Accountant"),
        _p(FULL, r"buchhal", "Professional", name="Accountant"),
        _p(FULL, r"rechtsanw", "Professional", name="Legal"),
        _p(FULL, r"kanzlei", "Professional", name="Legal"),
        _p(FULL, r"notar", "Professional", name="Notary"),
        _p(FULL, r"wko\.at", "Professional", name="WKO"),
        _p(FULL, r"svs\.at", "Insurance", name="SVS"),
    ],
    VEHICLE: [
        _p(VEHICLE, r"tankstelle|shell|\bbp\b|\bomv\b|\beni\b|avanti|\bjet\s|turmöl", "Vehicle Fuel", name="Fuel"),
        _p(VEHICLE, r"\bavia\b|\besso\b|\baral\b|\btotal\s", "Vehicle Fuel", name="Fuel"),
        _p(VEHICLE, r"autowäsche|car\s*wash|waschstraße|waschanlage", "Vehicle Service", name="Car Wash"),
        _p(VEHICLE, r"werkstatt|autoservice|kfz[-\s]?service|reparatur", "Vehicle Service", name="Car Service"),
        _p(VEHICLE, r"reifenwechsel|reifen[-\s]?service", "Vehicle Service", name="Tires"),
        _p(VEHICLE, r"kfz[-\s]?versicherung|autoversicherung", "Vehicle Insurance", name="Car Insurance"),
        _d(VEHICLE, "oeamtc.at", "ÖAMTC", "Vehicle Club"),
        _d(VEHICLE, "arboe.at", "ARBÖ", "Vehicle Club"),
        _p(VEHICLE, r"öamtc|arbö", "Vehicle Club", name="Roadside Assistance"),
        _d(VEHICLE, "asfinag.at", "ASFINAG", "Tolls"),
        _p(VEHICLE, r"asfinag|vignette|\bmaut\b|\btoll\b", "Tolls", name="Tolls/Vignette"),
        _p(VEHICLE, r"parkgarage|parking|parkhaus|kurzparkzone", "Vehicle Parking", name="Parking"),
    ],
    MEALS: [
        _p(MEALS, r"restaurant|gasthaus|gasthof|wirtshaus|beisl", "Business Meal", name="Restaurant"),
        _p(MEALS, r"bewirtung|geschäftsessen|business\s*lunch|business\s*dinner", "Business Meal", name="Business Meal"),
        _p(MEALS, r"catering", "Business Meal", name="Catering"),
    ],
    TELECOM: [
        _d(TELECOM, "a1.at", "A1", "Telecom", percent=50),
        _d(TELECOM, "a1.net", "A1", "Telecom", percent=50),
        _d(TELECOM, "drei.at", "Drei", "Telecom", percent=50),
        _d(TELECOM, "magenta.at", "Magenta", "Telecom", percent=50),
        _d(TELECOM, "bob.at", "bob", "Telecom", percent=50),
        _d(TELECOM, "yesss.at", "yesss!", "Telecom", percent=50),
        _d(TELECOM, "spusu.at", "spusu", "Telecom", percent=50),
        _d(TELECOM, "telekom.de", "Telekom", "Telecom", percent=50),
        _d(TELECOM, "vodafone.de", "Vodafone", "Telecom", percent=50),
        _p(TELECOM, r"internet|breitband|fiber|glasfaser", "Internet", percent=50),
        _p(TELECOM, r"telefon|mobilfunk|handy", "Telecom", percent=50),
    ],
    NONE: [
        _d(NONE, "netflix.com", "Netflix", "Entertainment"),
        _d(NONE, "spotify.com", "Spotify", "Entertainment"),
        _d(NONE, "disneyplus.com", "Disney+", "Entertainment"),
        _d(NONE, "primevideo.com", "Prime Video", "Entertainment"),
        _d(NONE, "hbomax.com", "HBO Max", "Entertainment"),
        _d(NONE, "twitch.tv", "Twitch", "Entertainment"),
        _d(NONE, "youtube.com", "YouTube Premium", "Entertainment"),
        _d(NONE, "audible.com", "Audible", "Entertainment"),
        _d(NONE, "audible.de", "Audible", "Entertainment"),
        _d(NONE, "tinder.com", "Tinder", "Personal"),
        _d(NONE, "bumble.com", "Bumble", "Personal"),
        _d(NONE, "flaconi.at", "Flaconi", "Cosmetics"),
        _d(NONE, "douglas.at", "Douglas", "Cosmetics"),
        _p(NONE, r"supermarkt|billa|\bspar\b|hofer|lidl|penny|interspar|merkur|eurospar", "Groceries"),
        _p(NONE, r"fitinn|mcfit|fitnessstudio|\bgym\b", "Fitness"),
        _p(NONE, r"\bkino\b|cinema|cineplexx", "Entertainment"),
        _p(NONE, r"parfum|kosmetik|drogerie", "Personal Care"),
        _p(NONE, r"süßwaren|confiserie|konditorei", "Food/Candy"),
        _p(NONE, r"nahrungsergänzung|supplement", "Health/Supplements"),
    ],
    UNCLEAR: [
        _d(UNCLEAR, "amazon.de", "Amazon DE", "Mixed"),
        _d(UNCLEAR, "amazon.at", "Amazon AT", "Mixed"),
        _d(UNCLEAR, "amazon.com", "Amazon", "Mixed"),
        _d(UNCLEAR, "ebay.de", "eBay DE", "Mixed"),
        _d(UNCLEAR, "ebay.at", "eBay AT", "Mixed"),
        _d(UNCLEAR, "ebay.com", "eBay", "Mixed"),
        _d(UNCLEAR, "aliexpress.com", "AliExpress", "Mixed"),
        _p(UNCLEAR, r"mediamarkt|saturn|cyberport|alternate", "Electronics"),
        _p(UNCLEAR, r"ikea|xxxlutz|möbelix|kika|leiner", "Furniture"),
    ],
}


def domain_matches(sender_domain: str, vendor_domain: str) -> bool:
    sender_domain = sender_domain.lower().strip(".")
    vendor_domain = vendor_domain.lower()
    return sender_domain == vendor_domain or sender_domain.endswith("." + vendor_domain)


def extract_domain(sender: str | None) -> str | None:
    """'Billing <billing@hetzner.com>' -> 'hetzner.com'."""
    if not sender or "@" not in sender:
        return None
    domain = sender.rsplit("@", 1)[1].strip().strip(">").lower()
    return domain or None


def find_vendor(sender_domain: str | None, subject: str = "", body: str = "") -> VendorMatch | None:
    if sender_domain:
        for category in VENDOR_CATEGORY_PRIORITY:
            for vendor in KNOWN_VENDORS[category]:
                if vendor.domain and domain_matches(sender_domain, vendor.domain):
                    return VendorMatch(vendor=vendor, matched_on="domain")

    text = f"{sender_domain or ''} {subject or ''} {body or ''}"
    for category in VENDOR_CATEGORY_PRIORITY:
        for vendor in KNOWN_VENDORS[category]:
            if vendor.pattern is not None and vendor.pattern.search(text):
                return VendorMatch(vendor=vendor, matched_on="pattern")
    return None
