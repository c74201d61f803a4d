"""
Declarative per-issuer tuning: header vocabulary, industry taxonomy and the
profile registry that bundles them.

Issuers differ mainly in how they label columns ("Company" vs "Issuer",
"Spread Above Index" vs "Reference Rate and Spread") and in how they mark
industry sections. Both are data here, not code paths.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Column vocabulary
# =============================================================================

@dataclass(frozen=True)
class FieldRule:
    """Header text pattern for one logical field."""
    field: str
    include: str                        # Regex, matched case-insensitively
    exclude: Optional[str] = None       # Regex that vetoes an include match

    def matches(self, header: str) -> bool:
        if not re.search(self.include, header, re.IGNORECASE):
            return False
        if self.exclude and re.search(self.exclude, header, re.IGNORECASE):
            return False
        return True


# Rules are tried in this order for every header cell; company is last so
# that "Investment Type" or "Investments at Fair Value" land elsewhere first.
GENERIC_RULES = (
    FieldRule("investment_type", r"\btype\b|instrument|class of|title of securit", r"rate"),
    FieldRule("percent_net_assets", r"%\s*of|percent(?:age)?\s+of|net\s+assets"),
    FieldRule("fair_value", r"fair\s*value|\bfair\b|market\s+value", r"unfunded|unrealized|change\s+in"),
    FieldRule("cost", r"amortized|\bcost\b"),
    FieldRule("par", r"\bpar\b|principal|face\s+amount|notional", r"\bcost\b|\bfair\b"),
    FieldRule("shares", r"\bshares\b|\bunits\b|quantity"),
    FieldRule("maturity", r"maturity|expiration|\bdue\b"),
    FieldRule("reference_rate", r"reference|spread|\bindex\b|benchmark"),
    FieldRule("interest_rate", r"interest|\brate\b|coupon|yield"),
    FieldRule("industry", r"industry|sector"),
    FieldRule("description", r"description|\bbusiness\b|\bnotes?\b"),
    FieldRule("company", r"compan(?:y|ies)|portfolio|issuer|borrower|\bname\b|investments?\b", r"\btype\b"),
)

FAIR_VALUE_TOKEN = r"fair\s*value|\bfair\b|market\s+value"
COMPANY_TOKEN = r"compan(?:y|ies)|portfolio|issuer|borrower|\bname\b|investments?\b"
COST_TOKEN = r"amortized|\bcost\b"


@dataclass(frozen=True)
class ColumnVocabulary:
    """Ordered header rules plus the tokens that identify a header row."""
    rules: tuple[FieldRule, ...] = GENERIC_RULES
    fair_value_token: str = FAIR_VALUE_TOKEN
    company_token: str = COMPANY_TOKEN
    cost_token: str = COST_TOKEN

    def match(self, header: str, taken: set[str]) -> Optional[str]:
        """Return the first not-yet-assigned field whose rule matches header."""
        for rule in self.rules:
            if rule.field in taken:
                continue
            if rule.matches(header):
                return rule.field
        return None

    def is_fair_value_header(self, text: str) -> bool:
        return re.search(self.fair_value_token, text, re.IGNORECASE) is not None

    def is_company_header(self, text: str) -> bool:
        return re.search(self.company_token, text, re.IGNORECASE) is not None

    def is_cost_header(self, text: str) -> bool:
        return re.search(self.cost_token, text, re.IGNORECASE) is not None

    def with_rule(self, rule: FieldRule) -> "ColumnVocabulary":
        """Copy with the rule for rule.field replaced (or removed if include is empty)."""
        rules = []
        replaced = False
        for existing in self.rules:
            if existing.field == rule.field:
                replaced = True
                if rule.include:
                    rules.append(rule)
            else:
                rules.append(existing)
        if not replaced and rule.include:
            rules.insert(len(rules) - 1, rule)
        return replace(self, rules=tuple(rules))


# =============================================================================
# Industry taxonomy
# =============================================================================

KNOWN_INDUSTRIES = (
    "Aerospace & Defense",
    "Air Freight & Logistics",
    "Automobile Components",
    "Automotive",
    "Banking",
    "Banking, Finance, Insurance & Real Estate",
    "Beverage, Food & Tobacco",
    "Beverages",
    "Biotechnology",
    "Building Products",
    "Business Services",
    "Capital Equipment",
    "Capital Markets",
    "Chemicals",
    "Chemicals, Plastics & Rubber",
    "Commercial Services & Supplies",
    "Communications Equipment",
    "Construction & Building",
    "Construction & Engineering",
    "Consumer Discretionary",
    "Consumer Finance",
    "Consumer Goods: Durable",
    "Consumer Goods: Non-Durable",
    "Consumer Products",
    "Consumer Services",
    "Containers & Packaging",
    "Containers, Packaging & Glass",
    "Distributors",
    "Diversified Consumer Services",
    "Diversified Financial Services",
    "Diversified Telecommunication Services",
    "Education",
    "Electrical Equipment",
    "Electronic Equipment, Instruments & Components",
    "Energy Equipment & Services",
    "Energy: Electricity",
    "Energy: Oil & Gas",
    "Entertainment",
    "Environmental Industries",
    "Financial Services",
    "Food & Beverage",
    "Food & Staples Retailing",
    "Food Products",
    "Forest Products & Paper",
    "Health Care Equipment & Supplies",
    "Health Care Providers & Services",
    "Health Care Services",
    "Health Care Technology",
    "Healthcare",
    "Healthcare & Pharmaceuticals",
    "High Tech Industries",
    "Hotel, Gaming & Leisure",
    "Hotels, Restaurants & Leisure",
    "Household Durables",
    "Household Products",
    "Industrial Conglomerates",
    "Insurance",
    "Insurance Services",
    "Interactive Media & Services",
    "Internet & Direct Marketing Retail",
    "Internet Software & Services",
    "IT Services",
    "Leisure Products",
    "Life Sciences Tools & Services",
    "Machinery",
    "Media",
    "Media: Advertising, Printing & Publishing",
    "Media: Broadcasting & Subscription",
    "Media: Diversified & Production",
    "Metals & Mining",
    "Oil, Gas & Consumable Fuels",
    "Paper & Forest Products",
    "Personal Products",
    "Pharmaceuticals",
    "Power & Utilities",
    "Professional Services",
    "Real Estate",
    "Real Estate Management & Development",
    "Retail",
    "Retailing",
    "Road & Rail",
    "Semiconductors & Semiconductor Equipment",
    "Services: Business",
    "Services: Consumer",
    "Software",
    "Software & Services",
    "Specialty Retail",
    "Sports, Leisure & Entertainment",
    "Technology Hardware, Storage & Peripherals",
    "Telecommunications",
    "Textiles, Apparel & Luxury Goods",
    "Trading Companies & Distributors",
    "Transportation",
    "Transportation: Cargo",
    "Transportation: Consumer",
    "Utilities",
    "Utilities: Electric",
    "Wholesale",
    "Wireless Telecommunication Services",
)

GENERIC_INDUSTRY_PATTERN = (
    r"\b(?:services|software|technology|technologies|health\s*care|healthcare|pharmaceuticals?|"
    r"products|manufacturing|equipment|industries|industrials?|materials|chemicals|energy|"
    r"utilities|insurance|financials?|finance|media|entertainment|telecommunications?|"
    r"transportation|logistics|retail(?:ing)?|consumer|distribution|distributors|aerospace|"
    r"defense|automotive|education|real\s+estate|leisure|hospitality|restaurants|food|"
    r"beverages?|packaging|construction|building|metals|mining|gaming|biotechnology|"
    r"life\s+sciences|internet|commercial|business|banking|capital\s+goods|publishing)\b"
)

TYPE_LABEL_PATTERN = (
    r"\b(?:first\s+lien|second\s+lien|senior\s+secured|unsecured|subordinated|mezzanine|"
    r"junior|equity|preferred|common\s+stock|common\s+equity|warrants?|debt\s+investments?|"
    r"loans?|notes|bonds|structured\s+(?:products|finance)|clo|joint\s+ventures?|"
    r"revolv(?:er|ing)|term\s+loans?|delayed\s+draw|unitranche|membership\s+units|"
    r"partnership\s+interests?|investments|affiliated|controlled|non-controlled)\b"
)

_TRAILING_PERCENT_RE = re.compile(r"[\s\-–—:]*\(?\d+(?:\.\d+)?\s*%\)?\s*$")
_FOOTNOTES_RE = re.compile(r"(?:\s*\(\s*[a-z0-9]{1,3}\s*\))+\s*$", re.IGNORECASE)
_NON_WORD_RE = re.compile(r"[^a-z0-9]+")


def normalize_industry(text: str) -> str:
    """Comparison key for an industry name: '&' -> 'and', punctuation dropped."""
    lowered = text.lower().replace("&", " and ")
    return _NON_WORD_RE.sub(" ", lowered).strip()


@dataclass(frozen=True)
class IndustryTaxonomy:
    """
    Recognises industry section headers and instrument-class labels.

    permissive_headers treats any short suffix-free single-cell row as an
    industry header (issuers that print industries as bare section rows).
    """
    known: frozenset = field(default_factory=lambda: frozenset(normalize_industry(i) for i in KNOWN_INDUSTRIES))
    industry_pattern: str = GENERIC_INDUSTRY_PATTERN
    type_label_pattern: str = TYPE_LABEL_PATTERN
    permissive_headers: bool = False
    max_words: int = 10

    def clean(self, text: str) -> str:
        """Strip footnote markers and a trailing '% of net assets' figure."""
        cleaned = re.sub(r"\s+", " ", text).strip()
        cleaned = _FOOTNOTES_RE.sub("", cleaned)
        cleaned = _TRAILING_PERCENT_RE.sub("", cleaned)
        return cleaned.strip(" ,;:-–—")

    def is_known(self, text: str) -> bool:
        return normalize_industry(self.clean(text)) in self.known

    def is_type_label(self, text: str) -> bool:
        return re.search(self.type_label_pattern, text, re.IGNORECASE) is not None

    def looks_like_industry(self, text: str) -> bool:
        cleaned = self.clean(text)
        if not cleaned or any(ch.isdigit() for ch in cleaned):
            return False
        if len(cleaned.split()) > self.max_words:
            return False
        if self.permissive_headers and len(cleaned) > 3:
            return True
        return re.search(self.industry_pattern, cleaned, re.IGNORECASE) is not None


# =============================================================================
# Issuer profiles
# =============================================================================

@dataclass(frozen=True)
class IssuerProfile:
    """Vocabulary and taxonomy used for one issuer family."""
    name: str
    vocabulary: ColumnVocabulary = field(default_factory=ColumnVocabulary)
    taxonomy: IndustryTaxonomy = field(default_factory=IndustryTaxonomy)
    tickers: tuple[str, ...] = ()
    name_patterns: tuple[str, ...] = ()     # Regexes over the filer name

    def matches(self, ticker: Optional[str] = None, name: Optional[str] = None) -> bool:
        if ticker and ticker.upper() in self.tickers:
            return True
        if name:
            return any(re.search(p, name, re.IGNORECASE) for p in self.name_patterns)
        return False


GENERIC_PROFILE = IssuerProfile(name="GENERIC")

# Golub prints the spread beside the rate; both read as interest_rate
GBDC_PROFILE = IssuerProfile(
    name="GBDC",
    vocabulary=ColumnVocabulary()
    .with_rule(FieldRule("reference_rate", ""))
    .with_rule(FieldRule("interest_rate", r"interest|\brate\b|spread|floor|coupon"))
    .with_rule(FieldRule("fair_value", r"\bfair\b", r"\bun")),
    tickers=("GBDC",),
    name_patterns=(r"golub",),
)

BXSL_PROFILE = IssuerProfile(
    name="BXSL",
    vocabulary=ColumnVocabulary()
    .with_rule(FieldRule("interest_rate", r"interest|coupon", r"spread"))
    .with_rule(FieldRule("reference_rate", r"spread|reference")),
    tickers=("BXSL",),
    name_patterns=(r"blackstone",),
)

# Ares prints industries as bare single-cell section rows
ARCC_PROFILE = IssuerProfile(
    name="ARCC",
    vocabulary=ColumnVocabulary().with_rule(
        FieldRule("company", r"compan(?:y|ies)|issuer|portfolio|borrower", r"\btype\b")
    ),
    taxonomy=IndustryTaxonomy(permissive_headers=True),
    tickers=("ARCC",),
    name_patterns=(r"\bares\b",),
)

PROFILES = {
    profile.name: profile
    for profile in (GENERIC_PROFILE, ARCC_PROFILE, GBDC_PROFILE, BXSL_PROFILE)
}


def select_profile(ticker: Optional[str] = None, name: Optional[str] = None) -> IssuerProfile:
    """
    Pick the issuer profile for a filer.

    Args:
        ticker: Exchange ticker, e.g. "ARCC"
        name: Filer name, e.g. "Ares Capital Corp"

    Returns:
        The matching profile, or GENERIC_PROFILE
    """
    if ticker and ticker.upper() in PROFILES:
        return PROFILES[ticker.upper()]
    for profile in PROFILES.values():
        if profile.matches(ticker=ticker, name=name):
            logger.debug(f"Selected issuer profile {profile.name} for {ticker or name}")
            return profile
    return GENERIC_PROFILE
