"""Email parsing and job application field extraction.

Every extractor walks an ordered list of phrasings and returns the first
match. Mail comes from applicant tracking systems and from companies
directly, so each rule is anchored on a phrase that only shows up in
confirmation mail. When nothing matches the caller gets a sentinel, never an
exception.
"""

import html
import logging
import re
from datetime import date
from email.utils import parseaddr
from typing import Optional

from .config import Config
from .models import ApplicationRecord, Message

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

ROLE_KEYWORDS = re.compile(
    r"\b(?:intern|internship|co.?op|coop|technician|engineer|developer|analyst|"
    r"assistant|specialist|coordinator|manager|director|consultant|advisor|"
    r"representative|associate|clerk)\b",
    re.IGNORECASE,
)

# Captures that name no role at all ("for consideration", "for the position").
NON_ROLES = {
    "consideration",
    "employment",
    "a position",
    "a role",
    "this position",
    "this role",
    "the position",
    "the role",
    "our team",
    "this opportunity",
    "the opportunity",
    "unknown",
}

# Applicant tracking systems and job boards; their mail domain says nothing
# about the employer.
ATS_NAMES = [
    "myworkday",
    "workday",
    "greenhouse",
    "lever",
    "smartrecruiters",
    "successfactors",
    "workable",
    "icims",
    "oraclecloud",
    "taleo",
    "ultipro",
    "adp",
    "bamboohr",
    "jazzhr",
    "jobvite",
    "ashbyhq",
    "breezy",
    "recruitee",
    "recruiterbox",
    "pinpointhq",
    "applytojob",
    "paylocity",
    "paycom",
    "dayforce",
    "ceridian",
    "linkedin",
    "indeed",
    "ziprecruiter",
    "glassdoor",
    "wellfound",
    "hire",
]

GENERIC_MAIL_NAMES = {
    "google",
    "gmail",
    "googlemail",
    "yahoo",
    "outlook",
    "hotmail",
    "live",
    "icloud",
    "aol",
    "protonmail",
    "proton",
    "zoho",
    "yandex",
    "mail",
    "email",
    "noreply",
    "no-reply",
    "donotreply",
    "do-not-reply",
    "info",
    "support",
    "admin",
    "help",
    "contact",
    "hello",
    "hi",
    "notification",
    "notifications",
    "jobs",
    "careers",
    "talent",
    "recruiting",
    "recruitment",
    "hr",
    "team",
}

NO_REPLY = re.compile(r"no[-_.\s]?reply|do[-_.\s]?not[-_.\s]?reply|\binfo\b|\bsupport\b|notification", re.IGNORECASE)

COMPANY_NOISE = re.compile(
    r"\b(?:Careers?|Recruiting|Recruitment|Talent(?:\s+Acquisition)?|HR|Human\s+Resources|Hiring\s+Team|Team)\b",
    re.IGNORECASE,
)

# Capitalised words that start sentences or name roles rather than employers.
NOT_A_COMPANY = {
    "the",
    "our",
    "your",
    "this",
    "that",
    "a",
    "an",
    "we",
    "you",
    "thank",
    "thanks",
    "application",
    "applications",
    "position",
    "role",
    "job",
    "software",
    "hardware",
    "data",
    "research",
    "mechanical",
    "electrical",
    "summer",
    "spring",
    "fall",
    "winter",
    "unknown",
}

SPRING_MONTHS = ("jan", "feb", "mar", "apr", "may")
SUMMER_MONTHS = ("jun", "jul", "aug")

RECEIVED_PHRASES = ("we have received your application", "we've received your application")


def strip_html(text: str) -> str:
    """Convert HTML to plain text, keeping paragraph breaks."""
    text = re.sub(r"<style[\s\S]*?</style>", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"<script[\s\S]*?</script>", " ", text, flags=re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"</?(?:p|div|tr|li)[^>]*>", "\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" ?\n\s*", "\n", text)
    return text.strip()


def safe_plain_text(plain: Optional[str], html_body: Optional[str]) -> str:
    """Prefer the plain-text part; fall back to sanitised HTML."""
    if plain and plain.strip():
        return plain
    return strip_html(html_body or "")


def _first_match(rules: list[tuple[str, str]], flags: int = re.IGNORECASE) -> Optional[str]:
    for text, pattern in rules:
        match = re.search(pattern, text, flags)
        if match:
            return match.group(1)
    return None


# --------------------------------------------------------------------------
# Role
# --------------------------------------------------------------------------

_TRAILING_PAREN = re.compile(r"\s*\([^()]*\)\s*$")
_TRAILING_OPEN_PAREN = re.compile(r"\s*\([^()]*$")
_TRAILING_CODE = re.compile(r"\s+[-–—_/.,+:|#]\s*[A-Za-z]{0,4}[-_]?\d[\w-]*$")
_LEADING_CODE = re.compile(r"^[A-Za-z]{0,4}[-_]?\d[\w-]*\s+[-–—|:]\s+")
_EDGE_PUNCT = re.compile(r"^[\s\-–—_/.,+:|'\"’]+|[\s\-–—_/,+:|(]+$")


def normalize_role(role: Optional[str]) -> str:
    """Strip requisition codes, a trailing parenthetical and extra spaces.

    Runs to a fixed point, so normalizing twice changes nothing.
    """
    if not role:
        return UNKNOWN
    value = re.sub(r"\s+", " ", str(role)).strip()
    previous = None
    while value != previous:
        previous = value
        value = _TRAILING_PAREN.sub("", value)
        value = _TRAILING_OPEN_PAREN.sub("", value)
        value = _TRAILING_CODE.sub("", value)
        value = _LEADING_CODE.sub("", value)
        value = _EDGE_PUNCT.sub("", value).strip()
    return value or UNKNOWN


def _clean_role(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    role = normalize_role(raw)
    if role.lower() in NON_ROLES:
        return None
    return role


def _role_from_subject_segments(subject: str) -> Optional[str]:
    if not ROLE_KEYWORDS.search(subject):
        return None
    for segment in re.split(r"[^a-zA-Z0-9\s\-]", subject):
        segment = segment.strip()
        if len(segment) > 5 and ROLE_KEYWORDS.search(segment):
            return segment
    return None


def extract_role(subject: str, body: str, sender: str = "") -> str:
    """Extract the job title from an application confirmation."""
    subject = subject or ""
    body = body or ""
    text = f"{subject}\n{body}"
    dash = r"[-–—|]"

    ordered = [
        # "Application received – Acme – Software Engineer"
        [(subject, rf"Application (?:received|submitted)\s*{dash}\s*[^\n]+?\s{dash}\s*([^.\n]+)")],
        # "Thanks for applying to Acme – Data Analyst"
        [(subject, rf"Thanks for applying to [^\n]*?\s{dash}\s*([^.\n]+)")],
        [(text, r"application to [^.\n]+? for (?:the |our )?([^.\n]+?)(?:\s+(?:position|role|opening))?(?:[.!\n]|$)")],
        [(body, r"received your (?:job )?application for (?:the |our )?([^.\n]+?)(?:\s+(?:position|role|opening))?(?:[.!\n]|$)")],
        [(text, r"(?:Position|Job Title)\s*:\s*([^.\n]+)")],
        # Workday: "Job Application: Req - 4010 - Software Engineer Co-Op (Jan 2026 Start)"
        [(text, r"Job Application:[^\n]*?-\s*\d{3,8}\s*-\s*([^(\n]+)\(")],
        [(body, r"Your application for ([^.\n]+?) is on the way")],
        [(subject, r"Application (?:Received|Submitted)\s*:\s*([^.\n]+)")],
    ]
    for rules in ordered:
        role = _clean_role(_first_match(rules))
        if role:
            return role

    role = _clean_role(_role_from_subject_segments(subject))
    if role:
        return role

    role = _clean_role(_first_match([(body, r"\b(?:position|role|job|title)(?:\s*:|\s+-\s+)\s*([^.\n\r]+)")]))
    if role:
        return role

    signature = re.search(r"(?:Best regards|Sincerely|Thanks)[^\n]*\n([^.\n]+)", body, re.IGNORECASE)
    if signature and ROLE_KEYWORDS.search(signature.group(1)):
        role = _clean_role(signature.group(1))
        if role:
            return role

    lowered = body.lower()
    if any(phrase in lowered for phrase in RECEIVED_PHRASES):
        for pattern in (
            r"\b(?:position|role|job|title|opportunity)\s+(?:of|as)\s+(?:an?\s+|the\s+)?([^.\n]+)",
            r"(?:interested in|looking for|applying for)\s+(?:an?\s+|the\s+)?([^.\n]+)",
        ):
            match = re.search(pattern, body, re.IGNORECASE)
            if match and ROLE_KEYWORDS.search(match.group(1)):
                role = _clean_role(match.group(1))
                if role:
                    return role

    logger.debug(f"No role found in: {subject[:50]}")
    return UNKNOWN


# --------------------------------------------------------------------------
# Company
# --------------------------------------------------------------------------


def _is_ats_domain(label: str) -> bool:
    label = label.lower()
    return any(ats in label for ats in ATS_NAMES)


def _is_ats_name(name: str) -> bool:
    return any(word in ATS_NAMES for word in re.split(r"[^a-z0-9]+", name.lower()))


def _is_generic(name: str) -> bool:
    tokens = [t for t in re.split(r"[-_.\s]+", name.lower()) if t]
    return not tokens or all(t in GENERIC_MAIL_NAMES for t in tokens) or bool(NO_REPLY.search(name))


def clean_company(raw: Optional[str]) -> Optional[str]:
    """Trim noise around a company candidate; None when nothing useful is left."""
    if not raw:
        return None
    company = re.sub(r"\s+via\s+.+$", "", raw.strip(), flags=re.IGNORECASE)
    company = COMPANY_NOISE.sub(" ", company)
    company = re.sub(r"^(?:the|at)\s+", "", company.strip(), flags=re.IGNORECASE)
    company = re.sub(r"\s+", " ", company).strip(" \t\"'.,!:;-–—|@")
    if len(company) < 2 or len(company) >= 50:
        return None
    if company.lower() in NOT_A_COMPANY or _is_generic(company):
        return None
    return company


def _company_from_display_name(sender: str) -> Optional[str]:
    display, address = parseaddr(sender or "")
    display = display.strip().strip('"')
    if not display or "@" in display or NO_REPLY.search(display):
        return None
    # '"Acme" via Greenhouse' names the employer before "via".
    via = re.match(r"(.+?)\s+via\s+.+$", display, re.IGNORECASE)
    if via:
        display = via.group(1)
    company = clean_company(display)
    if company is None or _is_ats_name(company):
        return None
    return company


def _company_from_domain(sender: str) -> Optional[str]:
    _, address = parseaddr(sender or "")
    if "@" not in address:
        return None
    labels = [label for label in address.split("@", 1)[1].lower().split(".") if label]
    if len(labels) < 2 or any(_is_ats_domain(label) for label in labels):
        return None
    name = labels[-2]
    if len(name) <= 2 or _is_generic(name):
        return None
    return re.sub(r"[-_]+", " ", name).title()


def _company_from_local_part(sender: str) -> Optional[str]:
    _, address = parseaddr(sender or "")
    local = address.split("@", 1)[0] if "@" in address else ""
    if not (3 < len(local) <= 20) or _is_generic(local):
        return None
    return re.sub(r"[-_.]+", " ", local).title()


def extract_company(sender: str, subject: str, body: str) -> str:
    """Extract the employer name, most specific source first."""
    subject = subject or ""
    body = body or ""
    text = f"{subject}\n{body}"

    company = _company_from_display_name(sender)
    if company:
        return company

    ordered = [
        (subject, r"Thank you for your application to ([^.\n!]+)"),
        (subject, r"Application (?:received|submitted)\s*[-–—|]\s*([^\n]+?)\s[-–—|]"),
        (text, r"Thanks? (?:you )?for applying to ([^\n–—-]+?)(?:\s*[-–—]|\s+for\b|[.!,]|\n|$)"),
        (text, r"application to ([^.\n]+?) for [^\n.()]+"),
    ]
    for source, pattern in ordered:
        company = clean_company(_first_match([(source, pattern)]))
        if company:
            return company

    if any(phrase in body.lower() for phrase in RECEIVED_PHRASES):
        for pattern in (
            r"\b(?:at|with|to join)\s+([A-Z][A-Za-z0-9&]*(?:\s+[A-Z][A-Za-z0-9&]*)*)",
            r"\b[Tt]he\s+([A-Z][A-Za-z0-9&]*(?:\s+[A-Z][A-Za-z0-9&]*)*?)\s+(?:Recruiting\s+|Recruitment\s+|Talent\s+|Hiring\s+)?Team\b",
        ):
            for match in re.finditer(pattern, body):
                company = clean_company(match.group(1))
                if company:
                    return company

    match = re.search(r"Careers at ([A-Za-z0-9 &\-.']+?)(?=\s*(?:[,\n!]|\.(?:\s|$)|$))", body, re.IGNORECASE)
    if match:
        company = clean_company(match.group(1))
        if company:
            return company

    match = re.search(
        r"(?:Thanks|Sincerely|Regards|All the best)[^\n]*\n\s*([A-Za-z0-9 &\-.']+?)\s*(?=[,\n]|$)",
        body,
        re.IGNORECASE,
    )
    if match and not ROLE_KEYWORDS.search(match.group(1)):
        company = clean_company(match.group(1))
        if company:
            return company

    for pattern in (
        r"\b(?:at|for|to)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)",
        r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+(?:Intern|Co-?op|Coop|Technician|Engineer)",
    ):
        for match in re.finditer(pattern, subject):
            words = match.group(1).lower().split()
            if any(word in NOT_A_COMPANY for word in words):
                continue
            company = clean_company(match.group(1))
            if company and not _is_ats_name(company):
                return company

    company = _company_from_domain(sender) or _company_from_local_part(sender)
    if company:
        return company

    logger.debug(f"No company found for sender {sender!r}")
    return UNKNOWN


# --------------------------------------------------------------------------
# Term and location
# --------------------------------------------------------------------------

_SEASON_YEAR = re.compile(r"\b(Spring|Summer|Fall|Winter)\s?(20\d{2})\b", re.IGNORECASE)
_MONTH_YEAR = re.compile(
    r"\b(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?|"
    r"Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?\s*\.?\s*(20\d{2})\b",
    re.IGNORECASE,
)
_YEAR_ROUND = re.compile(r"\byear[-\s]?round\b", re.IGNORECASE)


def season_for_month(month: str) -> str:
    month = month.lower()[:3]
    if month in SPRING_MONTHS:
        return "Spring"
    if month in SUMMER_MONTHS:
        return "Summer"
    return "Fall"


def extract_term(subject: str, body: str, today: Optional[date] = None) -> Optional[str]:
    """Extract the internship/co-op term, e.g. "Fall 2026"."""
    text = f"{subject or ''}\n{body or ''}"

    match = _SEASON_YEAR.search(text)
    if match:
        return f"{match.group(1).capitalize()} {match.group(2)}"

    match = _MONTH_YEAR.search(text)
    if match:
        return f"{season_for_month(match.group(1))} {match.group(2)}"

    if _YEAR_ROUND.search(text):
        year = re.search(r"\b20\d{2}\b", text)
        return f"Year-Round {year.group(0) if year else (today or date.today()).year}"

    return None


def extract_location(subject: str, body: str, sender: str = "") -> Optional[str]:
    """Extract a work location from labelled lines or "based in City, ST".

    Only the body carries a location; the subject and sender are accepted so
    every extractor takes the same arguments.
    """
    text = body or ""
    for pattern in (
        r"(?i:Location)\s*:\s*([^\n]+)",
        r"(?i:\bbased in)\s+([A-Za-z .\-]+,\s*[A-Z]{2})\b",
        r"(?i:\b(?:work|primary) location)\s*:\s*([^\n]+)",
    ):
        match = re.search(pattern, text)
        if match:
            location = match.group(1).strip().rstrip(".,;")
            if location and len(location) <= 100:
                return location
    return None


def build_candidate(message: Message, thread_id: Optional[str], config: Config, today: Optional[date] = None) -> ApplicationRecord:
    """Run every extractor over a message and fill defaults for misses."""
    subject = message.subject or ""
    body = message.body or ""
    sender = message.sender or ""

    role = normalize_role(extract_role(subject, body, sender))
    company = extract_company(sender, subject, body)
    term = extract_term(subject, body, today)
    location = extract_location(subject, body, sender)

    placeholders = set()
    if role == UNKNOWN:
        placeholders.add("role")
    if company == UNKNOWN:
        placeholders.add("company")
    if term is None:
        placeholders.add("term")
    if location is None:
        placeholders.add("location")

    if message.date is not None:
        applied = message.date.astimezone().date() if message.date.tzinfo else message.date.date()
    else:
        applied = today or date.today()

    candidate = ApplicationRecord(
        progress=config.progress_value,
        role=role if role != UNKNOWN else config.unknown,
        company=company if company != UNKNOWN else config.unknown,
        term=term or config.default_term,
        location=location or config.default_location,
        date_applied=applied.isoformat(),
        platform=config.platform,
        thread_id=thread_id,
        placeholders=placeholders,
    )
    logger.info(
        f'Parsed: role="{candidate.role}", company="{candidate.company}", '
        f'term="{candidate.term}", location="{candidate.location}"'
    )
    return candidate
