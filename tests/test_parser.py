"""Tests for field extraction."""

from datetime import date, datetime

import pytest

from tracker.models import Message
from tracker.parser import (
    build_candidate,
    extract_company,
    extract_location,
    extract_role,
    extract_term,
    normalize_role,
    safe_plain_text,
    strip_html,
)


class TestRoleExtraction:
    """Ordered role rules, first match wins."""

    def test_workday_job_application_line(self):
        body = "Job Application: Req - 4010 - Software Engineer Co-Op (Jan 2026 Start)"
        assert extract_role("", body) == "Software Engineer Co-Op"

    def test_application_received_subject(self):
        subject = "Application received – Acme – Software Engineer Intern"
        assert extract_role(subject, "") == "Software Engineer Intern"

    def test_thanks_for_applying_subject(self):
        assert extract_role("Thanks for applying to Acme – Data Analyst", "") == "Data Analyst"

    def test_application_to_company_for_role(self):
        body = "Thank you for your application to Acme for the Software Engineer Intern position."
        assert extract_role("", body) == "Software Engineer Intern"

    def test_position_label(self):
        assert extract_role("", "Position: Data Scientist\nLocation: Remote") == "Data Scientist"

    def test_on_the_way(self):
        assert extract_role("", "Your application for Product Analyst is on the way!") == "Product Analyst"

    def test_application_received_colon_subject(self):
        assert extract_role("Application Received: Marketing Coordinator", "") == "Marketing Coordinator"

    def test_subject_keyword_segment(self):
        assert extract_role("Hardware Technician Co-op | Acme", "") == "Hardware Technician Co-op"

    def test_received_application_last_resort(self):
        body = "We have received your application. You applied for the role as Junior Analyst."
        assert extract_role("", body) == "Junior Analyst"

    def test_unmatched_text_is_unknown(self):
        assert extract_role("Thank you", "We got it.") == "Unknown"

    def test_generic_for_clause_is_not_a_role(self):
        body = "Thank you for submitting your application to Acme for consideration."
        assert extract_role("", body) == "Unknown"

    def test_application_to_does_not_cross_sentences(self):
        body = "Thank you for your application to the Data Analyst role. We will be in touch for next steps."
        assert extract_role("Your application", body) == "Unknown"


class TestNormalizeRole:
    """Role clean-up is stable."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Software Engineer Co-Op (Jan 2026 Start)", "Software Engineer Co-Op"),
            ("Data Analyst Intern - 4010", "Data Analyst Intern"),
            ("R-1234 - Backend Engineer", "Backend Engineer"),
            ("  Data   Analyst  ", "Data Analyst"),
            ("Software Engineer Co-Op (Jan 2026", "Software Engineer Co-Op"),
            ("", "Unknown"),
            (None, "Unknown"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_role(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "Software Engineer Co-Op (Jan 2026 Start) - 4010",
            "QA Tester, 2026 (Remote) (Paid)",
            " - Intern - ",
            "Unknown",
        ],
    )
    def test_idempotent(self, raw):
        once = normalize_role(raw)
        assert normalize_role(once) == once


class TestCompanyExtraction:
    """Company rules from sender, subject and body."""

    def test_display_name_without_suffix(self):
        assert extract_company("LiveRamp Careers <no-reply@myworkday.com>", "", "") == "LiveRamp"

    def test_subject_thank_you_for_your_application(self):
        sender = "no-reply@myworkday.com"
        subject = "Thank you for your application to Acme Robotics"
        assert extract_company(sender, subject, "") == "Acme Robotics"

    def test_thanks_for_applying_body(self):
        assert extract_company("no-reply@greenhouse.io", "", "Thanks for applying to Globex!") == "Globex"

    def test_careers_at(self):
        body = "Explore Careers at Umbrella Labs, where we build things."
        assert extract_company("no-reply@icims.com", "", body) == "Umbrella Labs"

    def test_domain_fallback_title_cased(self):
        assert extract_company("jobs@acme-corp.com", "Hello", "") == "Acme Corp"

    def test_ats_display_name_is_rejected(self):
        assert extract_company("Workday <no-reply@myworkday.com>", "Thank you", "We received it.") == "Unknown"

    def test_application_to_does_not_cross_sentences(self):
        body = "Thank you for your application to the Data Analyst role. We will be in touch for next steps."
        assert extract_company("no-reply@myworkday.com", "Your application", body) == "Unknown"

    def test_application_to_company_for_role(self):
        body = "Thank you for your application to Initech for the QA Intern position."
        assert extract_company("no-reply@myworkday.com", "", body) == "Initech"

    @pytest.mark.parametrize("sender", ["no-reply@myworkday.com", "notifications@greenhouse-mail.io"])
    def test_ats_senders_without_clues_are_unknown(self, sender):
        assert extract_company(sender, "Thank you", "We received it.") == "Unknown"


class TestTermExtraction:
    """Season detection."""

    def test_month_range_maps_to_spring(self):
        assert extract_term("", "Co-op term (January 2025 - May 2025)") == "Spring 2025"

    def test_explicit_season(self):
        assert extract_term("Summer 2026 Internship", "") == "Summer 2026"

    def test_explicit_season_is_capitalized(self):
        assert extract_term("", "for our fall 2026 cohort") == "Fall 2026"

    def test_june_is_summer(self):
        assert extract_term("", "Starts Jun 2026") == "Summer 2026"

    def test_september_abbreviation_is_fall(self):
        assert extract_term("", "Start date: Sept. 2026") == "Fall 2026"

    def test_year_round_uses_year_in_text(self):
        assert extract_term("", "This is a year-round position starting 2027") == "Year-Round 2027"

    def test_year_round_defaults_to_current_year(self):
        assert extract_term("", "A year round role", today=date(2026, 3, 1)) == "Year-Round 2026"

    def test_no_term(self):
        assert extract_term("Thanks", "") is None


class TestLocationExtraction:
    def test_location_label(self):
        assert extract_location("", "Location: Austin, TX\nMore text") == "Austin, TX"

    def test_based_in(self):
        assert extract_location("", "The role is based in Denver, CO.") == "Denver, CO"

    def test_primary_location(self):
        assert extract_location("", "Primary Location: Remote") == "Remote"

    def test_none(self):
        assert extract_location("", "Nothing useful here") is None


class TestBodies:
    def test_strip_html(self):
        html = "<p>Hello&nbsp;there</p><style>.a{}</style><br>World"
        assert strip_html(html) == "Hello there\nWorld"

    def test_plain_preferred(self):
        assert safe_plain_text("plain", "<b>x</b>") == "plain"

    def test_blank_plain_falls_back_to_html(self):
        assert safe_plain_text("   ", "<b>x</b>") == "x"


class TestBuildCandidate:
    def test_fields_from_message(self, acme_message, config):
        acme_message.date = datetime(2026, 1, 5, 12, 0)
        candidate = build_candidate(acme_message, "T1", config)

        assert candidate.role == "Software Engineer Intern"
        assert candidate.company == "Acme"
        assert candidate.term == "Summer 2026"
        assert candidate.location == "Austin, TX"
        assert candidate.date_applied == "2026-01-05"
        assert candidate.thread_id == "T1"
        assert candidate.platform == "Email"
        assert candidate.placeholders == set()

    def test_defaults_are_marked_as_placeholders(self, config):
        message = Message(subject="Thanks", body="", sender="no-reply@myworkday.com")
        candidate = build_candidate(message, "T2", config, today=date(2026, 2, 1))

        assert candidate.role == "Unknown"
        assert candidate.company == "Unknown"
        assert candidate.term == "Spring 2026"
        assert candidate.location == "Not Specified"
        assert candidate.date_applied == "2026-02-01"
        assert candidate.placeholders == {"role", "company", "term", "location"}
