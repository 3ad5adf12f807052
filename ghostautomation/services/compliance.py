"""
Compliance Validator - mandatory checks run against queue items.

Five checks, all configured in ComplianceConfig.mandatory_checks:
    uk_asa_advertising_disclosure      missing ad disclosure   -> NON_COMPLIANT
    tiktok_affiliate_terms             missing affiliate note  -> NON_COMPLIANT
    privacy_data_protection            email / phone in script -> NON_COMPLIANT
    traffic_quality_standards          engagement bait         -> REQUIRES_REVIEW
    content_authenticity_verification  unverified health claim -> REQUIRES_REVIEW

Disclosure checks use the permissive substring vocabulary ('ad' also
matches 'made'); see core/disclosures.py.
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from ..core.config import ComplianceConfig
from ..core.disclosures import (
    has_advertising_disclosure,
    has_affiliate_disclosure,
    script_text,
)
from ..core.models import (
    MANDATORY_DISCLOSURES,
    Change,
    ChangeTarget,
    ComplianceStatus,
    ComplianceValidation,
    QueueItem,
    VideoStatus,
)

logger = logging.getLogger(__name__)

MISSING_DISCLOSURES_ISSUE = "Missing mandatory disclosure elements"
DISCLOSURE_FIELD = "disclosure"

EMAIL_PATTERN = re.compile(r'[\w.+-]+@[\w-]+\.[\w.-]+')
PHONE_PATTERN = re.compile(r'(?<!\d)(?:\+?\d{1,3}[\s.-])?\(?\d{3}\)?[\s.-]\d{3}[\s.-]\d{4}(?!\d)')

# (issues, review flags)
CheckResult = Tuple[List[str], List[str]]

STATUS_FOR_COMPLIANCE: Dict[ComplianceStatus, VideoStatus] = {
    ComplianceStatus.COMPLIANT: VideoStatus.READY_FOR_PREVIEW,
    ComplianceStatus.REQUIRES_REVIEW: VideoStatus.COMPLIANCE_REVIEW,
    ComplianceStatus.NON_COMPLIANT: VideoStatus.REQUIRES_FIXES,
    ComplianceStatus.PENDING_APPROVAL: VideoStatus.COMPLIANCE_REVIEW,
}


def status_for(compliance: ComplianceStatus) -> VideoStatus:
    """Queue status a validation outcome drives the item to."""
    return STATUS_FOR_COMPLIANCE[compliance]


class ComplianceValidator:
    """Runs the configured mandatory checks."""

    def __init__(self, config: Optional[ComplianceConfig] = None):
        self.config = config or ComplianceConfig()
        self.vocabulary = self.config.disclosure_vocabulary
        self._checks: Dict[str, Callable[[str], CheckResult]] = {
            "uk_asa_advertising_disclosure": self._check_advertising_disclosure,
            "tiktok_affiliate_terms": self._check_affiliate_terms,
            "privacy_data_protection": self._check_privacy,
            "traffic_quality_standards": self._check_traffic_quality,
            "content_authenticity_verification": self._check_authenticity,
        }
        self._claim_patterns = [
            (claim, re.compile(r'(?<![a-z0-9])' + re.escape(claim.lower()) + r'(?![a-z0-9])'))
            for claim in self.config.unverified_claims
        ]

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def _check_advertising_disclosure(self, text: str) -> CheckResult:
        if has_advertising_disclosure(text, self.vocabulary):
            return [], []
        return ["Missing advertising disclosure (UK ASA)"], []

    def _check_affiliate_terms(self, text: str) -> CheckResult:
        if has_affiliate_disclosure(text, self.vocabulary):
            return [], []
        return ["Missing affiliate disclosure (TikTok affiliate terms)"], []

    def _check_privacy(self, text: str) -> CheckResult:
        issues = []
        if EMAIL_PATTERN.search(text):
            issues.append("Script exposes an email address")
        if PHONE_PATTERN.search(text):
            issues.append("Script exposes a phone number")
        return issues, []

    def _check_traffic_quality(self, text: str) -> CheckResult:
        flags = [
            f"Engagement bait requires review: '{phrase}'"
            for phrase in self.config.engagement_bait_phrases
            if phrase.lower() in text
        ]
        return [], flags

    def _check_authenticity(self, text: str) -> CheckResult:
        flags = [
            f"Unverified claim requires review: '{claim}'"
            for claim, pattern in self._claim_patterns
            if pattern.search(text)
        ]
        return [], flags

    # ------------------------------------------------------------------
    # Validations
    # ------------------------------------------------------------------

    def _run(self, item: QueueItem) -> Tuple[List[str], List[str]]:
        text = script_text(item.script_content)
        issues: List[str] = []
        flags: List[str] = []
        for name in self.config.mandatory_checks:
            check_issues, check_flags = self._checks[name](text)
            issues.extend(check_issues)
            flags.extend(check_flags)
        return issues, flags

    def _validation(self, status: ComplianceStatus, issues: List[str], flags: List[str]) -> ComplianceValidation:
        score = 1.0 - 0.2 * len(issues) - 0.05 * len(flags)
        return ComplianceValidation(
            overall_status=status,
            issues_found=issues + flags,
            disclosures_required=list(MANDATORY_DISCLOSURES),
            checks_performed=list(self.config.mandatory_checks),
            compliance_score=max(0.0, min(1.0, score)),
        )

    def precheck(self, item: QueueItem) -> ComplianceValidation:
        """
        Check run when an item enters the queue.

        Findings are recorded but the outcome is always REQUIRES_REVIEW:
        nothing has been generated yet.
        """
        issues, flags = self._run(item)
        return self._validation(ComplianceStatus.REQUIRES_REVIEW, issues, flags)

    def full_validation(self, item: QueueItem) -> ComplianceValidation:
        """All mandatory checks. Issues beat review flags."""
        issues, flags = self._run(item)
        if issues:
            status = ComplianceStatus.NON_COMPLIANT
        elif flags:
            status = ComplianceStatus.REQUIRES_REVIEW
        else:
            status = ComplianceStatus.COMPLIANT
        return self._validation(status, issues, flags)

    def post_generation_check(self, item: QueueItem) -> ComplianceValidation:
        return self.full_validation(item)

    def final_check(self, item: QueueItem) -> ComplianceValidation:
        """Full validation plus the disclosure gate applied at approval."""
        validation = self.full_validation(item)
        if not self.has_all_mandatory_disclosures(item):
            validation.issues_found.append(MISSING_DISCLOSURES_ISSUE)
            validation.overall_status = ComplianceStatus.NON_COMPLIANT
        return validation

    # ------------------------------------------------------------------
    # Disclosures
    # ------------------------------------------------------------------

    def has_all_mandatory_disclosures(self, item: QueueItem) -> bool:
        text = script_text(item.script_content)
        return has_advertising_disclosure(text, self.vocabulary) and has_affiliate_disclosure(text, self.vocabulary)

    def disclosure_change(self, item: QueueItem) -> Optional[Change]:
        """The change inserting the advertising disclosure, if the script lacks one."""
        if has_advertising_disclosure(script_text(item.script_content), self.vocabulary):
            return None
        return Change(
            target=ChangeTarget.SCRIPT,
            field=DISCLOSURE_FIELD,
            value=self.config.advertising_disclosure_text,
        )
