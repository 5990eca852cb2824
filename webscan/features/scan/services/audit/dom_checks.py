import logging
from typing import List

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from webscan.features.scan.schemas.audit_report import CustomFinding

logger = logging.getLogger(__name__)

SNIPPET_MAX_LENGTH = 300
MAX_ELEMENTS_PER_CHECK = 20


class DomAccessibilityChecks:
    """
    Accessibility checks run directly against the rendered DOM, complementing
    the Lighthouse audits. Each check reports offending elements as HTML
    snippets.
    """

    @staticmethod
    def _snippet(element) -> str:
        html = (element.get_attribute("outerHTML") or "").strip()
        # Keep only the opening tag for large containers
        if len(html) > SNIPPET_MAX_LENGTH and ">" in html:
            html = html[: html.index(">") + 1]
        return html

    @staticmethod
    def _text(element, *attributes: str) -> str:
        label = (element.text or "").strip()
        for attribute in attributes:
            if label:
                break
            label = (element.get_attribute(attribute) or "").strip()
        return label

    @staticmethod
    def images_missing_alt(driver: webdriver.Chrome) -> List[str]:
        flagged = []
        for img in driver.find_elements(By.TAG_NAME, "img"):
            # alt="" is valid for decorative images; only a missing attribute is flagged
            if img.get_attribute("alt") is None and img.get_attribute("role") != "presentation":
                flagged.append(DomAccessibilityChecks._snippet(img))
        return flagged

    @staticmethod
    def inputs_missing_label(driver: webdriver.Chrome) -> List[str]:
        flagged = []
        for inp in driver.find_elements(By.CSS_SELECTOR, "input, textarea, select"):
            itype = (inp.get_attribute("type") or "").lower()
            if itype in {"hidden", "button", "submit", "reset", "image"}:
                continue
            has_label = bool(
                (inp.get_attribute("aria-label") or "").strip()
                or (inp.get_attribute("aria-labelledby") or "").strip()
                or (inp.get_attribute("title") or "").strip()
            )
            # label[for]
            input_id = inp.get_attribute("id")
            if not has_label and input_id:
                has_label = bool(driver.find_elements(By.CSS_SELECTOR, f"label[for='{input_id}']"))
            # wrapped label
            if not has_label:
                has_label = bool(inp.find_elements(By.XPATH, "ancestor::label[1]"))
            if not has_label:
                flagged.append(DomAccessibilityChecks._snippet(inp))
        return flagged

    @staticmethod
    def buttons_missing_name(driver: webdriver.Chrome) -> List[str]:
        flagged = []
        for btn in driver.find_elements(By.CSS_SELECTOR, "button, input[type='button'], input[type='submit'], input[type='reset']"):
            if not DomAccessibilityChecks._text(btn, "value", "aria-label", "aria-labelledby", "title"):
                flagged.append(DomAccessibilityChecks._snippet(btn))
        return flagged

    @staticmethod
    def links_missing_text(driver: webdriver.Chrome) -> List[str]:
        flagged = []
        for link in driver.find_elements(By.CSS_SELECTOR, "a[href]"):
            if DomAccessibilityChecks._text(link, "aria-label", "aria-labelledby", "title"):
                continue
            # icon links labelled by an image's alt text
            labelled_images = [
                img for img in link.find_elements(By.TAG_NAME, "img")
                if (img.get_attribute("alt") or "").strip()
            ]
            if not labelled_images:
                flagged.append(DomAccessibilityChecks._snippet(link))
        return flagged

    CHECKS = (
        (
            "custom-image-alt",
            "Images Missing Alt Attribute",
            "Images need an alt attribute so screen readers can describe them.",
            "images_missing_alt",
        ),
        (
            "custom-form-label",
            "Form Controls Without Labels",
            "Form controls need an associated label, aria-label or title.",
            "inputs_missing_label",
        ),
        (
            "custom-button-name",
            "Buttons Without Accessible Names",
            "Buttons need visible text, a value, or an aria-label.",
            "buttons_missing_name",
        ),
        (
            "custom-link-text",
            "Links Without Discernible Text",
            "Links need text, an aria-label, or a labelled image so their purpose is clear.",
            "links_missing_text",
        ),
    )

    @staticmethod
    def run_all(driver: webdriver.Chrome) -> List[CustomFinding]:
        """
        Run every check against the focused page. A check that fails is logged
        and contributes no finding.
        """
        findings: List[CustomFinding] = []
        for check_id, title, description, method in DomAccessibilityChecks.CHECKS:
            try:
                elements = getattr(DomAccessibilityChecks, method)(driver)
            except WebDriverException as e:
                logger.warning(f"DOM check {check_id} failed: {e}")
                continue
            if elements:
                findings.append(
                    CustomFinding(
                        check_id=check_id,
                        title=title,
                        description=description,
                        elements=elements[:MAX_ELEMENTS_PER_CHECK],
                    )
                )
        return findings
