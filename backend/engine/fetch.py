import re
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from backend.core import settings
from backend.engine.stream import app_logger

ATTENDANCE_CELL_PATTERN = re.compile(r"(\d+)/(\d+)")


class AuthenticationError(Exception):
    """Raised when authentication with the ETLab portal fails."""

    pass


class AttendanceScrapingError(Exception):
    """Raised when attendance data scraping encounters an error."""

    pass


class ETLabAttendanceScraper:
    USERNAME_FIELD_ID = "LoginForm_username"
    PASSWORD_FIELD_ID = "LoginForm_password"
    SUBMIT_BUTTON_NAME = "yt0"
    DASHBOARD_MARKER_ID = "breadcrumb"

    ATTENDANCE_LINK_TEXT = "Attendance"
    SUBJECT_LINK_TEXT = "Attendance By Subject"

    # Leading roll/name columns and trailing total/percentage columns
    LEADING_COLUMNS = 3
    TRAILING_COLUMNS = 2

    def __init__(
        self,
        username: str,
        password: str,
        login_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.session = session or requests.Session()
        self.username = username
        self.password = password
        self.login_url = login_url or settings.LOGIN_URL
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS

        # Last page seen, used for navigation and error snapshots
        self.last_url: Optional[str] = None
        self.last_page: Optional[str] = None

    def _remember(self, response: requests.Response) -> str:
        self.last_url = response.url or self.last_url
        self.last_page = response.text
        return response.text

    def _get(self, url: str) -> str:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return self._remember(response)

    def _build_login_payload(self, html_content: str) -> Tuple[str, Dict[str, str]]:
        soup = BeautifulSoup(html_content, "html.parser")
        username_input = soup.find("input", {"id": self.USERNAME_FIELD_ID})
        password_input = soup.find("input", {"id": self.PASSWORD_FIELD_ID})

        if not username_input or not password_input:
            raise AuthenticationError("Login form not found on login page")

        form = username_input.find_parent("form")
        payload: Dict[str, str] = {}

        # Keep hidden fields such as the CSRF token
        if form is not None:
            for field in form.find_all("input"):
                name = field.get("name")
                if not name or field.get("type") in ("submit", "button", "checkbox"):
                    continue
                payload[name] = field.get("value", "")

        payload[username_input.get("name", "LoginForm[username]")] = self.username
        payload[password_input.get("name", "LoginForm[password]")] = self.password

        submit_button = soup.find(attrs={"name": self.SUBMIT_BUTTON_NAME})
        payload[self.SUBMIT_BUTTON_NAME] = (
            submit_button.get("value", "") if submit_button else ""
        )

        action = form.get("action") if form is not None else None
        return urljoin(self.login_url, action or ""), payload

    def login(self) -> None:
        app_logger.info(f"Initiating authentication for user: {self.username[:4]}***")

        try:
            login_page = self._get(self.login_url)
            action_url, login_payload = self._build_login_payload(login_page)

            response = self.session.post(
                action_url, data=login_payload, timeout=self.timeout
            )
            response.raise_for_status()
            dashboard = self._remember(response)

        except requests.RequestException as e:
            raise AuthenticationError(f"Network error during authentication: {e}")

        soup = BeautifulSoup(dashboard, "html.parser")
        if soup.find(id=self.DASHBOARD_MARKER_ID) is None:
            raise AuthenticationError("Authentication failed: Invalid credentials")

        app_logger.info("Authentication successful")

    def _follow_link(self, html_content: str, link_text: str) -> str:
        soup = BeautifulSoup(html_content, "html.parser")

        for link in soup.find_all("a", href=True):
            if link.get_text(" ", strip=True) == link_text:
                app_logger.info(f"Following '{link_text}' link")
                return self._get(urljoin(self.last_url or self.login_url, link["href"]))

        raise AttendanceScrapingError(
            f"Link '{link_text}' not found; the page structure may have changed"
        )

    def open_subject_attendance(self) -> str:
        if self.last_page is None:
            raise AttendanceScrapingError("Not logged in")

        attendance_page = self._follow_link(self.last_page, self.ATTENDANCE_LINK_TEXT)
        return self._follow_link(attendance_page, self.SUBJECT_LINK_TEXT)

    def parse_subject_table(self, html_content: str) -> Dict[str, Dict[str, int]]:
        soup = BeautifulSoup(html_content, "html.parser")
        summary_table = soup.find("table", class_="items")

        if not summary_table:
            raise AttendanceScrapingError("Attendance summary table not found")

        header_row = summary_table.select_one("thead tr")
        data_row = summary_table.select_one("tbody tr")
        if header_row is None or data_row is None:
            raise AttendanceScrapingError("Attendance summary table is incomplete")

        end = -self.TRAILING_COLUMNS
        subjects = [
            th.get_text(" ", strip=True) for th in header_row.find_all("th")
        ][self.LEADING_COLUMNS:end]
        cells = [
            td.get_text(" ", strip=True) for td in data_row.find_all("td")
        ][self.LEADING_COLUMNS:end]

        subject_attendance: Dict[str, Dict[str, int]] = {}
        for subject_code, cell_text in zip(subjects, cells):
            match = ATTENDANCE_CELL_PATTERN.search(cell_text)
            if not match:
                app_logger.debug(f"Skipping {subject_code}: no counts in {cell_text!r}")
                continue

            subject_attendance[subject_code] = {
                "attended": int(match.group(1)),
                "total": int(match.group(2)),
            }

        return subject_attendance

    def scrape_attendance_data(self) -> Dict[str, Dict[str, int]]:
        app_logger.info("Starting attendance data scraping")

        try:
            subject_page = self.open_subject_attendance()
        except requests.RequestException as e:
            raise AttendanceScrapingError(f"Network error while navigating: {e}")

        subject_attendance = self.parse_subject_table(subject_page)
        app_logger.info(f"Parsed attendance for {len(subject_attendance)} subjects")
        return subject_attendance

    def save_snapshot(self, path: Optional[str] = None) -> Optional[Path]:
        if self.last_page is None:
            return None

        snapshot_path = Path(path or settings.ERROR_SNAPSHOT_PATH)
        try:
            snapshot_path.write_text(self.last_page, encoding="utf-8")
        except OSError as e:
            app_logger.warning(f"Could not save error snapshot: {e}")
            return None

        app_logger.info(f"Page snapshot saved to {snapshot_path} for debugging")
        return snapshot_path

    def close(self) -> None:
        self.session.close()
        app_logger.info("Closing the scraper")


# Convenience function for external usage
def fetch_student_attendance(username: str, password: str) -> Dict[str, Dict[str, int]]:
    scraper = ETLabAttendanceScraper(username, password)

    try:
        scraper.login()
        return scraper.scrape_attendance_data()
    except (AuthenticationError, AttendanceScrapingError):
        scraper.save_snapshot()
        raise
    finally:
        scraper.close()
