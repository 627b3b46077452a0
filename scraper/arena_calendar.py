"""Calendar scraper for the Winning Group Arena events site."""
import hashlib
import logging
import re
import time
from datetime import date, timedelta
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from reconciler.models import EventInput, ScrapeResult

logger = logging.getLogger(__name__)


class ArenaCalendarScraper:
    """Scraper for the arena's monthly event calendar."""

    BASE_URL = "https://www.winninggrouparena.cz"
    CALENDAR_PATH = "/kalendar-akci/"
    USER_AGENT = "Mozilla/5.0 (compatible; ArenaEventsSync/1.0)"
    DEFAULT_TIME = "19:00"
    PAST_DAYS_THRESHOLD = 7
    MAX_RETRIES = 3
    BASE_DELAY = 1  # seconds

    DATE_PATTERN = re.compile(r'^(\d{1,2})\.(\d{1,2})\.(\d{4})$')
    TIME_PATTERN = re.compile(r'^(\d{1,2})[:.](\d{2})$')
    SLUG_PATTERN = re.compile(r'/event/([^/?#]+)/?')

    def __init__(self, timeout: int = 30):
        """
        Initialize the calendar scraper.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers['User-Agent'] = self.USER_AGENT

    def fetch_events(self, months_ahead: int = 12) -> ScrapeResult:
        """
        Fetch events for the current month and the following months.

        Args:
            months_ahead: Number of calendar months to walk (default: 12)

        Returns:
            ScrapeResult with the events and the months fetched successfully
        """
        logger.info(f"Fetching events for {months_ahead} months ahead")

        event_urls, fetched_months = self.get_event_urls_from_calendar(months_ahead)

        events = []
        for url in event_urls:
            events.extend(self.scrape_event_detail(url))

        logger.info(
            f"Successfully fetched {len(events)} events from "
            f"{len(fetched_months)} months"
        )
        return ScrapeResult(events=events, fetched_months=fetched_months)

    def get_event_urls_from_calendar(
        self,
        months_ahead: int = 12
    ) -> Tuple[List[str], List[str]]:
        """
        Collect event detail URLs from the monthly calendar pages.

        Args:
            months_ahead: Number of calendar months to walk

        Returns:
            Tuple of (unique event URLs, fetched months as YYYY-MM)

        Raises:
            RuntimeError: If more than half of the months could not be fetched
        """
        urls = []
        fetched_months = []
        failed_months = []

        for year, month in self._months(date.today(), months_ahead):
            calendar_url = urljoin(self.BASE_URL, self.CALENDAR_PATH)
            params = {'viewmonth': month, 'viewyear': year}

            try:
                html_content = self._fetch_html(calendar_url, params=params)
            except requests.RequestException as e:
                logger.warning(f"Skipping calendar month {month}/{year}: {e}")
                failed_months.append(f"{month}/{year}")
                continue

            fetched_months.append(f"{year:04d}-{month:02d}")
            for url in self.extract_event_urls(html_content):
                if url not in urls:
                    urls.append(url)

        if len(failed_months) > months_ahead / 2:
            raise RuntimeError(
                f"Too many calendar fetches failed: {', '.join(failed_months)}"
            )

        return urls, fetched_months

    def extract_event_urls(self, html_content: str) -> List[str]:
        """
        Extract event detail links from a calendar page.

        Args:
            html_content: HTML of a calendar month

        Returns:
            Absolute event URLs on the arena site, in page order
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        urls = []

        for link in soup.find_all('a', href=True):
            url = self._normalize_url(link['href'])
            if url and url not in urls:
                urls.append(url)

        return urls

    def scrape_event_detail(self, url: str) -> List[EventInput]:
        """
        Fetch and parse one event detail page.

        Returns:
            Events listed on the page, or an empty list if the fetch fails
        """
        try:
            html_content = self._fetch_html(url)
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch event detail {url}: {e}")
            return []

        return self.parse_event_detail(html_content, url)

    def parse_event_detail(self, html_content: str, url: str) -> List[EventInput]:
        """
        Parse an event detail page.

        A page may list several dates; each becomes its own event whose id
        is the URL slug suffixed with the date's position.

        Args:
            html_content: HTML of the detail page
            url: URL the page was fetched from

        Returns:
            List of EventInput objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')

        title = self._extract_title(soup)
        if title is None:
            logger.warning(f"No title found on event page {url}")
            return []

        date_times = self._extract_date_times(soup)
        if not date_times:
            return []

        event_id = self._extract_id(url)
        multiple = len(date_times) > 1

        return [
            EventInput(
                id=f"{event_id}-{index}" if multiple else event_id,
                title=title,
                date=event_date,
                time=event_time,
                url=url
            )
            for index, (event_date, event_time) in enumerate(date_times)
        ]

    def _fetch_html(self, url: str, params: Optional[dict] = None) -> str:
        """
        Fetch a page with retry logic.

        Args:
            url: Page URL
            params: Optional query parameters

        Returns:
            HTML content as string

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                logger.debug(f"Fetching {url} (attempt {attempt + 1}/{self.MAX_RETRIES})")
                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed for {url}. "
                        f"Last error: {e}"
                    )
                    raise

    def _extract_title(self, soup: BeautifulSoup) -> Optional[str]:
        h1 = soup.find('h1')
        if h1:
            title = h1.get_text(strip=True)
            if title:
                return title

        meta = soup.find('meta', attrs={'property': 'og:title'})
        if meta and meta.get('content', '').strip():
            return meta['content'].strip()

        return None

    def _extract_date_times(self, soup: BeautifulSoup) -> List[Tuple[str, str]]:
        """
        Find dates in <h2> elements and times in the <h3> right after them.

        Returns:
            List of (YYYY-MM-DD, HH:MM) tuples
        """
        min_date = date.today() - timedelta(days=self.PAST_DAYS_THRESHOLD)
        results = []

        for h2 in soup.find_all('h2'):
            match = self.DATE_PATTERN.match(h2.get_text(strip=True))
            if not match:
                continue

            day, month, year = (int(part) for part in match.groups())
            try:
                event_date = date(year, month, day)
            except ValueError:
                continue

            if event_date < min_date:
                continue

            results.append((event_date.isoformat(), self._extract_time(h2)))

        return results

    def _extract_time(self, h2) -> str:
        sibling = h2.find_next_sibling()
        if sibling is None or sibling.name != 'h3':
            return self.DEFAULT_TIME

        match = self.TIME_PATTERN.match(sibling.get_text(strip=True))
        if not match:
            return self.DEFAULT_TIME

        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return self.DEFAULT_TIME

        return f"{hour:02d}:{minute:02d}"

    def _extract_id(self, url: str) -> str:
        match = self.SLUG_PATTERN.search(url)
        if match:
            return match.group(1)

        return hashlib.md5(url.encode('utf-8')).hexdigest()[:12]

    def _normalize_url(self, href: str) -> Optional[str]:
        if '/event/' not in href:
            return None

        if href.startswith('/'):
            return self.BASE_URL + href

        if href.startswith(self.BASE_URL):
            return href

        return None

    @staticmethod
    def _months(start: date, count: int) -> List[Tuple[int, int]]:
        """Return (year, month) pairs for count months starting at start's month."""
        months = []
        year, month = start.year, start.month
        for _ in range(count):
            months.append((year, month))
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return months
