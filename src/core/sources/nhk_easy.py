#!/usr/bin/env python3
"""
NHK News Web Easy source.

Lists article IDs from the NHK Easy index and extracts title, date and
ruby-free paragraph text from article pages. Pages are fetched over plain
HTTP and parsed with BeautifulSoup; interstitial dialogs that a browser
would have to click through are removed from the parsed tree instead.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag

from core.content.fetcher import ContentFetcher
from core.exceptions import SourceConnectionError, SourceListingError, SourceParseError
from core.sources.base import ArticleBody, ArticleSource
from core.text_sanitizer import clean_paragraph_text

logger = logging.getLogger(__name__)

ARTICLE_ID_PATTERN = re.compile(r'/news/easy/(ne[0-9]+)/')
NEWS_ID_VALUE = re.compile(r'^ne[0-9]+$')
JAPANESE_DATE_PATTERN = re.compile(r'(\d{4})年(\d{1,2})月(\d{1,2})日')

# Buttons that acknowledge the site's notice/consent dialogs
INTERSTITIAL_BUTTON_TEXT = re.compile(r'\bunderstand\b|確認しました', re.IGNORECASE)
INTERSTITIAL_SELECTORS = [
    'dialog',
    '[role="dialog"]',
    '[aria-modal="true"]',
    '#js-consent',
    '.consent',
]

LOAD_MORE_SELECTOR = '.button-more'
LOAD_MORE_URL_ATTRS = ('href', 'data-url', 'data-href')

RUBY_ANNOTATION_TAGS = ['rt', 'rp']


def parse_japanese_date(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a 'YYYY年M月D日' date anywhere in the text.

    Args:
        text: Date text from the article page, e.g. '2025年1月15日 12時30分'

    Returns:
        Midnight UTC of that date, or None when the text has no full
        year/month/day match or the date does not exist
    """
    if not text:
        return None

    match = JAPANESE_DATE_PATTERN.search(text)
    if not match:
        return None

    year, month, day = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        logger.debug(f"Ignoring impossible date in '{text}'")
        return None


def extract_article_ids(soup: BeautifulSoup, base_url: str) -> List[str]:
    """
    Find article IDs in a parsed page, deduplicated in first-seen order.

    Relative links are resolved against base_url first; IDs that only
    appear in inline scripts or data attributes are picked up from the raw
    markup afterwards.
    """
    ids = []
    for anchor in soup.find_all('a', href=True):
        ids.extend(ARTICLE_ID_PATTERN.findall(urljoin(base_url, anchor['href'])))
    ids.extend(ARTICLE_ID_PATTERN.findall(str(soup)))
    return _dedupe(ids)


def _dedupe(ids: Iterable[str]) -> List[str]:
    seen = set()
    unique = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def _collect_news_ids(node: Any) -> List[str]:
    """Walk the news-list JSON and collect every news_id value in order."""
    found: List[str] = []
    if isinstance(node, dict):
        value = node.get('news_id')
        if isinstance(value, str) and NEWS_ID_VALUE.match(value):
            found.append(value)
        for child in node.values():
            if isinstance(child, (dict, list)):
                found.extend(_collect_news_ids(child))
    elif isinstance(node, list):
        for child in node:
            found.extend(_collect_news_ids(child))
    return found


def dismiss_interstitials(soup: BeautifulSoup) -> int:
    """
    Remove notice/consent dialogs from a parsed page.

    Args:
        soup: Parsed page, modified in place

    Returns:
        Number of elements removed
    """
    removed = 0

    for button in soup.find_all('button'):
        if button.decomposed or not INTERSTITIAL_BUTTON_TEXT.search(button.get_text(' ', strip=True)):
            continue
        container = _find_dialog_container(button)
        (container or button).decompose()
        removed += 1

    for selector in INTERSTITIAL_SELECTORS:
        for element in soup.select(selector):
            if not element.decomposed:
                element.decompose()
                removed += 1

    if removed:
        logger.debug(f"Dismissed {removed} interstitial element(s)")
    return removed


def _find_dialog_container(element: Tag) -> Optional[Tag]:
    for parent in element.parents:
        if not isinstance(parent, Tag) or parent.name in ('body', 'html', '[document]'):
            return None
        if any(parent.css.match(selector) for selector in INTERSTITIAL_SELECTORS):
            return parent
    return None


def paragraph_text(element: Tag) -> str:
    """Text of a paragraph with ruby readings removed."""
    for annotation in element.find_all(RUBY_ANNOTATION_TAGS):
        annotation.decompose()
    return clean_paragraph_text(element.get_text())


class NHKEasySource(ArticleSource):
    """Scrapes NHK News Web Easy."""

    name = "nhk_easy"

    def __init__(self,
                 fetcher: ContentFetcher,
                 base_url: str = "https://www3.nhk.or.jp/news/easy/",
                 news_list_path: Optional[str] = "news-list.json",
                 config: Optional[Dict[str, Any]] = None):
        """
        Initialize NHK Easy source.

        Args:
            fetcher: HTTP fetcher shared for the whole process
            base_url: Index URL, also the prefix of article URLs
            news_list_path: JSON article list relative to base_url, None to skip
            config: Extra source configuration
        """
        super().__init__(config)
        self.fetcher = fetcher
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.news_list_path = news_list_path

    def article_url(self, external_id: str) -> str:
        return f"{self.base_url}{external_id}/{external_id}.html"

    def list_candidates(self) -> List[str]:
        try:
            html = self.fetcher.fetch_text(self.base_url)
        except requests.exceptions.RequestException as e:
            raise SourceListingError(self.name, e) from e

        soup = BeautifulSoup(html, 'html.parser')
        dismiss_interstitials(soup)

        ids = extract_article_ids(soup, self.base_url)
        ids.extend(self._expand_load_more(soup))
        ids.extend(self._read_news_list())
        candidates = _dedupe(ids)

        logger.info(f"Found {len(candidates)} candidate articles on {self.name}")
        return candidates

    def _expand_load_more(self, soup: BeautifulSoup) -> List[str]:
        """Follow the 'load more' control once, if it points anywhere."""
        button = soup.select_one(LOAD_MORE_SELECTOR)
        if button is None:
            return []

        target = next((button.get(attr) for attr in LOAD_MORE_URL_ATTRS if button.get(attr)), None)
        if not target or target.startswith(('#', 'javascript:')):
            logger.debug("Load-more control has no URL to follow")
            return []

        url = urljoin(self.base_url, target)
        try:
            more = self.fetcher.fetch_text(url)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Could not expand load-more list at {url}: {e}")
            return []

        more_soup = BeautifulSoup(more, 'html.parser')
        dismiss_interstitials(more_soup)
        ids = extract_article_ids(more_soup, url)
        logger.debug(f"Load-more expansion added {len(ids)} IDs")
        return ids

    def _read_news_list(self) -> List[str]:
        """The index is rendered client-side from this JSON list."""
        if not self.news_list_path:
            return []

        url = urljoin(self.base_url, self.news_list_path)
        try:
            raw = self.fetcher.fetch_text(url)
            data = json.loads(raw.lstrip('\ufeff'))
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Could not read news list at {url}: {e}")
            return []

        return _collect_news_ids(data)

    def fetch_article(self, external_id: str) -> ArticleBody:
        url = self.article_url(external_id)
        try:
            html = self.fetcher.fetch_text(url)
        except requests.exceptions.RequestException as e:
            raise SourceConnectionError(self.name, url, e) from e

        return self.parse_article(external_id, url, html)

    def parse_article(self, external_id: str, url: str, html: str) -> ArticleBody:
        """
        Extract an ArticleBody from article page markup.

        Raises:
            SourceParseError: If the title or body element is missing
        """
        soup = BeautifulSoup(html, 'html.parser')
        dismiss_interstitials(soup)

        title_element = soup.select_one('.article-title')
        if title_element is None:
            raise SourceParseError(self.name, 'title', f"no .article-title on {url}")
        for annotation in title_element.find_all(RUBY_ANNOTATION_TAGS):
            annotation.decompose()
        title = clean_paragraph_text(title_element.get_text())

        date_element = soup.select_one('.article-date')
        published_at = parse_japanese_date(date_element.get_text(' ', strip=True) if date_element else '')

        body = soup.select_one('.article-body')
        if body is None:
            raise SourceParseError(self.name, 'body', f"no .article-body on {url}")

        paragraphs = []
        for element in body.find_all('p'):
            text = paragraph_text(element)
            if text:
                paragraphs.append(text)

        logger.debug(f"Parsed {external_id}: '{title}' with {len(paragraphs)} paragraphs")
        return ArticleBody(
            external_id=external_id,
            url=url,
            title=title,
            published_at=published_at,
            paragraphs=paragraphs,
        )

    def health_check(self) -> Dict[str, Any]:
        try:
            self.fetcher.fetch_text(self.base_url)
            return {'source': self.name, 'available': True, 'url': self.base_url}
        except requests.exceptions.RequestException as e:
            return {'source': self.name, 'available': False, 'url': self.base_url, 'error': str(e)}
