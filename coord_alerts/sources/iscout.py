"""
iScout.club harvester for map points.

iScout is a JavaScript app behind a login, so this harvester drives a
Playwright browser: restore or create a session, switch the dashboard to
list mode, select a category and its levels, apply, then hand the rendered
HTML to BeautifulSoup for parsing.

The browser session is reused across scrapes and re-authenticated when it
expires.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from bs4 import BeautifulSoup
from playwright.sync_api import sync_playwright, Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from .base import BaseHarvester
from ..config import IScoutConfig, get_iscout_config
from ..errors import HarvestFailure
from ..models import Category, Point

logger = logging.getLogger(__name__)


USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

MAX_COORDINATE = 9999


@dataclass(frozen=True)
class CategoryTarget:
    """Where a category lives on the dashboard and which levels we keep."""
    button_text: Optional[str]  # Filter button on the dashboard
    legend: Optional[str]       # Fieldset holding the level multiselect
    item_keyword: str           # Text that identifies a row of this category
    levels: tuple[int, ...]     # Levels to select and keep (empty = all)
    path: Optional[str] = None  # Dedicated page instead of the dashboard filter


TARGETS = {
    Category.PYRAMID: CategoryTarget(
        button_text="Relics/Pyramids",
        legend="Pyramids",
        item_keyword="Pyramid",
        levels=(5, 4),
    ),
    Category.BARBARIAN: CategoryTarget(
        button_text="Arctic Barbarians",
        legend="Arctic Barbarians",
        item_keyword="Barbarian",
        levels=(5, 6, 7),
    ),
    Category.ARES: CategoryTarget(
        button_text=None,
        legend=None,
        item_keyword="Ares",
        levels=(),
        path="/ares",
    ),
}


# =============================================================================
# HTML PARSING
# =============================================================================

_LEVEL_RE = re.compile(r"Lv\s*(\d+)|Level\s*(\d+)", re.IGNORECASE)
_X_RE = re.compile(r"X:\s*(\d+)")
_Y_RE = re.compile(r"Y:\s*(\d+)")
_POWER_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s*([MB])\b", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\D")


def parse_level(text: str) -> Optional[int]:
    """Extract the level from "Lv5 Arctic Barbarian" or "Level 5 ..."."""
    match = _LEVEL_RE.search(text)
    if not match:
        return None
    return int(match.group(1) or match.group(2))


def parse_power(text: str) -> Optional[int]:
    """Convert "500M" / "1.2B" into an integer strength."""
    match = _POWER_RE.search(text)
    if not match:
        return None
    value = float(match.group(1))
    if value <= 0:
        return None
    multiplier = 1_000_000_000 if match.group(2).upper() == "B" else 1_000_000
    return round(value * multiplier)


def _in_bounds(x: int, y: int, level: int) -> bool:
    return 0 <= x <= MAX_COORDINATE and 0 <= y <= MAX_COORDINATE and 1 <= level <= 10


def _parse_tooltip_row(row, category: Category, target: CategoryTarget, captured_at: datetime) -> Optional[Point]:
    item_div = row.select_one('div[data-tooltip-id*="clickboard_data"]')
    item_text = item_div.get_text(" ", strip=True) if item_div else ""
    if target.item_keyword not in item_text:
        return None

    level = parse_level(item_text)
    if level is None:
        return None

    x = y = None
    for div in row.select("div[data-tooltip-id]"):
        tooltip_id = div.get("data-tooltip-id", "")
        text = div.get_text(" ", strip=True)
        if x is None and "_x" in tooltip_id:
            match = _X_RE.search(text)
            x = int(match.group(1)) if match else None
        elif y is None and "_y" in tooltip_id:
            match = _Y_RE.search(text)
            y = int(match.group(1)) if match else None
    if x is None or y is None:
        return None

    power = None
    if category.carries_power:
        for cell in row.find_all("td"):
            if cell.select_one("div[data-tooltip-id]"):
                continue
            power = parse_power(cell.get_text(" ", strip=True))
            if power is not None:
                break

    alliance_div = row.select_one('[data-tooltip-id*="alliance"]')
    alliance = alliance_div.get_text(strip=True) if alliance_div else None

    return Point(
        x=x,
        y=y,
        level=level,
        power=power,
        alliance=alliance or None,
        timestamp=captured_at,
    )


def _parse_column_row(row, captured_at: datetime) -> Optional[Point]:
    """Plain table layout: X, Y, level in the first three cells."""
    cells = row.find_all("td")
    if len(cells) < 2:
        return None
    x_text = _DIGITS_RE.sub("", cells[0].get_text())
    y_text = _DIGITS_RE.sub("", cells[1].get_text())
    if not x_text or not y_text:
        return None
    level_text = _DIGITS_RE.sub("", cells[2].get_text()) if len(cells) > 2 else ""
    return Point(
        x=int(x_text),
        y=int(y_text),
        level=int(level_text) if level_text else 1,
        timestamp=captured_at,
    )


def parse_point_rows(
    html: str,
    category: Category,
    levels: Optional[tuple[int, ...]] = None,
    captured_at: Optional[datetime] = None,
) -> list[Point]:
    """
    Parse the rendered result table into points.

    Args:
        html: Page HTML after the filter was applied
        category: Which category the table shows
        levels: Keep only these levels (defaults to the category's target levels)
        captured_at: Timestamp stamped on every point

    Returns:
        Points in table order, without out-of-range rows
    """
    target = TARGETS[category]
    levels = target.levels if levels is None else levels
    captured_at = captured_at or datetime.utcnow()
    soup = BeautifulSoup(html, "html.parser")

    points = []
    skipped = 0
    for row in soup.find_all("tr"):
        if row.select_one('div[data-tooltip-id*="clickboard_data"]'):
            point = _parse_tooltip_row(row, category, target, captured_at)
        elif target.path:
            point = _parse_column_row(row, captured_at)
        else:
            point = None

        if point is None:
            continue
        if levels and point.level not in levels:
            continue
        if not _in_bounds(point.x, point.y, point.level):
            skipped += 1
            continue
        points.append(point)

    if skipped:
        logger.debug(f"Skipped {skipped} out-of-range {category.value} row(s)")
    return points


# =============================================================================
# HARVESTER
# =============================================================================

class IScoutHarvester(BaseHarvester):
    """
    Harvester for iScout.club using a persistent Playwright browser.

    Usage:
        harvester = IScoutHarvester()
        points = harvester.scrape_one(Category.BARBARIAN)
        harvester.close()
    """

    def __init__(self, config: Optional[IScoutConfig] = None):
        self.config = config or get_iscout_config()
        self._playwright = None
        self._browser = None
        self._page = None
        self._logged_in = False

    # -------------------------------------------------------------------------
    # Session handling
    # -------------------------------------------------------------------------

    def _ensure_browser(self) -> None:
        if self._page is not None:
            return
        logger.info("Launching Chromium for iScout...")
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.config.headless)
        context = self._browser.new_context(user_agent=USER_AGENT)
        self._page = context.new_page()
        self._page.set_default_timeout(self.config.navigation_timeout_ms)

    def _login(self) -> None:
        if not self.config.email or not self.config.password:
            raise HarvestFailure("ISCOUT_EMAIL and ISCOUT_PASSWORD must be set in environment variables")

        page = self._page
        page.goto(f"{self.config.url}/dashboard", wait_until="networkidle")
        if "/dashboard" in page.url:
            self._logged_in = True
            logger.info("iScout session restored")
            return

        logger.info(f"Logging in to iScout as {self.config.email}")
        page.goto(f"{self.config.url}/login", wait_until="networkidle")
        try:
            page.wait_for_selector("#email", timeout=10000)
            page.fill("#email", self.config.email)
            page.fill("#password", self.config.password)
            page.get_by_role("button", name=re.compile(r"log\s*in", re.IGNORECASE)).first.click()
            page.wait_for_url(re.compile(r"/dashboard"), timeout=30000)
        except PlaywrightTimeout as e:
            error = page.locator(".text-red-600, .text-danger, [class*='error']")
            message = error.first.inner_text() if error.count() else "no dashboard redirect"
            raise HarvestFailure(f"iScout login failed: {message}") from e

        self._logged_in = True
        logger.info("iScout login successful")

    def _prepare(self) -> None:
        """Reload, re-authenticate if the session expired, switch to list mode."""
        self._ensure_browser()
        if not self._logged_in:
            self._login()

        page = self._page
        page.reload(wait_until="networkidle")
        if "/login" in page.url:
            logger.warning("iScout session expired, logging in again")
            self._logged_in = False
            self._login()
        elif "/dashboard" not in page.url:
            page.goto(f"{self.config.url}/dashboard", wait_until="networkidle")

        list_button = page.locator("button", has=page.locator("p", has_text=re.compile(r"^List$")))
        if list_button.count():
            list_button.first.click()
            page.wait_for_timeout(2000)
        else:
            logger.debug("List button not found (may already be in list mode)")

    # -------------------------------------------------------------------------
    # Category filters
    # -------------------------------------------------------------------------

    def _select_levels(self, target: CategoryTarget) -> None:
        page = self._page
        section = page.locator("li", has=page.locator("legend", has_text=target.legend))
        for level in target.levels:
            field = section.locator(".multiselect__input").first
            field.click()
            field.fill("")
            page.keyboard.type(str(level))
            page.wait_for_timeout(800)
            page.keyboard.press("Tab")
            page.wait_for_timeout(500)

    def _apply_and_load(self) -> None:
        page = self._page
        apply_button = page.get_by_role("button", name=re.compile("apply", re.IGNORECASE))
        if not apply_button.count():
            logger.warning("Apply button not found")
            return
        apply_button.first.click()
        page.wait_for_timeout(self.config.settle_seconds * 1000)

        # The result list is virtualised; scroll to the bottom to render every row
        page.evaluate(
            """async () => {
                for (let y = 0; y < document.body.scrollHeight; y += 500) {
                    window.scrollTo(0, y);
                    await new Promise(r => setTimeout(r, 200));
                }
            }"""
        )
        page.wait_for_timeout(3000)

    def _load_category(self, category: Category) -> str:
        target = TARGETS[category]
        page = self._page
        if target.path:
            page.goto(f"{self.config.url}{target.path}", wait_until="networkidle")
            page.wait_for_timeout(2000)
            return page.content()

        button = page.get_by_role("button", name=target.button_text)
        if button.count():
            button.first.click()
            page.wait_for_timeout(1000)
        else:
            logger.warning(f'"{target.button_text}" button not found')

        self._select_levels(target)
        self._apply_and_load()
        return page.content()

    # -------------------------------------------------------------------------
    # Harvester contract
    # -------------------------------------------------------------------------

    def scrape_one(self, category: Category) -> list[Point]:
        """
        Scrape one category.

        Login problems raise HarvestFailure; page-level problems are logged
        and produce an empty list.
        """
        logger.info(f"{category.emoji} Scraping {category.display_name} coordinates...")
        try:
            self._prepare()
        except PlaywrightError as e:
            raise HarvestFailure(f"iScout session unavailable: {e}", category) from e

        try:
            html = self._load_category(category)
        except PlaywrightError as e:
            logger.error(f"{category.display_name} scraping failed: {e}")
            return []

        points = parse_point_rows(html, category)
        logger.info(f"Found {len(points)} {category.display_name} coordinates")
        return points

    def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        self._page = None
        self._logged_in = False
        logger.info("Browser closed")
