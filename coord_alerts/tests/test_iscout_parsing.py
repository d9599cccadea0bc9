"""
Tests for iScout result-table parsing. No browser is involved; the
fixtures mimic the rendered HTML the harvester hands to BeautifulSoup.
"""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from coord_alerts.config import IScoutConfig
from coord_alerts.errors import HarvestFailure
from coord_alerts.models import Category
from coord_alerts.sources.iscout import IScoutHarvester, parse_level, parse_point_rows, parse_power

from .test_common import T0


def tooltip_row(n, item, x, y, power="", alliance=None):
    alliance_cell = f'<td><span data-tooltip-id="alliance_{n}">{alliance}</span></td>' if alliance else "<td></td>"
    return (
        "<tr>"
        f'<td><div data-tooltip-id="clickboard_data_{n}">{item}</div></td>'
        f'<td><div data-tooltip-id="coord_{n}_x">X: {x}</div></td>'
        f'<td><div data-tooltip-id="coord_{n}_y">Y: {y}</div></td>'
        f"<td>{power}</td>"
        f"{alliance_cell}"
        "</tr>"
    )


def table(*rows):
    return "<table><thead><tr><th>Item</th><th>X</th><th>Y</th></tr></thead><tbody>" + "".join(rows) + "</tbody></table>"


class TestParseHelpers(unittest.TestCase):

    def test_parse_level(self):
        self.assertEqual(parse_level("Lv5 Arctic Barbarian"), 5)
        self.assertEqual(parse_level("Level 4 Pyramid"), 4)
        self.assertIsNone(parse_level("Arctic Barbarian"))

    def test_parse_power(self):
        self.assertEqual(parse_power("600M"), 600_000_000)
        self.assertEqual(parse_power("1.2B"), 1_200_000_000)
        self.assertEqual(parse_power("Power: 750 m"), 750_000_000)
        self.assertIsNone(parse_power("950"))
        self.assertIsNone(parse_power("0M"))


class TestParseBarbarianRows(unittest.TestCase):

    def test_power_alliance_and_level(self):
        html = table(
            tooltip_row(1, "Lv5 Arctic Barbarian", 120, 340, power="600M", alliance="ABC"),
            tooltip_row(2, "Lv7 Arctic Barbarian", 900, 10, power="1.2B"),
        )
        points = parse_point_rows(html, Category.BARBARIAN, captured_at=T0)

        self.assertEqual([(p.x, p.y, p.level) for p in points], [(120, 340, 5), (900, 10, 7)])
        self.assertEqual([p.power for p in points], [600_000_000, 1_200_000_000])
        self.assertEqual(points[0].alliance, "ABC")
        self.assertIsNone(points[1].alliance)
        self.assertEqual(points[0].timestamp, T0)

    def test_levels_outside_target_are_dropped(self):
        html = table(
            tooltip_row(1, "Lv4 Arctic Barbarian", 1, 1, power="100M"),
            tooltip_row(2, "Lv6 Arctic Barbarian", 2, 2, power="200M"),
        )
        points = parse_point_rows(html, Category.BARBARIAN)
        self.assertEqual([p.level for p in points], [6])

    def test_explicit_levels_override_target(self):
        html = table(tooltip_row(1, "Lv4 Arctic Barbarian", 1, 1))
        self.assertEqual(len(parse_point_rows(html, Category.BARBARIAN, levels=(4,))), 1)

    def test_level_text_is_not_read_as_power(self):
        html = table(tooltip_row(1, "Lv5 Arctic Barbarian", 1, 1))
        self.assertIsNone(parse_point_rows(html, Category.BARBARIAN)[0].power)

    def test_rows_of_other_categories_are_ignored(self):
        html = table(tooltip_row(1, "Lv5 Pyramid", 1, 1), tooltip_row(2, "Lv5 Arctic Barbarian", 2, 2))
        self.assertEqual([p.key for p in parse_point_rows(html, Category.BARBARIAN)], [(2, 2)])

    def test_out_of_range_coordinates_skipped(self):
        html = table(tooltip_row(1, "Lv5 Arctic Barbarian", 12000, 5), tooltip_row(2, "Lv5 Arctic Barbarian", 5, 5))
        self.assertEqual([p.key for p in parse_point_rows(html, Category.BARBARIAN)], [(5, 5)])

    def test_missing_coordinate_skipped(self):
        html = table(
            "<tr>"
            '<td><div data-tooltip-id="clickboard_data_1">Lv5 Arctic Barbarian</div></td>'
            '<td><div data-tooltip-id="coord_1_x">X: 5</div></td>'
            "</tr>"
        )
        self.assertEqual(parse_point_rows(html, Category.BARBARIAN), [])


class TestParsePyramidRows(unittest.TestCase):

    def test_pyramids_have_no_power(self):
        html = table(
            tooltip_row(1, "Lv5 Pyramid", 10, 20, power="500M"),
            tooltip_row(2, "Lv4 Pyramid", 30, 40),
            tooltip_row(3, "Lv3 Pyramid", 50, 60),
        )
        points = parse_point_rows(html, Category.PYRAMID)
        self.assertEqual([(p.key, p.level) for p in points], [((10, 20), 5), ((30, 40), 4)])
        self.assertTrue(all(p.power is None for p in points))


class TestParseAresRows(unittest.TestCase):

    def test_column_layout(self):
        html = table(
            "<tr><td>X: 1,234</td><td>567</td><td>Lv 3</td></tr>",
            "<tr><td>42</td><td>43</td></tr>",
            "<tr><td>n/a</td><td>n/a</td><td>1</td></tr>",
        )
        points = parse_point_rows(html, Category.ARES)
        self.assertEqual([(p.x, p.y, p.level) for p in points], [(1234, 567, 3), (42, 43, 1)])

    def test_empty_page(self):
        self.assertEqual(parse_point_rows("<html><body>No results</body></html>", Category.ARES), [])


class TestIScoutHarvester(unittest.TestCase):

    def setUp(self):
        self.config = IScoutConfig(url="https://iscout.test", email="a@b.c", password="pw")
        self.harvester = IScoutHarvester(config=self.config)

    def test_missing_credentials_fail_hard(self):
        harvester = IScoutHarvester(config=IScoutConfig(url="https://iscout.test", email="", password=""))
        harvester._page = MagicMock()
        with self.assertRaises(HarvestFailure):
            harvester.scrape_one(Category.ARES)

    def test_scrape_one_parses_loaded_page(self):
        html = table("<tr><td>10</td><td>20</td><td>2</td></tr>")
        with patch.object(self.harvester, "_prepare"), \
                patch.object(self.harvester, "_load_category", return_value=html):
            points = self.harvester.scrape_one(Category.ARES)
        self.assertEqual([p.key for p in points], [(10, 20)])

    def test_close_without_browser_is_safe(self):
        self.harvester.close()
        self.assertIsNone(self.harvester._page)


if __name__ == "__main__":
    unittest.main()
