"""
Tests for alert rendering and the Discord DM sender.
"""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

import requests

from coord_alerts.config import DiscordConfig
from coord_alerts.delivery import DiscordDMSender, build_alert_embed, format_power
from coord_alerts.models import AlertPayload, Category

from .test_common import make_point


class TestFormatPower(unittest.TestCase):

    def test_billions(self):
        self.assertEqual(format_power(1_234_000_000), "1.2B")

    def test_millions(self):
        self.assertEqual(format_power(600_000_000), "600.0M")

    def test_small_values_use_thousands_separator(self):
        self.assertEqual(format_power(950_000), "950,000")


class TestBuildAlertEmbed(unittest.TestCase):

    def test_fields_numbered_with_level(self):
        payload = AlertPayload(Category.PYRAMID, [make_point(1, 2, level=5), make_point(3, 4, level=4)], total=2)
        embed = build_alert_embed(payload)
        self.assertEqual([f["name"] for f in embed["fields"]], ["#1 - Level 5", "#2 - Level 4"])
        self.assertIn("`1`", embed["fields"][0]["value"])
        self.assertEqual(embed["color"], Category.PYRAMID.color)
        self.assertEqual(embed["footer"]["text"], "Use !pyramid to see all coordinates")

    def test_power_and_distance_rendered_when_present(self):
        point = make_point(1, 2, power=600_000_000, distance=12.4)
        embed = build_alert_embed(AlertPayload(Category.BARBARIAN, [point], total=1))
        value = embed["fields"][0]["value"]
        self.assertIn("600.0M", value)
        self.assertIn("Distance: 12", value)

    def test_overflow_footer(self):
        points = [make_point(i, i) for i in range(10)]
        embed = build_alert_embed(AlertPayload(Category.ARES, points, total=13))
        self.assertEqual(len(embed["fields"]), 10)
        self.assertEqual(embed["footer"]["text"], "...and 3 more. Use !ares to see all.")
        self.assertIn("13 new", embed["description"])


class TestDiscordDMSender(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.config = DiscordConfig(bot_token="token", api_base="https://discord.test/api")
        self.sender = DiscordDMSender(config=self.config, session=self.session)
        self.payload = AlertPayload(Category.ARES, [make_point(1, 1)], total=1)

    def _response(self, data):
        response = MagicMock()
        response.json.return_value = data
        return response

    def test_opens_dm_then_posts_embed(self):
        self.session.post.side_effect = [self._response({"id": "chan1"}), self._response({"id": "msg1"})]

        self.assertTrue(self.sender.deliver("u1", self.payload))

        urls = [c.args[0] for c in self.session.post.call_args_list]
        self.assertEqual(urls, [
            "https://discord.test/api/users/@me/channels",
            "https://discord.test/api/channels/chan1/messages",
        ])
        body = self.session.post.call_args_list[1].kwargs["json"]
        self.assertEqual(len(body["embeds"]), 1)

    def test_dm_channel_is_reused(self):
        self.session.post.side_effect = [
            self._response({"id": "chan1"}),
            self._response({}),
            self._response({}),
        ]
        self.sender.deliver("u1", self.payload)
        self.sender.deliver("u1", self.payload)
        self.assertEqual(self.session.post.call_count, 3)

    def test_http_error_returns_false(self):
        response = self._response({})
        response.raise_for_status.side_effect = requests.HTTPError("403 Forbidden")
        self.session.post.return_value = response

        self.assertFalse(self.sender.deliver("u1", self.payload))

    def test_connection_error_returns_false(self):
        self.session.post.side_effect = requests.ConnectionError("reset")
        self.assertFalse(self.sender.deliver("u1", self.payload))

    def test_bot_authorization_header(self):
        self.session.headers.update.assert_called_once()
        headers = self.session.headers.update.call_args.args[0]
        self.assertEqual(headers["Authorization"], "Bot token")


if __name__ == "__main__":
    unittest.main()
