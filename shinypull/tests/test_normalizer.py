"""
Tests for per-platform profile normalization.
"""

import pytest

from shinypull.errors import ParseError
from shinypull.models.schemas import Platform
from shinypull.sources.normalizer import (
    normalize_instagram, normalize_kick, normalize_tiktok, normalize_twitch,
    normalize_twitch_search, normalize_youtube
)


class TestNormalizer:
    """Test raw payload to CreatorSnapshot mapping."""

    def test_youtube(self):
        """Test YouTube channel mapping."""
        snapshot = normalize_youtube({
            'id': 'UCX6OQ3DkcsbYNE6H8uQQuVA',
            'snippet': {
                'title': 'MrBeast',
                'customUrl': '@mrbeast',
                'description': 'SUBSCRIBE',
                'country': 'US',
                'thumbnails': {'high': {'url': 'https://yt3.example/high.jpg'}},
            },
            'statistics': {'subscriberCount': '300000000', 'viewCount': '60000000000', 'videoCount': '800'},
        })

        assert snapshot.platform == Platform.YOUTUBE
        assert snapshot.platform_id == 'UCX6OQ3DkcsbYNE6H8uQQuVA'
        assert snapshot.username == 'mrbeast'
        assert snapshot.followers == snapshot.subscribers == 300000000
        assert snapshot.total_views == 60000000000
        assert snapshot.total_posts == 800
        assert snapshot.profile_image == 'https://yt3.example/high.jpg'

    def test_youtube_without_custom_url_or_statistics(self):
        """Test missing customUrl and counts fall back sensibly."""
        snapshot = normalize_youtube({'id': 'UCabc', 'snippet': {'title': 'Some Channel'}})

        assert snapshot.username == 'somechannel'
        assert snapshot.followers == 0
        assert snapshot.total_views == 0

    def test_twitch(self):
        """Test Twitch user plus followers mapping."""
        user = {
            'id': '12345', 'login': 'shroud', 'display_name': 'shroud',
            'profile_image_url': 'https://static.example/shroud.png',
            'description': 'FPS', 'broadcaster_type': 'partner',
        }
        snapshot = normalize_twitch(user, {'total': 11000000, 'data': []}, {'game_name': 'VALORANT'})

        assert snapshot.platform_id == '12345'
        assert snapshot.followers == snapshot.subscribers == 11000000
        assert snapshot.category == 'VALORANT'
        assert snapshot.broadcaster_type == 'partner'

    def test_twitch_missing_total_is_an_error(self):
        """Test an absent followers total raises instead of recording 0."""
        user = {'id': '1', 'login': 'someone'}
        with pytest.raises(ParseError):
            normalize_twitch(user, {'data': []})
        with pytest.raises(ParseError):
            normalize_twitch(user, {'total': None})

    def test_twitch_zero_total_is_valid(self):
        """Test an explicit zero total is a real value."""
        snapshot = normalize_twitch({'id': '1', 'login': 'newbie'}, {'total': 0})
        assert snapshot.followers == 0

    def test_twitch_search(self):
        """Test search result mapping."""
        snapshot = normalize_twitch_search(
            {'id': '9', 'broadcaster_login': 'xqc', 'display_name': 'xQc', 'is_live': True, 'game_name': 'Just Chatting'},
            followers=12000000,
        )
        assert snapshot.username == 'xqc'
        assert snapshot.is_live is True
        assert snapshot.followers == 12000000

    def test_kick_paid_subscribers_fill_both_fields(self):
        """Test Kick paid subscribers populate followers and subscribers."""
        channel = {
            'broadcaster_user_id': 668,
            'slug': 'xqc',
            'channel_description': 'juicer',
            'banner_picture': 'https://kick.example/banner.jpg',
            'active_subscribers_count': 4200,
            'category': {'name': 'Just Chatting'},
            'stream': {'is_live': True, 'viewer_count': 50000},
        }
        snapshot = normalize_kick(channel, {'profile_picture': 'https://kick.example/pfp.jpg', 'name': 'xQc'})

        assert snapshot.platform_id == '668'
        assert snapshot.followers == snapshot.subscribers == 4200
        assert snapshot.profile_image == 'https://kick.example/pfp.jpg'
        assert snapshot.display_name == 'xQc'
        assert snapshot.is_live is True
        assert snapshot.viewer_count == 50000

    def test_kick_banner_fallback_and_zero_subs(self):
        """Test banner fallback and legitimately zero subscribers."""
        snapshot = normalize_kick({
            'broadcaster_user_id': 1, 'slug': 'smallstreamer',
            'banner_picture': 'https://kick.example/banner.jpg',
            'active_subscribers_count': 0,
        })
        assert snapshot.profile_image == 'https://kick.example/banner.jpg'
        assert snapshot.followers == 0

    def test_tiktok_likes_go_to_total_views(self):
        """Test TikTok like count is stored as total_views."""
        snapshot = normalize_tiktok({
            'user': {'id': '6789', 'uniqueId': 'khaby.lame', 'nickname': 'Khabane lame', 'verified': True},
            'stats': {'followerCount': 162000000, 'followingCount': 80, 'heart': 2500000000, 'videoCount': 1200},
        }, 'khaby.lame')

        assert snapshot.platform_id == '6789'
        assert snapshot.followers == 162000000
        assert snapshot.total_views == 2500000000
        assert snapshot.total_posts == 1200
        assert snapshot.is_verified is True

    def test_tiktok_heart_count_fallback_and_avatar(self):
        """Test heartCount fallback and generated avatar."""
        snapshot = normalize_tiktok({
            'user': {'uniqueId': 'someone'},
            'stats': {'followerCount': 10, 'heartCount': 99},
        }, 'someone')

        assert snapshot.platform_id == 'someone'
        assert snapshot.total_views == 99
        assert snapshot.profile_image.startswith('https://ui-avatars.com/api/?name=someone')

    def test_tiktok_incomplete_payload(self):
        """Test missing user or stats raises ParseError."""
        with pytest.raises(ParseError):
            normalize_tiktok({'user': {'uniqueId': 'x'}}, 'x')

    def test_instagram(self):
        """Test Instagram scraped counts mapping."""
        snapshot = normalize_instagram(
            {'followers': 1000000, 'following': 60, 'posts': 351, 'display_name': 'Jane Doe'},
            'janedoe',
        )
        assert snapshot.platform_id == 'janedoe'
        assert snapshot.followers == snapshot.subscribers == 1000000
        assert snapshot.total_posts == 351
        assert snapshot.following == 60
        assert snapshot.total_views == 0
