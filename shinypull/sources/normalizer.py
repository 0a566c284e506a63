"""
Map raw platform responses onto CreatorSnapshot.

Every function here is pure: raw payload in, snapshot out. Text is passed
through untouched; length limits are applied when rows are written.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

from ..errors import ParseError
from ..models.schemas import CreatorSnapshot, Platform
from ..utils.parsers import parse_int


def placeholder_avatar(name: str, background: str) -> str:
    """Generated avatar used when a platform exposes no profile picture."""
    return f"https://ui-avatars.com/api/?name={quote(name)}&size=200&bold=true&background={background}&color=fff"


def normalize_youtube(channel: Dict[str, Any]) -> CreatorSnapshot:
    """
    Map a ``youtube/v3/channels`` item (parts snippet,statistics).

    subscriberCount -> followers/subscribers, viewCount -> total_views,
    videoCount -> total_posts.
    """
    snippet = channel.get('snippet') or {}
    statistics = channel.get('statistics') or {}
    thumbnails = snippet.get('thumbnails') or {}

    title = snippet.get('title') or channel['id']
    custom_url = snippet.get('customUrl')
    username = custom_url.lstrip('@') if custom_url else title.lower().replace(' ', '')
    subscribers = parse_int(statistics.get('subscriberCount'))

    return CreatorSnapshot(
        platform=Platform.YOUTUBE,
        platform_id=channel['id'],
        username=username,
        display_name=title,
        profile_image=(thumbnails.get('high') or thumbnails.get('default') or {}).get('url'),
        description=snippet.get('description'),
        country=snippet.get('country'),
        followers=subscribers,
        subscribers=subscribers,
        total_views=parse_int(statistics.get('viewCount')),
        total_posts=parse_int(statistics.get('videoCount')),
    )


def normalize_twitch(
    user: Dict[str, Any],
    followers_payload: Dict[str, Any],
    channel_info: Optional[Dict[str, Any]] = None,
) -> CreatorSnapshot:
    """
    Map a Helix user plus its ``channels/followers`` response.

    A followers payload without ``total`` is an API contract violation and
    raises ParseError instead of recording 0.
    """
    if 'total' not in followers_payload or followers_payload['total'] is None:
        raise ParseError('twitch', "Twitch followers API returned no total", user.get('login'))

    followers = parse_int(followers_payload['total'])
    category = (channel_info or {}).get('game_name') or None

    return CreatorSnapshot(
        platform=Platform.TWITCH,
        platform_id=str(user['id']),
        username=user['login'],
        display_name=user.get('display_name') or user['login'],
        profile_image=user.get('profile_image_url'),
        description=user.get('description'),
        category=category,
        followers=followers,
        subscribers=followers,
        total_views=parse_int(user.get('view_count')),
        broadcaster_type=user.get('broadcaster_type') or None,
    )


def normalize_twitch_search(channel: Dict[str, Any], followers: int = 0) -> CreatorSnapshot:
    """Map a ``search/channels`` result (followers fetched separately)."""
    return CreatorSnapshot(
        platform=Platform.TWITCH,
        platform_id=str(channel['id']),
        username=channel['broadcaster_login'],
        display_name=channel.get('display_name') or channel['broadcaster_login'],
        profile_image=channel.get('thumbnail_url'),
        category=channel.get('game_name') or None,
        followers=followers,
        subscribers=followers,
        is_live=bool(channel.get('is_live')),
    )


def normalize_kick(channel: Dict[str, Any], user: Optional[Dict[str, Any]] = None) -> CreatorSnapshot:
    """
    Map a Kick ``channels`` item.

    ``active_subscribers_count`` is the paid-subscriber count, not a follower
    count; it fills both follower fields so Kick rows line up with the other
    platforms. It can legitimately be 0.
    """
    stream = channel.get('stream') or {}
    category = channel.get('category') or {}
    paid_subs = parse_int(channel.get('active_subscribers_count'))
    profile_image = (user or {}).get('profile_picture') or channel.get('banner_picture') or None

    return CreatorSnapshot(
        platform=Platform.KICK,
        platform_id=str(channel['broadcaster_user_id']),
        username=channel['slug'],
        display_name=(user or {}).get('name') or channel['slug'],
        profile_image=profile_image,
        description=channel.get('channel_description') or '',
        category=category.get('name') or None,
        followers=paid_subs,
        subscribers=paid_subs,
        is_live=bool(stream.get('is_live')),
        viewer_count=parse_int(stream.get('viewer_count')),
    )


def normalize_tiktok(user_info: Dict[str, Any], username: str) -> CreatorSnapshot:
    """
    Map ``webapp.user-detail.userInfo`` from TikTok's rehydration JSON.

    The like count (``heart``/``heartCount``) is stored in total_views.
    """
    user = user_info.get('user')
    stats = user_info.get('stats')
    if not user or not stats:
        raise ParseError('tiktok', f"Incomplete user data for {username}", username)

    display_name = user.get('nickname') or username
    followers = parse_int(stats.get('followerCount'))

    return CreatorSnapshot(
        platform=Platform.TIKTOK,
        platform_id=str(user.get('id') or username),
        username=user.get('uniqueId') or username,
        display_name=display_name,
        profile_image=user.get('avatarLarger') or user.get('avatarMedium') or placeholder_avatar(display_name, '000000'),
        description=user.get('signature') or '',
        category='Creator',
        followers=followers,
        subscribers=followers,
        total_views=parse_int(stats.get('heart') or stats.get('heartCount')),
        total_posts=parse_int(stats.get('videoCount')),
        following=parse_int(stats.get('followingCount')),
        is_verified=bool(user.get('verified')),
    )


def normalize_instagram(data: Dict[str, Any], username: str) -> CreatorSnapshot:
    """
    Map counts scraped from a rendered Instagram profile.

    Instagram exposes no stable numeric id without login, so the username is
    the platform id.
    """
    display_name = data.get('display_name') or username
    followers = parse_int(data.get('followers'))

    return CreatorSnapshot(
        platform=Platform.INSTAGRAM,
        platform_id=username,
        username=username,
        display_name=display_name,
        profile_image=data.get('profile_image') or placeholder_avatar(display_name, 'e1306c'),
        description=data.get('bio') or '',
        category='Creator',
        followers=followers,
        subscribers=followers,
        total_posts=parse_int(data.get('posts')),
        following=parse_int(data.get('following')),
        is_verified=bool(data.get('is_verified')),
    )
