"""
Classify an entry's media link for embedding.
"""
from typing import Dict, Optional

EMBED_NONE = 'none'
EMBED_YOUTUBE = 'youtube'
EMBED_VIDEO = 'video'
EMBED_IFRAME = 'iframe'

VIDEO_EXTENSIONS = ('.mp4', '.webm', '.ogg', '.mov')


def get_embed_info(link: Optional[str]) -> Dict[str, Optional[str]]:
    """
    Work out how a media link should be embedded.

    Returns dict with:
    - 'type': one of 'none', 'youtube', 'video', 'iframe'
    - 'url': URL to embed (None for 'none')
    """
    if not link:
        return {'type': EMBED_NONE, 'url': None}

    if 'youtube.com' in link or 'youtu.be' in link:
        video_id = ''
        if 'youtube.com/watch?v=' in link:
            video_id = link.split('v=', 1)[1].split('&', 1)[0]
        elif 'youtu.be/' in link:
            video_id = link.split('youtu.be/', 1)[1].split('?', 1)[0]
        elif 'youtube.com/embed/' in link:
            return {'type': EMBED_YOUTUBE, 'url': link}

        if video_id:
            return {'type': EMBED_YOUTUBE, 'url': f'https://www.youtube.com/embed/{video_id}'}

    if link.lower().endswith(VIDEO_EXTENSIONS):
        return {'type': EMBED_VIDEO, 'url': link}

    # Anything else goes in a generic iframe
    return {'type': EMBED_IFRAME, 'url': link}
