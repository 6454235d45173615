# Notification strings per locale. Placeholders: {name}.
MESSAGES = {
    'en': {
        'someone': 'Someone',
        'new_message': 'New message',
        'voice_message': '🎤 Voice message',
        'photo': '📷 Photo',
        'media': '[Media]',
        'story_reply_title': '{name} replied to your story',
        'story_reply_body': 'New reply',
        'story_like_title': '❤️ New like',
        'story_like_body': '{name} liked your story',
        'new_like_title': '❤️ New like',
        'new_like_body': '{name} liked your post',
        'new_follower_title': 'New follower',
        'new_follower_body': '{name} started following you',
        'new_story_title': '{name}',
        'new_story_body': '{name} posted a new story',
        'profile_view_title': '👀 Profile visit',
        'profile_view_body': '{name} viewed your profile',
    },
    'ar': {
        'someone': 'شخص ما',
        'new_message': 'رسالة جديدة',
        'voice_message': '🎤 رسالة صوتية',
        'photo': '📷 صورة',
        'media': '[وسائط]',
        'story_reply_title': 'رد {name} على قصتك',
        'story_reply_body': 'رد جديد',
        'story_like_title': '❤️ إعجاب جديد',
        'story_like_body': 'أعجب {name} بقصتك',
        'new_like_title': '❤️ إعجاب جديد',
        'new_like_body': 'أعجب {name} بمنشورك',
        'new_follower_title': 'متابع جديد',
        'new_follower_body': 'بدأ {name} بمتابعتك',
        'new_story_title': '{name}',
        'new_story_body': 'نشر {name} قصة جديدة',
        'profile_view_title': '👀 زار ملفك الشخصي',
        'profile_view_body': '{name} شاهد ملفك الشخصي',
    },
}

FALLBACK_LOCALE = 'en'


def normalize_locale(locale: str) -> str:
    """Reduce 'ar-SA' / 'en_US' style tags to a supported language code"""
    if not locale:
        return FALLBACK_LOCALE
    language = locale.replace('_', '-').split('-')[0].lower()
    return language if language in MESSAGES else FALLBACK_LOCALE


def translate(locale: str, key: str, **params) -> str:
    catalog = MESSAGES[normalize_locale(locale)]
    template = catalog.get(key) or MESSAGES[FALLBACK_LOCALE][key]
    return template.format(**params)
