"""
Display-language messages

The language only selects which text goes in a response's `message` field.
Prompts are forwarded to vendors exactly as the user typed them.
"""
from typing import Optional

from fastapi import Request

DEFAULT_LANGUAGE = "en"

SUPPORTED_LANGUAGES = {
    "en": "English",
    "my": "Myanmar",
    "th": "Thai",
}

MESSAGES = {
    "image_generated": {
        "en": "Your image has been created successfully",
        "my": "သင့်ပုံကို အောင်မြင်စွာ ဖန်တီးပြီးပါပြီ",
        "th": "สร้างรูปภาพของคุณเรียบร้อยแล้ว",
    },
    "video_generated": {
        "en": "Your video has been successfully generated!",
        "my": "သင့်ဗီဒီယိုကို အောင်မြင်စွာ ဖန်တီးပြီးပါပြီ",
        "th": "สร้างวิดีโอของคุณเรียบร้อยแล้ว",
    },
    "speech_generated": {
        "en": "Your audio is ready",
        "my": "သင့်အသံဖိုင် အသင့်ဖြစ်ပါပြီ",
        "th": "ไฟล์เสียงของคุณพร้อมแล้ว",
    },
    "effect_applied": {
        "en": "Video processed with the {effect} effect",
        "my": "{effect} အထူးပြုလုပ်ချက်ဖြင့် ဗီဒီယိုကို ပြင်ဆင်ပြီးပါပြီ",
        "th": "ประมวลผลวิดีโอด้วยเอฟเฟกต์ {effect} แล้ว",
    },
    "script_video_generated": {
        "en": "Created {scenes} scenes from your script",
        "my": "သင့်ဇာတ်ညွှန်းမှ ဇာတ်ကွက် {scenes} ခု ဖန်တီးပြီးပါပြီ",
        "th": "สร้าง {scenes} ฉากจากสคริปต์ของคุณแล้ว",
    },
    "story_generated": {
        "en": "Your {scenes}-scene story is ready",
        "my": "ဇာတ်ကွက် {scenes} ခုပါသော သင့်ဇာတ်လမ်း အသင့်ဖြစ်ပါပြီ",
        "th": "เรื่องราว {scenes} ฉากของคุณพร้อมแล้ว",
    },
    "character_template_generated": {
        "en": "Character template created! Review and edit the details before generating the story.",
        "my": "ဇာတ်ကောင် ပုံစံ ဖန်တီးပြီးပါပြီ။ ဇာတ်လမ်း မဖန်တီးမီ အသေးစိတ်ကို စစ်ဆေးပြင်ဆင်ပါ။",
        "th": "สร้างเทมเพลตตัวละครแล้ว! ตรวจสอบและแก้ไขรายละเอียดก่อนสร้างเรื่องราว",
    },
    "payment_submitted": {
        "en": "Payment submitted. Credits will be added within 24 hours of verification.",
        "my": "ငွေပေးချေမှု တင်ပြပြီးပါပြီ။ စစ်ဆေးပြီး ၂၄ နာရီအတွင်း ခရက်ဒစ် ထည့်ပေးပါမည်။",
        "th": "ส่งข้อมูลการชำระเงินแล้ว เครดิตจะถูกเพิ่มภายใน 24 ชั่วโมงหลังการตรวจสอบ",
    },
    "upload_complete": {
        "en": "File uploaded",
        "my": "ဖိုင် တင်ပြီးပါပြီ",
        "th": "อัปโหลดไฟล์แล้ว",
    },
}


def normalize_language(lang: Optional[str]) -> str:
    """Map "th-TH", "MY" etc. onto a supported code, defaulting to English"""
    if not lang:
        return DEFAULT_LANGUAGE
    code = lang.strip().lower().split("-")[0].split("_")[0]
    return code if code in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def translate_message(key: str, lang: Optional[str] = None, **params) -> str:
    """Localised message for `key`, falling back to English then to the key itself"""
    variants = MESSAGES.get(key)
    if variants is None:
        return key
    text = variants.get(normalize_language(lang)) or variants[DEFAULT_LANGUAGE]
    return text.format(**params) if params else text


def get_display_language(request: Request) -> str:
    """FastAPI dependency: ?lang=, then X-Language, then Accept-Language"""
    lang = request.query_params.get("lang") or request.headers.get("X-Language")
    if not lang:
        accept = request.headers.get("Accept-Language", "")
        lang = accept.split(",")[0] if accept else None
    return normalize_language(lang)
