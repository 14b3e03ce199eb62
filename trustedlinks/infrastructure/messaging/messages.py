OTP_MESSAGES = {
    "en": "🔐 Trusted Links verification code: {code}\nPlease enter this code to verify your WhatsApp number.",
    "ar": "🔐 رمز التحقق من Trusted Links: {code}\nيرجى إدخال هذا الرمز لتأكيد رقم واتساب الخاص بك.",
}

# WhatsApp template language codes
TEMPLATE_LANGUAGES = {
    "en": "en_US",
    "ar": "ar",
}


def resolve_locale(locale: str) -> str:
    locale = (locale or "en").lower().split("-")[0].split("_")[0]
    return locale if locale in OTP_MESSAGES else "en"


def render_otp_message(code: str, locale: str = "en") -> str:
    return OTP_MESSAGES[resolve_locale(locale)].format(code=code)
