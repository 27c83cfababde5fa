"""
Bilingual (English / Turkish) user-facing messages keyed by error code

Templates may reference keys from an exception's ``details`` dict.
"""

from typing import Any, Dict, Optional

ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "NOT_FOUND": {
        "en": "{resource} not found",
        "tr": "{resource} bulunamadı",
    },
    "FORBIDDEN": {
        "en": "You do not have permission to perform this action",
        "tr": "Bu işlemi gerçekleştirme izniniz yok",
    },
    "INVALID_STATE": {
        "en": "This action is not allowed while the {resource} is {status}",
        "tr": "{resource} durumu {status} iken bu işleme izin verilmiyor",
    },
    "PAST_SCHEDULE": {
        "en": "Cannot book or cancel a class that has already started",
        "tr": "Başlamış bir ders için rezervasyon yapılamaz veya iptal edilemez",
    },
    "CANCELLATION_TOO_LATE": {
        "en": "Cancellations must be made at least {window_hours:g} hours before the class starts",
        "tr": "İptaller dersin başlamasından en az {window_hours:g} saat önce yapılmalıdır",
    },
    "SCHEDULE_FULL": {
        "en": "This class is full. Please join the waiting list",
        "tr": "Bu ders dolu. Lütfen bekleme listesine katılın",
    },
    "DUPLICATE_BOOKING": {
        "en": "You already have a booking for this class",
        "tr": "Bu ders için zaten bir rezervasyonunuz var",
    },
    "ALREADY_WAITING": {
        "en": "You are already on the waiting list at position {position}",
        "tr": "Zaten bekleme listesinde {position}. sıradasınız",
    },
    "CLASS_NOT_FULL": {
        "en": "Class has available spots. Please book directly",
        "tr": "Derste boş yer var. Lütfen doğrudan rezervasyon yapın",
    },
    "NOT_NOTIFIED": {
        "en": "You have not been notified yet. Please wait for a spot",
        "tr": "Henüz bilgilendirilmediniz. Lütfen bir yer açılmasını bekleyin",
    },
    "NOTIFICATION_EXPIRED": {
        "en": "Your waiting list notification has expired. You have been removed from the list",
        "tr": "Bekleme listesi bildiriminizin süresi doldu. Listeden çıkarıldınız",
    },
    "BOOKING_CONFLICT": {
        "en": "You have a conflicting booking for \"{class_name}\" at {start_time}",
        "tr": "{start_time} saatinde \"{class_name}\" için çakışan bir rezervasyonunuz var",
    },
    "ALREADY_RATED": {
        "en": "You have already rated this class",
        "tr": "Bu dersi zaten değerlendirdiniz",
    },
    "FUTURE_CLASS": {
        "en": "This class has not yet occurred",
        "tr": "Bu ders henüz gerçekleşmedi",
    },
    "ALREADY_CANCELLED": {
        "en": "Schedule is already cancelled",
        "tr": "Program zaten iptal edilmiş",
    },
    "SCHEDULE_HAS_BOOKINGS": {
        "en": "Cannot delete schedule with existing bookings. Please cancel instead",
        "tr": "Mevcut rezervasyonları olan program silinemez. Lütfen iptal edin",
    },
    "VALIDATION_ERROR": {
        "en": "Invalid request",
        "tr": "Geçersiz istek",
    },
    "LOCK_FAILED": {
        "en": "The class is busy. Please try again",
        "tr": "Ders şu anda meşgul. Lütfen tekrar deneyin",
    },
    "INTERNAL_ERROR": {
        "en": "An unexpected error occurred. Please try again later",
        "tr": "Beklenmeyen bir hata oluştu. Lütfen daha sonra tekrar deneyin",
    },
}

SUPPORTED_LANGUAGES = ("en", "tr")


def resolve_language(accept_language: Optional[str], default: str = "en") -> str:
    """
    Pick a supported language from an Accept-Language header value
    """
    if not accept_language:
        return default
    for part in accept_language.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in SUPPORTED_LANGUAGES:
            return primary
    return default


def get_error_message(code: str, lang: str = "en", details: Optional[Dict[str, Any]] = None) -> str:
    """
    Render the message for an error code, falling back to English and then
    to the generic internal error text
    """
    templates = ERROR_MESSAGES.get(code) or ERROR_MESSAGES["INTERNAL_ERROR"]
    template = templates.get(lang) or templates["en"]
    try:
        return template.format(**(details or {}))
    except (KeyError, ValueError, IndexError):
        return template
