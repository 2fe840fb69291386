"""Keyboard hints attached to replies.

Transport-neutral: the chat channel decides how to render a
:class:`KeyboardButton` (inline callback or URL button).
"""

from __future__ import annotations

from dataclasses import dataclass

from taxibot.nl.intents import Intent


@dataclass(frozen=True, slots=True)
class KeyboardButton:
    text: str
    callback_data: str | None = None
    url: str | None = None


Keyboard = tuple[tuple[KeyboardButton, ...], ...]

ANDROID_DRIVER_APP = "https://play.google.com/store/apps/details?id=com.naughtysoft.TtcDriver"
IPHONE_DRIVER_APP = (
    "https://apps.apple.com/ru/app/element-%D0%BF%D1%80%D0%B8%D0%BB%D0%BE%D0%B6%D0%B5%D0%BD%D0%B8%D0%B5-"
    "%D0%B2%D0%BE%D0%B4%D0%B8%D1%82%D0%B5%D0%BB%D1%8F/id1449354142"
)

MENU_ROW = (KeyboardButton("Меню", callback_data="back_to_main"),)
CALL_SERVICE = KeyboardButton("Позвонить в сервис", callback_data="call_service")
CONTACT_VLADIMIR = KeyboardButton("Связаться с Владимиром", url="https://t.me/VV_Korotkov")
CONTACT_RUZAL = KeyboardButton("Связаться с Рузалем", url="https://t.me/ruzalru")

_INTENT_ROWS: dict[Intent, Keyboard] = {
    Intent.SERVICE: ((CALL_SERVICE,),),
    Intent.CAR_QUESTION: ((CONTACT_VLADIMIR,), (CALL_SERVICE,)),
    Intent.DTP: ((CONTACT_RUZAL,),),
    Intent.FINE_CHECK: ((
        KeyboardButton("Android", url=ANDROID_DRIVER_APP),
        KeyboardButton("iPhone", url=IPHONE_DRIVER_APP),
    ),),
    Intent.LONG_DISTANCE: ((CONTACT_VLADIMIR,),),
}


def keyboard_for(intent: Intent) -> Keyboard:
    """Intent-specific rows followed by the menu row."""
    return _INTENT_ROWS.get(intent, ()) + (MENU_ROW,)
