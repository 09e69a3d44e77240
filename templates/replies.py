"""
Reply tables — bot texts keyed by language code.

Plain strings are sent as is; templates are called with the values named in
their slots. `get_replies()` falls back to the default language.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from templates.template import join, template

DEFAULT_LANGUAGE = "en"

REPLIES_EN: Mapping[str, Any] = {
    "greeting": (
        "Hello! Welcome to DUCSS Panel, University of Delhi!\n\n"
        "Here you can stay updated with all events around you!"
    ),
    "welcome_back": template("Hi ", 0, "! Welcome back!"),
    "about": (
        "DUCSS Panel Bot, for all your event needs, and more!\n\n"
        "Copyright (C) The DUCS Developers, 2022"
    ),
    "prompt": {
        "name": "Your good name?",
        "college": template(
            "Hi ", 0, ", which college are you from? Let us know using the list below!"
        ),
        "college_name": (
            "Not from the colleges from that list? No worries! "
            "Let us know the name of your college."
        ),
        "error": "That doesn't seem right. Let's try again.",
    },
    "college": {
        "title": "College Selection",
        "description": (
            "Select the college you are from, by specifying one of the options "
            "from the list below. In case your college is not listed, kindly "
            "select 'Other' and write your college name."
        ),
        "button_text": "View College List",
        "section_title": "Colleges",
    },
    "describe_user": join(
        template("Here's what we recorded so far:\n\n"),
        template("Name: ", "name", "\nCollege: ", "college", "\nLanguage: ", "language"),
    ),
    "lang": {
        "no_such_lang": template(
            "Sorry, '", 0, "' is not available. Available languages: ", 1, "."
        ),
        "changed": template("Language set to ", 0, "."),
    },
}

REPLIES: Mapping[str, Mapping[str, Any]] = MappingProxyType({
    "en": REPLIES_EN,
})


def available_languages() -> list[str]:
    return sorted(REPLIES)


def has_language(language: str) -> bool:
    return language in REPLIES


def get_replies(language: str | None) -> Mapping[str, Any]:
    return REPLIES.get(language or DEFAULT_LANGUAGE, REPLIES[DEFAULT_LANGUAGE])
