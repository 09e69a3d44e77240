"""
Text templates and reply tables.

  template / join   — runtime string templates with positional and named slots
  REPLIES           — per-language reply tables consulted by dialog handlers
"""
from templates.template import Template, template, join
from templates.replies import (
    DEFAULT_LANGUAGE, REPLIES, available_languages, get_replies, has_language,
)

__all__ = [
    "Template", "template", "join",
    "DEFAULT_LANGUAGE", "REPLIES", "available_languages", "get_replies", "has_language",
]
