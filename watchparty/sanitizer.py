"""
Plain-text sanitization for every user-supplied string
"""

import re
from .constants import (
    CONTROL_CHARACTER_PATTERN,
    MARKUP_TAG_PATTERN,
    SCRIPT_BLOCK_PATTERN,
    UNFINISHED_TAG_PATTERN
)

_script_blocks = re.compile(SCRIPT_BLOCK_PATTERN, re.IGNORECASE | re.DOTALL)
_markup_tags = re.compile(MARKUP_TAG_PATTERN)
_unfinished_tag = re.compile(UNFINISHED_TAG_PATTERN)
_control_characters = re.compile(CONTROL_CHARACTER_PATTERN)

def sanitize(text: str) -> str:
    """
    Neutralize markup so the result is safe to render as plain text
    
    Control characters go first, then script and style blocks together with
    their content. Every other tag or comment is dropped while its inner
    text is kept, and a tag left open at the end of the input is cut off
    with everything after it. Surrounding whitespace is trimmed last.
    After the tag passes no '<' is followed by a '>' or by a tag name, so
    applying the function twice gives the same result as applying it once.
    A bare '<' as in "a < b" is kept.
    
    Args:
        text: Raw user input
        
    Returns:
        Sanitized text ("" for non-string input)
    """
    if not isinstance(text, str) or not text:
        return ""
    
    cleaned = _control_characters.sub('', text)
    cleaned = _script_blocks.sub('', cleaned)
    cleaned = _markup_tags.sub('', cleaned)
    cleaned = _unfinished_tag.sub('', cleaned)
    return cleaned.strip()
