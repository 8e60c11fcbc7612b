import logging
import re
import uuid

logger = logging.getLogger(__name__)

FALLBACK_IDENTIFIER = '_input'

_INVALID_IDENTIFIER_CHARS = re.compile(r'[^A-Za-z0-9_$]')


def sanitize_identifier(label):
    """
    Turn a node label into a name usable as a script variable.

    Every character outside [A-Za-z0-9_$] becomes an underscore, a leading
    digit gets an underscore prefix and an empty result falls back to
    FALLBACK_IDENTIFIER.
    """
    if label is None:
        label = ''
    sanitized = _INVALID_IDENTIFIER_CHARS.sub('_', str(label))
    if sanitized[:1].isdigit():
        sanitized = '_' + sanitized
    if sanitized == '':
        sanitized = FALLBACK_IDENTIFIER
    return sanitized


def generate_random_uuid_string() -> str:
    """Generates a UUID version 4 and returns its standard string representation."""
    return str(uuid.uuid4())
