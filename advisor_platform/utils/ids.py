import re

from bson import ObjectId
from bson.errors import InvalidId
import structlog

from advisor_platform.utils.errors import InvalidIdError

logger = structlog.get_logger(__name__)

OBJECT_ID_PATTERN = re.compile(r'^[0-9a-fA-F]{24}$')
_OBJECT_PLACEHOLDER = '[object Object]'


def extract_client_id(client_id):
    """
    Normalise a MongoDB id given in any of the shapes clients send.

    Accepts plain strings, ObjectId instances, ``{'_id': ...}`` wrappers
    (recursively), extended JSON ``{'$oid': ...}``, objects carrying a
    string ``id`` and integers. Returns the id as a string or None.
    """
    if client_id is None or client_id == '':
        logger.debug("extract_client_id_empty")
        return None

    if isinstance(client_id, str):
        trimmed = client_id.strip()
        if trimmed == '' or trimmed == _OBJECT_PLACEHOLDER:
            logger.warning("extract_client_id_invalid_string", value=trimmed)
            return None
        return trimmed

    if isinstance(client_id, ObjectId):
        return str(client_id)

    # bool is an int subclass; never an id
    if isinstance(client_id, bool):
        return None

    if isinstance(client_id, int):
        return str(client_id)

    if isinstance(client_id, dict):
        if client_id.get('_id'):
            return extract_client_id(client_id['_id'])
        if client_id.get('$oid'):
            return extract_client_id(client_id['$oid'])
        if isinstance(client_id.get('id'), str):
            return extract_client_id(client_id['id'])
        logger.warning("extract_client_id_unrecognised_mapping", keys=list(client_id.keys()))
        return None

    # Objects with an id attribute (model instances)
    nested = getattr(client_id, 'id', None)
    if isinstance(nested, (str, ObjectId)):
        return extract_client_id(nested)

    string_value = str(client_id).strip()
    if string_value and string_value != _OBJECT_PLACEHOLDER and not string_value.startswith('<'):
        return string_value

    logger.warning("extract_client_id_failed", value_type=type(client_id).__name__)
    return None


def is_valid_object_id(value):
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def validate_client_id(client_id):
    """Describe how an id was interpreted, for debugging client payloads"""
    extracted = extract_client_id(client_id)
    return {
        'original': client_id if isinstance(client_id, (str, int, dict, type(None))) else str(client_id),
        'extracted': extracted,
        'is_valid': is_valid_object_id(extracted),
    }


def to_object_id(value, label='ID'):
    """Convert any accepted id shape to an ObjectId or raise InvalidIdError"""
    extracted = extract_client_id(value)
    if not is_valid_object_id(extracted):
        raise InvalidIdError(f'Invalid {label} format')
    try:
        return ObjectId(extracted)
    except InvalidId:
        raise InvalidIdError(f'Invalid {label} format')
