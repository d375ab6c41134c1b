from flask import request
from flask_login import current_user

from advisor_platform.models.client import Client
from advisor_platform.utils.errors import NotFoundError, ValidationError
from advisor_platform.utils.ids import to_object_id


def json_body():
    """Request JSON as a dict; an empty body reads as {}"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def int_arg(name, default, minimum=None, maximum=None):
    value = request.args.get(name, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def get_owned_client(client_id):
    """The current advisor's client; malformed id -> 400, foreign or missing -> 404"""
    object_id = to_object_id(client_id, 'client ID')
    client = Client.find_owned(object_id, current_user.id)
    if client is None:
        raise NotFoundError('Client not found or unauthorized access')
    return client
