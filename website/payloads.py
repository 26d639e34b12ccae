import json


def request_data(request):
    """Request body as a dict: JSON when declared, form fields otherwise.

    Returns ``None`` for a body that is not a JSON object.
    """
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
    return request.POST.dict()


def as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')
