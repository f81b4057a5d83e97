"""Bind JSON request bodies to WTForms forms."""
import re
from typing import Any, Dict, Optional, Type

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from utils.errors import InvalidInput

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object")
    return payload


def bind_form(form_cls: Type[FlaskForm], payload: Optional[Dict[str, Any]] = None) -> FlaskForm:
    """Validate a flat JSON object with ``form_cls``; nested objects and lists are left to the caller.

    Raises InvalidInput carrying the first error of each failing field.
    """
    formdata = MultiDict()
    for key, value in (json_body() if payload is None else payload).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        formdata.add(snake_case(key), str(value))

    form = form_cls(formdata=formdata, meta={"csrf": False})
    if not form.validate():
        raise InvalidInput("; ".join(f"{name}: {errors[0]}" for name, errors in form.errors.items()))
    return form
