from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class BusinessRuleError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The operation violates a business rule."
    default_code = "business_rule"

    def __init__(self, detail=None, code=None, fields=None):
        super().__init__(detail=detail, code=code)
        self.fields = fields or {}


class InvalidAdminKey(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Invalid Admin Key."
    default_code = "invalid_admin_key"

    def __init__(self, action=None):
        detail = f"Invalid Admin Key. {action} unauthorized." if action else None
        super().__init__(detail=detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {}

    if not fields and getattr(exc, "fields", None):
        fields = exc.fields

    if isinstance(detail, list):
        detail = detail[0] if detail else "Request failed"

    response.data = {
        "code": getattr(exc, "default_code", "error"),
        "detail": detail,
        "fields": fields,
    }
    return response
