from rest_framework import status as http_status
from rest_framework.response import Response


def envelope(status_code, message, data=None, success=None):
    """Build the {status, success, message, data} body shared by all endpoints"""
    if success is None:
        success = status_code < 400
    return {
        'status': status_code,
        'success': success,
        'message': message,
        'data': data,
    }


def api_response(data=None, message='OK', status=http_status.HTTP_200_OK):
    return Response(envelope(status, message, data), status=status)
