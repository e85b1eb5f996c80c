"""
JSend style response envelope.

    success: {"status": "success", "data": {...}}
    fail:    {"status": "fail", "data": {field: [messages]}, "message": "..."}
    error:   {"status": "error", "message": "..."}
"""
from rest_framework import status as http_status
from rest_framework.response import Response

SUCCESS = 'success'
FAIL = 'fail'
ERROR = 'error'


def success(data=None, message=None, status=http_status.HTTP_200_OK, headers=None):
    payload = {'status': SUCCESS, 'data': data}
    if message:
        payload['message'] = str(message)
    return Response(payload, status=status, headers=headers)


def fail(data=None, message=None, status=http_status.HTTP_400_BAD_REQUEST, headers=None):
    payload = {'status': FAIL, 'data': data}
    if message:
        payload['message'] = str(message)
    return Response(payload, status=status, headers=headers)


def error(message, status=http_status.HTTP_500_INTERNAL_SERVER_ERROR, data=None, headers=None):
    payload = {'status': ERROR, 'message': str(message)}
    if data:
        payload['data'] = data
    return Response(payload, status=status, headers=headers)
