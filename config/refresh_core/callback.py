"""Callback notification to the calling pipeline."""

import requests

from .errors import CallbackDeliveryError


def callback_body(status_code):
    return {'StatusCode': str(status_code)}


def post_callback(callback_uri, status_code):
    """
    POST the status to the callback address.

    The response status is not checked.

    Raises:
        CallbackDeliveryError: If the request could not be sent
    """
    try:
        requests.post(callback_uri, json=callback_body(status_code))
    except requests.RequestException as e:
        raise CallbackDeliveryError(f"Callback to {callback_uri} failed: {e}") from e


def notify_callback(callback_uri, status_code):
    """
    Send the callback once, dropping delivery failures.

    Returns:
        bool: True if the request was sent, False otherwise
    """
    try:
        post_callback(callback_uri, status_code)
    except CallbackDeliveryError as e:
        print(f"  Warning: {e}")
        return False

    print(f"  Callback sent: StatusCode {status_code}")
    return True
