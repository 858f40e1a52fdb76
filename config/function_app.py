"""
Azure Functions HTTP trigger for semantic model refreshes.

The calling pipeline posts {workspaceName, queryXMLA, callBackUri} to
/api/refresh and waits for the callback.
"""

import json

import azure.functions as func

from refresh_core import bootstrap, handle_webhook

bootstrap()

app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)


def handle_refresh_request(req: func.HttpRequest) -> func.HttpResponse:
    status_code, payload = handle_webhook(req.get_body())
    return func.HttpResponse(json.dumps(payload), status_code=status_code, mimetype="application/json")


@app.route(route="refresh", methods=["POST"])
def refresh(req: func.HttpRequest) -> func.HttpResponse:
    return handle_refresh_request(req)
