import azure.functions as func
import logging, json

from taskboard import conversation_api, dashboard_api

app = func.FunctionApp()

# Environment variable controls:
# GITHUB_TOKEN (required)
# TASKBOARD_REPOS: comma-separated list owner/repo used when no repos are requested
# TASKBOARD_SHOW_COMPLETED: if '1' or 'true', include closed and merged conversations
# TASKBOARD_INSPECT_COMMENTS: if '0' or 'false', skip loading comments (faster, no question detection)

_TRUE_QUERY_VALUES = {'1', 'true', 'yes', 'on'}


def _json_response(body: dict) -> func.HttpResponse:
    status = 200
    if "error" in body:
        status = 502 if body.pop("upstream", False) else 400
    return func.HttpResponse(json.dumps(body), status_code=status, mimetype="application/json")


def _query_flag(req: func.HttpRequest, name: str):
    value = req.params.get(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUE_QUERY_VALUES


@app.function_name(name="Dashboard")
@app.route(route="dashboard", methods=[func.HttpMethod.GET], auth_level=func.AuthLevel.FUNCTION)
def Dashboard(req: func.HttpRequest) -> func.HttpResponse:
    """HTTP endpoint returning ranked conversations for the tracked repositories.

    Optional query parameters: repos (comma-separated owner/repo), show_completed, inspect_comments.
    """
    repos_param = req.params.get('repos') or ''
    input_data = {
        "repo_names": [r.strip() for r in repos_param.split(',') if r.strip()],
        "show_completed": _query_flag(req, 'show_completed'),
        "inspect_comments": _query_flag(req, 'inspect_comments'),
    }
    logging.info(f"[Dashboard] Refresh requested for {input_data['repo_names'] or 'TASKBOARD_REPOS'}")
    return _json_response(dashboard_api(input_data))


@app.function_name(name="Conversation")
@app.route(route="conversations/{owner}/{repo}/{number}", methods=[func.HttpMethod.GET], auth_level=func.AuthLevel.FUNCTION)
def Conversation(req: func.HttpRequest) -> func.HttpResponse:
    """HTTP endpoint returning one conversation with agent-annotated messages."""
    owner = req.route_params.get('owner')
    repo = req.route_params.get('repo')
    input_data = {
        "repo_name": f"{owner}/{repo}",
        "number": req.route_params.get('number'),
    }
    logging.info(f"[Conversation] {input_data['repo_name']}#{input_data['number']}")
    return _json_response(conversation_api(input_data))


@app.function_name(name="ConversationById")
@app.route(route="conversations/{conversation_id}", methods=[func.HttpMethod.GET], auth_level=func.AuthLevel.FUNCTION)
def ConversationById(req: func.HttpRequest) -> func.HttpResponse:
    """HTTP endpoint for the dashboard's conversation ids, e.g. acme-widgets-issue-7."""
    input_data = {"conversation_id": req.route_params.get('conversation_id')}
    logging.info(f"[ConversationById] {input_data['conversation_id']}")
    return _json_response(conversation_api(input_data))
