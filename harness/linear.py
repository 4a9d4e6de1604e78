"""Linear tracker client.

Thin GraphQL wrapper covering the operations the fixture lifecycle needs:
teams, workflow states, projects, issues, relations and comments.

Usage:
    client = LinearClient(api_key=get_linear_api_key())
    team = client.resolve_team()
    state_id = client.get_backlog_state_id(team.id)
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

import requests

from .env import DEFAULT_LINEAR_API_URL, get_linear_api_key, get_linear_api_url
from .errors import TrackerError

REQUEST_TIMEOUT = 30


@dataclass
class Team:
    id: str
    key: str
    name: str = ""


@dataclass
class WorkflowState:
    id: str
    name: str
    type: str


@dataclass
class CreatedIssue:
    id: str
    identifier: str
    title: str


@dataclass
class IssueComment:
    body: str
    created_at: str


@dataclass
class ProjectIssue:
    id: str
    identifier: str
    title: str
    state_name: Optional[str] = None
    state_type: Optional[str] = None


TEAMS_QUERY = """
query Teams($filter: TeamFilter) {
  teams(filter: $filter) { nodes { id key name } }
}
"""

WORKFLOW_STATES_QUERY = """
query WorkflowStates($teamId: ID!) {
  workflowStates(filter: { team: { id: { eq: $teamId } } }) { nodes { id name type } }
}
"""

PROJECT_CREATE_MUTATION = """
mutation ProjectCreate($input: ProjectCreateInput!) {
  projectCreate(input: $input) { success project { id name } }
}
"""

PROJECT_ARCHIVE_MUTATION = """
mutation ProjectArchive($id: String!) {
  projectArchive(id: $id) { success }
}
"""

ISSUE_CREATE_MUTATION = """
mutation IssueCreate($input: IssueCreateInput!) {
  issueCreate(input: $input) { success issue { id identifier title } }
}
"""

ISSUE_UPDATE_MUTATION = """
mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) { success }
}
"""

ISSUE_STATE_QUERY = """
query IssueState($id: String!) {
  issue(id: $id) { state { id name type } }
}
"""

ISSUE_COMMENTS_QUERY = """
query IssueComments($id: String!) {
  issue(id: $id) { comments { nodes { body createdAt } } }
}
"""

PROJECT_ISSUES_QUERY = """
query ProjectIssues($projectId: ID!) {
  issues(filter: { project: { id: { eq: $projectId } } }, first: 100) {
    nodes { id identifier title state { name type } }
  }
}
"""

COMMENT_CREATE_MUTATION = """
mutation CommentCreate($input: CommentCreateInput!) {
  commentCreate(input: $input) { success comment { id } }
}
"""

ISSUE_RELATION_CREATE_MUTATION = """
mutation IssueRelationCreate($input: IssueRelationCreateInput!) {
  issueRelationCreate(input: $input) { success }
}
"""


class LinearClient:
    """Linear GraphQL client. Construct once and pass it where it is needed."""

    def __init__(self, api_key: str, api_url: str = DEFAULT_LINEAR_API_URL,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.api_url = api_url
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "LinearClient":
        """Build a client from LINEAR_API_KEY (and LINEAR_API_URL when set)."""
        return cls(api_key=get_linear_api_key(), api_url=get_linear_api_url())

    def get_headers(self) -> dict:
        """Personal API keys go in the Authorization header without a scheme."""
        return {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }

    def execute(self, query: str, variables: Optional[dict] = None) -> dict:
        """Run a GraphQL document and return its ``data`` payload."""
        try:
            response = self.session.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                headers=self.get_headers(),
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise TrackerError(f"Linear request failed: {e}") from e
        except ValueError as e:
            raise TrackerError(f"Linear returned invalid JSON: {e}") from e

        if payload.get("errors"):
            messages = "; ".join(err.get("message", str(err)) for err in payload["errors"])
            raise TrackerError(f"Linear GraphQL error: {messages}")
        return payload.get("data") or {}

    # ------------------------------------------------------------------
    # Teams and workflow states
    # ------------------------------------------------------------------

    def resolve_team(self, team_key: Optional[str] = None) -> Team:
        """Find a team by key, or fall back to the first team in the workspace."""
        variables = {"filter": {"key": {"eq": team_key}}} if team_key else {}
        nodes = self.execute(TEAMS_QUERY, variables)["teams"]["nodes"]
        if not nodes:
            if team_key:
                raise TrackerError(f'Team with key "{team_key}" not found')
            raise TrackerError("No teams found in workspace")
        team = nodes[0]
        return Team(id=team["id"], key=team["key"], name=team.get("name", ""))

    def workflow_states(self, team_id: str) -> List[WorkflowState]:
        nodes = self.execute(WORKFLOW_STATES_QUERY, {"teamId": team_id})["workflowStates"]["nodes"]
        return [WorkflowState(id=s["id"], name=s["name"], type=s["type"]) for s in nodes]

    def find_state_id(self, team_id: str, names: Iterable[str] = (),
                      types: Iterable[str] = ()) -> Optional[str]:
        """Look up a workflow state by name or type.

        State ids differ per workspace, so lookups go through the semantic
        name or state type rather than a stored id.
        """
        names, types = set(names), set(types)
        for state in self.workflow_states(team_id):
            if state.name in names or state.type in types:
                return state.id
        return None

    def get_backlog_state_id(self, team_id: str) -> Optional[str]:
        return self.find_state_id(team_id, names=["Backlog"], types=["backlog"])

    def get_canceled_state_id(self, team_id: str) -> Optional[str]:
        return self.find_state_id(team_id, names=["Canceled"], types=["cancelled", "canceled"])

    def get_started_state_id(self, team_id: str) -> Optional[str]:
        return self.find_state_id(team_id, names=["In Progress"], types=["started"])

    def get_completed_state_id(self, team_id: str) -> Optional[str]:
        return self.find_state_id(team_id, names=["Done"], types=["completed"])

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, name: str, team_ids: List[str], content: Optional[str] = None) -> str:
        """Create a project and return its id."""
        project_input = {"name": name, "teamIds": team_ids}
        if content:
            project_input["content"] = content
        result = self.execute(PROJECT_CREATE_MUTATION, {"input": project_input})["projectCreate"]
        if not result.get("success") or not result.get("project"):
            raise TrackerError(f"Failed to create project: {name}")
        return result["project"]["id"]

    def archive_project(self, project_id: str) -> None:
        result = self.execute(PROJECT_ARCHIVE_MUTATION, {"id": project_id})["projectArchive"]
        if not result.get("success"):
            raise TrackerError(f"Failed to archive project {project_id}")

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def create_issue(self, title: str, description: str, team_id: str, project_id: str,
                     priority: int, state_id: Optional[str] = None) -> CreatedIssue:
        issue_input = {
            "title": title,
            "description": description,
            "teamId": team_id,
            "projectId": project_id,
            "priority": priority,
        }
        if state_id:
            issue_input["stateId"] = state_id
        result = self.execute(ISSUE_CREATE_MUTATION, {"input": issue_input})["issueCreate"]
        issue = result.get("issue")
        if not result.get("success") or not issue:
            raise TrackerError(f"Failed to create issue: {title}")
        return CreatedIssue(id=issue["id"], identifier=issue["identifier"], title=issue["title"])

    def update_issue_state(self, issue_id: str, state_id: str) -> None:
        result = self.execute(ISSUE_UPDATE_MUTATION, {"id": issue_id, "input": {"stateId": state_id}})
        if not result["issueUpdate"].get("success"):
            raise TrackerError(f"Failed to update issue {issue_id}")

    def get_issue_state(self, issue_id: str) -> WorkflowState:
        issue = self.execute(ISSUE_STATE_QUERY, {"id": issue_id}).get("issue")
        state = issue.get("state") if issue else None
        if not state:
            raise TrackerError(f"No state found for issue {issue_id}")
        return WorkflowState(id=state.get("id", ""), name=state["name"], type=state["type"])

    def list_project_issues(self, project_id: str) -> List[ProjectIssue]:
        nodes = self.execute(PROJECT_ISSUES_QUERY, {"projectId": project_id})["issues"]["nodes"]
        issues = []
        for node in nodes:
            state = node.get("state") or {}
            issues.append(ProjectIssue(
                id=node["id"],
                identifier=node["identifier"],
                title=node["title"],
                state_name=state.get("name"),
                state_type=state.get("type"),
            ))
        return issues

    def create_blocking_relation(self, blocked_issue_id: str, blocker_issue_id: str) -> None:
        """Record that ``blocker_issue_id`` blocks ``blocked_issue_id``.

        Linear reads ``issueId`` as the blocked issue and ``relatedIssueId``
        as the blocker for the ``blocks`` relation type.
        """
        relation_input = {
            "issueId": blocked_issue_id,
            "relatedIssueId": blocker_issue_id,
            "type": "blocks",
        }
        result = self.execute(ISSUE_RELATION_CREATE_MUTATION, {"input": relation_input})
        if not result["issueRelationCreate"].get("success"):
            raise TrackerError(f"Failed to relate {blocker_issue_id} -> {blocked_issue_id}")

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def get_issue_comments(self, issue_id: str) -> List[IssueComment]:
        issue = self.execute(ISSUE_COMMENTS_QUERY, {"id": issue_id}).get("issue") or {}
        nodes = (issue.get("comments") or {}).get("nodes", [])
        return [IssueComment(body=c["body"], created_at=c["createdAt"]) for c in nodes]

    def create_comment(self, issue_id: str, body: str) -> str:
        result = self.execute(COMMENT_CREATE_MUTATION, {"input": {"issueId": issue_id, "body": body}})
        comment = result["commentCreate"].get("comment")
        if not comment:
            raise TrackerError(f"Failed to comment on issue {issue_id}")
        return comment["id"]
