"""Issue definitions for the fixture projects.

Two tables: ``SINGLE_ISSUES`` (one issue per run, picked by key) and
``PROJECT_ISSUES`` (the full seven-issue Task Manager API project with
blocking relations across four waves).
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class IssueDef:
    key: str
    title: str
    wave: int
    priority: int
    description: str
    blocked_by_keys: List[str] = field(default_factory=list)
    needs_db: bool = False


def build_dependency_map(defs: List[IssueDef]) -> Dict[str, List[str]]:
    """Map each blocked issue key to its blockers; unblocked issues are omitted."""
    return {d.key: list(d.blocked_by_keys) for d in defs if d.blocked_by_keys}


def build_waves(defs: List[IssueDef]) -> Dict[str, List[str]]:
    """Group issue keys by declared wave, keeping definition order."""
    waves: Dict[str, List[str]] = {}
    for d in defs:
        waves.setdefault(str(d.wave), []).append(d.key)
    return waves


FOUNDATION_SCAFFOLD = IssueDef(
    key="A",
    title="[Foundation] Set up Express + TypeScript project scaffold",
    wave=0,
    priority=2,
    description="""## Summary
Set up the Express + TypeScript project scaffold so that all subsequent features have a working server to build upon.

## Current vs Expected Behavior
**Current:** The project has a minimal `src/index.ts` with a single GET / endpoint. No health check, no dev tooling configured.
**Expected:** A fully configured Express + TypeScript server with health check endpoint and hot-reload dev workflow.

## Acceptance Criteria
- [ ] Express server listens on configurable PORT (env var), GET /health returns `{ status: "ok" }`
- [ ] TypeScript strict mode enabled, ESLint configuration passes with no errors
- [ ] `npm run dev` starts the server with hot-reload (tsx watch)

## Scope
**In scope:** Express server setup, TypeScript config, health endpoint, dev script
**Out of scope:** Database setup, any business logic endpoints, testing framework""",
)

FOUNDATION_DATABASE = IssueDef(
    key="B",
    title="[Foundation] Configure PostgreSQL with Prisma ORM",
    wave=0,
    priority=2,
    needs_db=True,
    description="""## Summary
Configure Prisma ORM with PostgreSQL so the application has a database layer for persisting tasks and users.

## Current vs Expected Behavior
**Current:** Prisma schema exists with generator and datasource config only - no models defined.
**Expected:** Prisma schema defines Task and User models, migrations run successfully, and Prisma Client is exported for use.

## Acceptance Criteria
- [ ] Prisma schema defines Task model (id, title, description, status, createdAt, updatedAt) and User model (id, email, name, createdAt)
- [ ] `npx prisma migrate dev` creates tables without errors
- [ ] Prisma Client is exported from `src/lib/prisma.ts` as a singleton

## Scope
**In scope:** Prisma schema models, migration, client export
**Out of scope:** API endpoints, seed data, connection pooling""",
)

HEALTH_ENDPOINT = IssueDef(
    key="S",
    title="Add GET /health endpoint",
    wave=0,
    priority=2,
    description="""## Summary
Add a health check endpoint to the Express server.

## Acceptance Criteria
- [ ] GET /health returns `{ status: "ok" }` with HTTP 200""",
)

SINGLE_ISSUES: Dict[str, IssueDef] = {
    d.key: d for d in (HEALTH_ENDPOINT, FOUNDATION_SCAFFOLD, FOUNDATION_DATABASE)
}
DEFAULT_SINGLE_ISSUE = "S"

PROJECT_ISSUES: List[IssueDef] = [
    FOUNDATION_SCAFFOLD,
    FOUNDATION_DATABASE,
    IssueDef(
        key="C",
        title="[Core] Implement Task CRUD endpoints",
        wave=1,
        priority=3,
        blocked_by_keys=["A", "B"],
        description="""## Summary
Implement full CRUD endpoints for the Task resource so users can create, read, update, and delete tasks via the REST API.

## Current vs Expected Behavior
**Current:** No task endpoints exist.
**Expected:** Five REST endpoints for task management with proper HTTP status codes.

## Acceptance Criteria
- [ ] POST /tasks creates a task (201), GET /tasks lists all tasks (200), GET /tasks/:id returns one task (200) or 404
- [ ] PUT /tasks/:id updates a task (200) or 404, DELETE /tasks/:id removes a task (204) or 404
- [ ] All responses use consistent JSON format, proper Content-Type headers

## Scope
**In scope:** Task CRUD endpoints, basic error responses for not-found
**Out of scope:** Input validation, pagination, sorting, user associations""",
    ),
    IssueDef(
        key="D",
        title="[Core] Implement User CRUD endpoints",
        wave=1,
        priority=3,
        blocked_by_keys=["A", "B"],
        description="""## Summary
Implement full CRUD endpoints for the User resource so the application can manage user accounts.

## Current vs Expected Behavior
**Current:** No user endpoints exist.
**Expected:** Five REST endpoints for user management with email uniqueness enforcement.

## Acceptance Criteria
- [ ] POST /users creates a user (201), GET /users lists all users (200), GET /users/:id returns one user (200) or 404
- [ ] PUT /users/:id updates a user (200) or 404, DELETE /users/:id removes a user (204) or 404
- [ ] Email uniqueness is enforced at the database level - duplicate email returns 409 Conflict

## Scope
**In scope:** User CRUD endpoints, email uniqueness constraint
**Out of scope:** Authentication, password hashing, user roles""",
    ),
    IssueDef(
        key="E",
        title="[Integration] Add user-task associations and filtering",
        wave=2,
        priority=3,
        blocked_by_keys=["C", "D"],
        description="""## Summary
Add the ability to assign tasks to users and filter tasks by assignee, connecting the Task and User resources.

## Current vs Expected Behavior
**Current:** Tasks and users exist independently with no relationship between them.
**Expected:** Tasks can optionally be assigned to a user, and tasks can be filtered by assignee.

## Acceptance Criteria
- [ ] Tasks have an optional assigneeId foreign key to User; GET /users/:id/tasks returns that user's tasks
- [ ] GET /tasks?assigneeId=<id> filters tasks by assignee
- [ ] Assigning a task to a non-existent user returns 404

## Scope
**In scope:** assigneeId FK, user-task query endpoint, assignee filter
**Out of scope:** Multiple assignees, task status workflows, notifications""",
    ),
    IssueDef(
        key="F",
        title="[Integration] Add input validation and error handling",
        wave=2,
        priority=3,
        blocked_by_keys=["C", "D"],
        description="""## Summary
Add input validation to all POST/PUT endpoints and a global error handler so the API returns helpful, consistent error responses.

## Current vs Expected Behavior
**Current:** No input validation - invalid data may cause unhandled errors or silent data corruption.
**Expected:** All endpoints validate required fields and return descriptive 400 errors; unhandled errors return generic 500 responses.

## Acceptance Criteria
- [ ] POST/PUT endpoints validate required fields and return 400 with descriptive error messages for invalid input
- [ ] Global error handler catches unhandled errors and returns 500 with generic message (no stack traces in response)
- [ ] All error responses use consistent format: `{ error: string, details?: string[] }`

## Scope
**In scope:** Request body validation, global error handler, consistent error format
**Out of scope:** Authentication/authorization, rate limiting, request logging""",
    ),
    IssueDef(
        key="G",
        title="[Polish] Add pagination and sorting to list endpoints",
        wave=3,
        priority=4,
        blocked_by_keys=["E"],
        description="""## Summary
Add pagination and sorting support to all list endpoints so the API can handle large datasets efficiently.

## Current vs Expected Behavior
**Current:** GET /tasks and GET /users return all records with no pagination or sorting.
**Expected:** List endpoints support page/limit pagination and sortBy/order parameters.

## Acceptance Criteria
- [ ] ?page=N&limit=N query parameters supported (defaults: page=1, limit=20)
- [ ] Response includes `{ data, pagination: { page, limit, total, totalPages } }`
- [ ] ?sortBy=createdAt&order=asc|desc supported on all list endpoints

## Scope
**In scope:** Pagination, sorting, response metadata
**Out of scope:** Cursor-based pagination, full-text search, caching""",
    ),
]
