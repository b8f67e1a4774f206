import logging
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from defect_tracker.codec import encode
from defect_tracker.config import invariant_violation_status
from defect_tracker.entities import Defect, ReferenceRole, ResourceKind, User
from defect_tracker.errors import DefectTrackerError, ErrorCategory, InvariantViolation
from defect_tracker.schemas import (
    ApiError,
    DefectCollection,
    DefectResource,
    ErrorResponse,
    RootResource,
    UserCollection,
    UserResource,
)
from defect_tracker.store import STORE


logger = logging.getLogger("defect_tracker.api")

app = FastAPI(title="Defect Tracker")

# Read once at import; an unsupported value fails startup.
INVARIANT_STATUS = invariant_violation_status()

_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.CLIENT_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.INTERNAL_FAULT: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _status_for(exc: DefectTrackerError) -> int:
    if isinstance(exc, InvariantViolation):
        return INVARIANT_STATUS
    return _STATUS_BY_CATEGORY[exc.category]


@app.exception_handler(DefectTrackerError)
async def domain_error_handler(_: Request, exc: DefectTrackerError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.warning("Internal consistency fault %s: %s", exc.code, exc.message)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ApiError(**exc.to_dict())).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    locations = [".".join(str(part) for part in error.get("loc", ())) for error in errors]
    if any(loc == "body" or loc.startswith("body.") for loc in locations):
        code, message = "MALFORMED_PAYLOAD", "Request body must be a JSON object"
    else:
        code, message = "INVALID_REQUEST", "Invalid request parameters: " + ", ".join(locations)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error=ApiError(
                code=code,
                message=message,
                details={
                    "errors": [
                        {"loc": loc, "msg": str(error.get("msg", ""))}
                        for loc, error in zip(locations, errors)
                    ]
                },
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _resource_url(request: Request, kind: ResourceKind, entity_id: str) -> str:
    return f"{_base_url(request)}/{kind.value}/{entity_id}"


def _user_resource(request: Request, user: User) -> UserResource:
    self_url = _resource_url(request, ResourceKind.USER, user.id)  # type: ignore[arg-type]
    return UserResource.model_validate(
        {
            **encode(user),
            "_links": {
                "self": {"href": self_url},
                "user": {"href": self_url},
                "created": {"href": f"{self_url}/created"},
                "assigned": {"href": f"{self_url}/assigned"},
            },
        }
    )


def _defect_resource(request: Request, defect: Defect) -> DefectResource:
    self_url = _resource_url(request, ResourceKind.DEFECT, defect.id)  # type: ignore[arg-type]
    created_by_url = _resource_url(request, ResourceKind.USER, defect.created_by)
    links = {
        "self": {"href": self_url},
        "defect": {"href": self_url},
        "createdBy": {"href": created_by_url},
    }
    body: dict[str, Any] = {**encode(defect), "createdByUrl": created_by_url}
    if defect.assigned_to is not None:
        assigned_to_url = _resource_url(request, ResourceKind.USER, defect.assigned_to)
        links["assignedTo"] = {"href": assigned_to_url}
        body["assignedToUrl"] = assigned_to_url
    return DefectResource.model_validate({**body, "_links": links})


def _collection_links(request: Request) -> dict[str, dict[str, str]]:
    return {"self": {"href": str(request.url)}}


def _user_collection(request: Request, users) -> UserCollection:
    return UserCollection.model_validate(
        {
            "_embedded": {ResourceKind.USER.value: [_user_resource(request, user) for user in users]},
            "_links": _collection_links(request),
        }
    )


def _defect_collection(request: Request, defects) -> DefectCollection:
    return DefectCollection.model_validate(
        {
            "_embedded": {ResourceKind.DEFECT.value: [_defect_resource(request, defect) for defect in defects]},
            "_links": _collection_links(request),
        }
    )


@app.get("/", response_model=RootResource)
def root(request: Request) -> RootResource:
    base = _base_url(request)
    return RootResource.model_validate(
        {
            "_links": {
                "self": {"href": f"{base}/"},
                "user": {"href": f"{base}/user"},
                "defect": {"href": f"{base}/defect"},
            }
        }
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/admin/reset", status_code=status.HTTP_204_NO_CONTENT)
def reset_store() -> Response:
    STORE.reset_all()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Users


@app.get("/user", response_model=UserCollection, response_model_exclude_none=True)
@app.get("/user/", response_model=UserCollection, response_model_exclude_none=True, include_in_schema=False)
def list_users(request: Request) -> UserCollection:
    return _user_collection(request, STORE.list_all(ResourceKind.USER))


@app.post(
    "/user",
    response_model=UserResource,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@app.post(
    "/user/",
    response_model=UserResource,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
def create_user(request: Request, response: Response, payload: dict[str, Any] = Body(...)) -> UserResource:
    user = STORE.create(ResourceKind.USER, payload)
    resource = _user_resource(request, user)  # type: ignore[arg-type]
    response.headers["Location"] = resource.links["self"].href
    return resource


@app.get("/user/search/findByName", response_model=UserCollection, response_model_exclude_none=True)
def find_users_by_name(request: Request, name: str) -> UserCollection:
    return _user_collection(request, STORE.find_by_field(ResourceKind.USER, "name", name))


@app.get("/user/{user_id}", response_model=UserResource, response_model_exclude_none=True)
def get_user(request: Request, user_id: str) -> UserResource:
    return _user_resource(request, STORE.read(ResourceKind.USER, user_id))  # type: ignore[arg-type]


@app.put("/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
@app.patch("/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_user(user_id: str, payload: dict[str, Any] = Body(...)) -> Response:
    STORE.update(ResourceKind.USER, user_id, payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete("/user/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str) -> Response:
    STORE.delete(ResourceKind.USER, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/user/{user_id}/created", response_model=DefectCollection, response_model_exclude_none=True)
def list_defects_created_by(request: Request, user_id: str) -> DefectCollection:
    STORE.read(ResourceKind.USER, user_id)
    return _defect_collection(request, STORE.list_referencing(user_id, ReferenceRole.CREATED_BY))


@app.get("/user/{user_id}/assigned", response_model=DefectCollection, response_model_exclude_none=True)
def list_defects_assigned_to(request: Request, user_id: str) -> DefectCollection:
    STORE.read(ResourceKind.USER, user_id)
    return _defect_collection(request, STORE.list_referencing(user_id, ReferenceRole.ASSIGNED_TO))


# Defects


@app.get("/defect", response_model=DefectCollection, response_model_exclude_none=True)
@app.get("/defect/", response_model=DefectCollection, response_model_exclude_none=True, include_in_schema=False)
def list_defects(request: Request) -> DefectCollection:
    return _defect_collection(request, STORE.list_all(ResourceKind.DEFECT))


@app.post(
    "/defect",
    response_model=DefectResource,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@app.post(
    "/defect/",
    response_model=DefectResource,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
def create_defect(request: Request, response: Response, payload: dict[str, Any] = Body(...)) -> DefectResource:
    defect = STORE.create(ResourceKind.DEFECT, payload)
    resource = _defect_resource(request, defect)  # type: ignore[arg-type]
    response.headers["Location"] = resource.links["self"].href
    return resource


@app.get("/defect/search/findByStatus", response_model=DefectCollection, response_model_exclude_none=True)
def find_defects_by_status(request: Request, value: str = Query(alias="status")) -> DefectCollection:
    return _defect_collection(request, STORE.find_by_field(ResourceKind.DEFECT, "status", value))


@app.get("/defect/search/findBySeverity", response_model=DefectCollection, response_model_exclude_none=True)
def find_defects_by_severity(request: Request, value: str = Query(alias="severity")) -> DefectCollection:
    return _defect_collection(request, STORE.find_by_field(ResourceKind.DEFECT, "severity", value))


@app.get("/defect/{defect_id}", response_model=DefectResource, response_model_exclude_none=True)
def get_defect(request: Request, defect_id: str) -> DefectResource:
    return _defect_resource(request, STORE.read(ResourceKind.DEFECT, defect_id))  # type: ignore[arg-type]


@app.put("/defect/{defect_id}", status_code=status.HTTP_204_NO_CONTENT)
@app.patch("/defect/{defect_id}", status_code=status.HTTP_204_NO_CONTENT)
def update_defect(defect_id: str, payload: dict[str, Any] = Body(...)) -> Response:
    STORE.update(ResourceKind.DEFECT, defect_id, payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete("/defect/{defect_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_defect(defect_id: str) -> Response:
    STORE.delete(ResourceKind.DEFECT, defect_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
