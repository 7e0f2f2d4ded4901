"""
Per-plugin API for coursework. Mounted at /api/components/coursework/.
Assignments are returned with a priority tier computed against the app clock.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from planner.plugins.coursework import service
from planner.plugins.coursework.priority import Priority, classify_priority
from planner.plugins.coursework.recurrence import expand_all_templates, expand_template


class UserCreate(BaseModel):
    email: str
    name: str = "User"
    preferences: Optional[Dict[str, Any]] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    created_at: Optional[datetime] = None


class SemesterCreate(BaseModel):
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class SemesterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = False


class CourseCreate(BaseModel):
    course_name: str
    course_code: str = ""


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    semester_id: str
    course_code: str = ""
    course_name: str


class AssignmentCreate(BaseModel):
    name: str
    due_at: datetime
    type: str = "Other"
    grade_weight: Optional[float] = None


class AssignmentUpdate(BaseModel):
    name: Optional[str] = None
    due_at: Optional[datetime] = None
    type: Optional[str] = None
    grade_weight: Optional[float] = None


class CompletionUpdate(BaseModel):
    completed: bool = True


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    name: str
    due_at: datetime
    type: str
    grade_weight: Optional[float] = None
    completed_at: Optional[datetime] = None
    is_recurring: bool = False
    recurring_template_id: Optional[str] = None
    created_at: Optional[datetime] = None
    priority: Optional[Priority] = None


class TemplateCreate(BaseModel):
    name_pattern: str
    day_of_week: str
    start_date: date
    end_date: date
    time: str = "23:59"
    pattern: str = "weekly"
    type: str = "Other"
    name: str = ""


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    name: str
    name_pattern: str
    pattern: str
    day_of_week: str
    time: str
    type: str
    start_date: date
    end_date: date


class ExpandResponse(BaseModel):
    generated: Dict[str, int] = Field(default_factory=dict)


def get_router(planner_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/coursework."""
    router = APIRouter(tags=["Coursework"])

    def with_priority(assignment, now: datetime) -> AssignmentResponse:
        response = AssignmentResponse.model_validate(assignment)
        response.priority = classify_priority(assignment.due_at, now)
        return response

    @router.post("/users", response_model=UserResponse, status_code=201)
    def create_user(body: UserCreate) -> UserResponse:
        return UserResponse.model_validate(service.create_user(body.email, body.name, body.preferences))

    @router.post("/users/{user_id}/semesters", response_model=SemesterResponse, status_code=201)
    def create_semester(user_id: str, body: SemesterCreate) -> SemesterResponse:
        semester = service.create_semester(user_id, body.name, body.start_date, body.end_date, now=planner_app.clock())
        return SemesterResponse.model_validate(semester)

    @router.post("/semesters/{semester_id}/courses", response_model=CourseResponse, status_code=201)
    def create_course(semester_id: str, body: CourseCreate) -> CourseResponse:
        course = service.create_course(semester_id, body.course_name, body.course_code, now=planner_app.clock())
        return CourseResponse.model_validate(course)

    @router.get("/users/{user_id}/assignments", response_model=List[AssignmentResponse])
    def list_assignments(user_id: str, include_completed: bool = False) -> List[AssignmentResponse]:
        """Active-semester assignments, soonest first."""
        semester = service.get_active_semester(user_id)
        if semester is None:
            return []
        now = planner_app.clock()
        return [
            with_priority(a, now)
            for a in service.get_all_assignments(semester.id, include_completed=include_completed)
        ]

    @router.post("/courses/{course_id}/assignments", response_model=AssignmentResponse, status_code=201)
    def create_assignment(course_id: str, body: AssignmentCreate) -> AssignmentResponse:
        now = planner_app.clock()
        assignment = service.create_assignment(
            course_id, body.name, body.due_at, type=body.type, grade_weight=body.grade_weight, now=now
        )
        return with_priority(assignment, now)

    @router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
    def update_assignment(assignment_id: str, body: AssignmentUpdate) -> AssignmentResponse:
        assignment = service.update_assignment(assignment_id, body.model_dump(exclude_none=True))
        return with_priority(assignment, planner_app.clock())

    @router.post("/assignments/{assignment_id}/complete", response_model=AssignmentResponse)
    def complete_assignment(assignment_id: str, body: CompletionUpdate) -> AssignmentResponse:
        now = planner_app.clock()
        return with_priority(service.mark_complete(assignment_id, body.completed, now=now), now)

    @router.delete("/assignments/{assignment_id}", status_code=204)
    def delete_assignment(assignment_id: str) -> None:
        service.delete_assignment(assignment_id)

    @router.get("/users/{user_id}/templates", response_model=List[TemplateResponse])
    def list_templates(user_id: str) -> List[TemplateResponse]:
        semester = service.get_active_semester(user_id)
        if semester is None:
            return []
        return [TemplateResponse.model_validate(t) for t in service.get_templates(semester.id)]

    @router.post("/courses/{course_id}/templates", response_model=TemplateResponse, status_code=201)
    def create_template(course_id: str, body: TemplateCreate) -> TemplateResponse:
        template = service.create_template(course_id, now=planner_app.clock(), **body.model_dump())
        return TemplateResponse.model_validate(template)

    @router.post("/templates/{template_id}/expand", response_model=List[AssignmentResponse])
    def expand_one(template_id: str) -> List[AssignmentResponse]:
        now = planner_app.clock()
        return [with_priority(a, now) for a in expand_template(service.get_template(template_id), now)]

    @router.post("/users/{user_id}/expand", response_model=ExpandResponse)
    def expand_user(user_id: str) -> ExpandResponse:
        return ExpandResponse(generated=expand_all_templates(user_id, planner_app.clock()))

    @router.delete("/templates/{template_id}", status_code=204)
    def delete_template(template_id: str) -> None:
        service.delete_template(template_id)

    return router
