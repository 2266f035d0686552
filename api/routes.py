"""FastAPI routes for interviews, chat sessions and evaluations."""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.deps import Services, get_services
from api.schemas import (
    ChatMessageResp,
    ChatSessionResp,
    CreateInterviewReq,
    EvaluationResp,
    HealthResp,
    InterviewResp,
    ListInterviewsResp,
    SendMessageReq,
    SendMessageResp,
    StartChatReq,
    SubmitEvaluationReq,
)
from interview_chat import ListInterviewsOptions


router = APIRouter()


def _int_param(raw: Optional[str], default: int) -> int:
    """Non-negative int from a query string, else ``default``."""
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value >= 0 else default


def _date_param(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


@router.get("/health", response_model=HealthResp)
def health(services: Services = Depends(get_services)) -> HealthResp:
    return HealthResp(store_backend=services.store.backend, ai_provider=services.ai_provider)


@router.post("/interviews", response_model=InterviewResp, status_code=201)
def create_interview(req: CreateInterviewReq, services: Services = Depends(get_services)) -> InterviewResp:
    interview = services.interviews.create_interview(
        req.candidate_name,
        req.questions,
        language=req.interview_language,
        interview_type=req.interview_type,
        job_title=req.job_title,
        job_description=req.job_description,
    )
    return InterviewResp.of(interview)


@router.get("/interviews", response_model=ListInterviewsResp)
def list_interviews(
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    candidate_name: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_order: Optional[str] = Query(None),
    services: Services = Depends(get_services),
) -> ListInterviewsResp:
    opts = ListInterviewsOptions(
        limit=_int_param(limit, 10),
        offset=_int_param(offset, 0),
        page=_int_param(page, 0),
        candidate_name=candidate_name or None,
        status=status or None,
        date_from=_date_param(date_from),
        date_to=_date_param(date_to),
        sort_by=sort_by if sort_by in ("name", "created_at") else "created_at",
        sort_order=sort_order if sort_order in ("asc", "desc") else "desc",
    )
    result = services.interviews.list_interviews(opts)
    return ListInterviewsResp(interviews=[InterviewResp.of(item) for item in result.interviews], total=result.total)


@router.get("/interviews/{interview_id}", response_model=InterviewResp)
def get_interview(interview_id: str, services: Services = Depends(get_services)) -> InterviewResp:
    return InterviewResp.of(services.interviews.get_interview(interview_id))


@router.post("/interviews/{interview_id}/chat/start", response_model=ChatSessionResp, status_code=201)
def start_chat(
    interview_id: str,
    req: Optional[StartChatReq] = Body(None),
    services: Services = Depends(get_services),
) -> ChatSessionResp:
    language = req.interview_language if req is not None else None
    view = services.orchestrator.start_session(interview_id, language)
    return ChatSessionResp.of(view.session, view.messages)


@router.post("/chat/{session_id}/message", response_model=SendMessageResp)
def send_message(session_id: str, req: SendMessageReq, services: Services = Depends(get_services)) -> SendMessageResp:
    result = services.orchestrator.send_message(session_id, req.message)
    return SendMessageResp(
        message=ChatMessageResp.of(result.user_message),
        ai_response=ChatMessageResp.of(result.ai_message),
        session_status=result.session_status,
    )


@router.get("/chat/{session_id}", response_model=ChatSessionResp)
def get_chat(session_id: str, services: Services = Depends(get_services)) -> ChatSessionResp:
    view = services.orchestrator.get_session(session_id)
    return ChatSessionResp.of(view.session, view.messages)


@router.post("/chat/{session_id}/end", response_model=EvaluationResp)
def end_chat(session_id: str, services: Services = Depends(get_services)) -> EvaluationResp:
    return EvaluationResp.of(services.orchestrator.end_session(session_id))


@router.post("/chat/{session_id}/abandon", response_model=ChatSessionResp)
def abandon_chat(session_id: str, services: Services = Depends(get_services)) -> ChatSessionResp:
    view = services.orchestrator.abandon_session(session_id)
    return ChatSessionResp.of(view.session, view.messages)


@router.post("/evaluation", response_model=EvaluationResp)
def submit_evaluation(req: SubmitEvaluationReq, services: Services = Depends(get_services)) -> EvaluationResp:
    return EvaluationResp.of(services.interviews.submit_evaluation(req.interview_id, req.answers))


@router.get("/evaluation/{evaluation_id}", response_model=EvaluationResp)
def get_evaluation(evaluation_id: str, services: Services = Depends(get_services)) -> EvaluationResp:
    return EvaluationResp.of(services.interviews.get_evaluation(evaluation_id))
