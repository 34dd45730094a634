import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, configure_logging
from rule_book import RuleBook
from salary_engine import breakdown_from_ctc, breakdown_from_net_salary, quick_breakdown
from schemas import CalculationRequest, CompensationRule, CTCBreakdown, QuickCalculationRequest

log = logging.getLogger(__name__)

router = APIRouter()


def create_app(settings: Optional[Settings] = None, rule_book: Optional[RuleBook] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    if rule_book is None:
        rule_book = RuleBook()
        if settings.salary_rules_file:
            rule_book.load_file(settings.salary_rules_file)

    app = FastAPI(title="CTC Calculator API")
    app.state.settings = settings
    app.state.rule_book = rule_book

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def get_rule_book(request: Request) -> RuleBook:
    return request.app.state.rule_book


def _resolve_rule(payload: CalculationRequest, rule_book: RuleBook) -> Optional[CompensationRule]:
    # Inline rule, then the designation's rule; None means the engine default
    if payload.rule is not None:
        return payload.rule
    rule = rule_book.get(payload.designation)
    if rule is None and payload.designation:
        log.info("No salary rule for %r, using default", payload.designation)
    return rule


def _finish(breakdown: CTCBreakdown, payload: CalculationRequest) -> CTCBreakdown:
    if payload.round_to is None:
        return breakdown
    return breakdown.rounded(payload.round_to)


# ---------- Routes ----------

@router.get("/")
def read_root():
    return {"message": "CTC Calculator API Running"}


@router.post("/api/ctc/breakdown", response_model=CTCBreakdown)
def ctc_breakdown(payload: CalculationRequest, rule_book: RuleBook = Depends(get_rule_book)):
    rule = _resolve_rule(payload, rule_book)
    return _finish(breakdown_from_ctc(payload.amount, rule), payload)


@router.post("/api/ctc/from-net-salary", response_model=CTCBreakdown)
def ctc_from_net_salary(payload: CalculationRequest, rule_book: RuleBook = Depends(get_rule_book)):
    rule = _resolve_rule(payload, rule_book)
    return _finish(breakdown_from_net_salary(payload.amount, rule), payload)


@router.post("/api/ctc/quick", response_model=CTCBreakdown)
def ctc_quick(payload: QuickCalculationRequest, rule_book: RuleBook = Depends(get_rule_book)):
    rule = _resolve_rule(payload, rule_book)
    return _finish(quick_breakdown(payload.amount, payload.mode, rule), payload)


@router.get("/api/salary-rules", response_model=List[CompensationRule])
def list_rules(rule_book: RuleBook = Depends(get_rule_book)):
    return rule_book.all()


@router.get("/api/salary-rules/{designation}", response_model=CompensationRule)
def get_rule(designation: str, rule_book: RuleBook = Depends(get_rule_book)):
    rule = rule_book.get(designation)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"No salary rule for '{designation}'")
    return rule


@router.put("/api/salary-rules", response_model=CompensationRule)
def save_rule(rule: CompensationRule, response: Response, rule_book: RuleBook = Depends(get_rule_book)):
    try:
        created = rule_book.save(rule)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return rule


@router.delete("/api/salary-rules/{designation}", status_code=204)
def delete_rule(designation: str, rule_book: RuleBook = Depends(get_rule_book)):
    if not rule_book.delete(designation):
        raise HTTPException(status_code=404, detail=f"No salary rule for '{designation}'")
    return Response(status_code=204)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)
