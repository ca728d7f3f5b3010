from fastapi import APIRouter, Depends, Header
from fastapi.responses import Response
from sqlalchemy.orm import Session

from qvote.db import get_db
from qvote.engine.events import load_event
from qvote.engine.export import SUMMARY_HEADER, raw_header, raw_rows, render_csv, summary_rows
from qvote.engine.results import aggregate, load_ballots
from qvote.models import ResultsSnapshot
from qvote.routers.events import require_admin

router = APIRouter(prefix="/events", tags=["results"])


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{event_id}/results", response_model=ResultsSnapshot)
def get_results(event_id: str, db: Session = Depends(get_db)) -> ResultsSnapshot:
    return aggregate(db, event_id)


@router.get("/{event_id}/results.csv")
def results_csv(event_id: str, db: Session = Depends(get_db)) -> Response:
    snapshot = aggregate(db, event_id)
    body = render_csv(SUMMARY_HEADER, summary_rows(snapshot))
    return _csv_response(body, f"results-{snapshot.event.id}.csv")


@router.get("/{event_id}/raw.csv")
def raw_csv(
    event_id: str,
    x_admin_token: str = Header(default=""),
    db: Session = Depends(get_db),
) -> Response:
    event = load_event(db, event_id)
    require_admin(event, x_admin_token)
    body = render_csv(raw_header(event), raw_rows(event, load_ballots(db, event.id)))
    return _csv_response(body, f"raw-{event.id}.csv")
