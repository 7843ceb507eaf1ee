from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from balog import service
from balog.analytics.render import ReportFormat
from balog.db.database import get_db
from balog.db.models import UNKNOWN_LOCATION
from balog.errors import CollaboratorError, StoreError, RenderError

router = APIRouter()


class BanAction(BaseModel):
    protocol: str = Field(..., min_length=1)
    ip: str = Field(..., min_length=1)


def get_collaborators(request: Request) -> service.Collaborators:
    return service.collaborators(request.app.state.config)


@router.get("/")
def root():
    return {"status": "ok", "app": "balog"}


@router.post("/ban-actions")
def save_ban_action(
    body: BanAction,
    db: Session = Depends(get_db),
    clients: service.Collaborators = Depends(get_collaborators),
):
    try:
        ban_action_id = service.save(db, body.protocol, body.ip, clients.locate)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"id": ban_action_id}


@router.delete("/ban-actions")
def purge_ban_actions(db: Session = Depends(get_db)):
    try:
        return {"purged": service.purge_logs(db)}
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/report")
def get_report(
    format: ReportFormat = ReportFormat.PLAIN,
    offset_days: int = 0,
    db: Session = Depends(get_db),
    clients: service.Collaborators = Depends(get_collaborators),
):
    try:
        body = service.report(
            db,
            format,
            offset_days,
            summarize=clients.summarize,
            publish=clients.publish,
        )
    except (StoreError, RenderError) as e:
        raise HTTPException(status_code=500, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if format is ReportFormat.JSON:
        return Response(content=body, media_type="application/json")
    return PlainTextResponse(body)


@router.get("/maintenance/unknown-ips")
def list_unknown_ips(db: Session = Depends(get_db)):
    try:
        return {"ips": service.list_unknown_ips(db)}
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/maintenance/resolve-unknown-ips")
def resolve_unknown_ips(
    db: Session = Depends(get_db),
    clients: service.Collaborators = Depends(get_collaborators),
):
    try:
        tried = service.resolve_unknown_ips(db, clients.locate)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))

    unresolved = [ip for ip, country in tried if country == UNKNOWN_LOCATION]
    return {
        "resolved": len(tried) - len(unresolved),
        "unresolved": len(unresolved),
        "ips": [{"ip": ip, "country_name": country} for ip, country in tried],
    }
