"""
ryoshu.ui.api
~~~~~~~~~~~~~
FastAPI backend for the ryoshu web UI.

Issuers and receipt history live in ~/.ryoshu/<project>/ryoshu.db (or
``RYOSHU_DB_PATH``) via SQLiteStorage; every request opens its own
``ReceiptStore``. Mutating routes report ``saved: false`` when the write failed.

Endpoints
---------
GET    /health                      — Liveness + storage status
GET    /config                      — Billing defaults
GET    /issuers                     — List issuers
POST   /issuers                     — Register an issuer
PUT    /issuers/{id}                — Edit an issuer in place
DELETE /issuers/{id}                — Remove an issuer
POST   /issuers/restore-defaults    — Re-add the built-in issuer
POST   /billing/preview             — Live figures for a form
POST   /receipts                    — Issue a receipt
GET    /receipts                    — History, most recent first
DELETE /receipts                    — Clear history
GET    /receipts/{index}            — One history entry
DELETE /receipts/{index}            — Remove one history entry
GET    /receipts/{index}/html       — Printable HTML page
GET    /receipts/{index}/pdf        — PDF download
GET    /postal/{code}               — Postal-code → address candidates
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel

from ryoshu.config import Config
from ryoshu.exceptions import (
    IssuerNotFoundError,
    IssuerNotSelectedError,
    RenderError,
    StorageError,
)
from ryoshu.models import Issuer, ReceiptRecord
from ryoshu.postal import PostalCodeClient, normalize_postal_code
from ryoshu.render import HtmlFormatter, PdfFormatter, build_document
from ryoshu.service import ReceiptForm, ReceiptService
from ryoshu.storage.project import resolve_project
from ryoshu.storage.sqlite import SQLiteStorage
from ryoshu.store import ReceiptStore

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_cfg = Config()

_UNSAFE_FILENAME = re.compile(r"[^\w.-]+", re.ASCII)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ryoshu API",
    description=(
        "REST API for the ryoshu library — receipt issuing with consumption "
        "tax and stamp-duty figures, issuer profiles and receipt history."
    ),
    version="0.1.0",
    license_info={"name": "MIT"},
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class IssuerIn(BaseModel):
    name:           str
    postal_code:    str = ""
    address:        str = ""
    phone:          str = ""
    invoice_number: str = ""
    hanko_image:    str = ""

    def to_issuer(self) -> Issuer:
        return Issuer(**self.model_dump())


class ReceiptIn(BaseModel):
    issuer_id:             Optional[Union[int, str]] = None
    customer_name:         str = ""
    customer_title:        str = ""
    amount:                Optional[Union[int, str]] = None
    shipping:              Optional[Union[int, str]] = None
    shipping_enabled:      bool = False
    description:           str = ""
    date:                  Optional[str] = None
    receipt_number:        str = ""
    is_electronic_receipt: Optional[bool] = None
    tax_rate:              Optional[str] = None

    def to_form(self) -> ReceiptForm:
        return ReceiptForm(**self.model_dump())


# ---------------------------------------------------------------------------
# Dependencies / helpers
# ---------------------------------------------------------------------------

def db_path() -> Path:
    """
    Database for the current request.

    Read from the environment each time: ``ryoshu --ui --project`` / ``--db``
    export ``RYOSHU_PROJECT`` / ``RYOSHU_DB_PATH`` before the app starts.
    """
    settings = Config()
    return settings.db_path or resolve_project(settings.project).db_path


def get_store() -> Iterator[ReceiptStore]:
    """Open a store for the duration of one request."""
    path = db_path()
    try:
        storage = SQLiteStorage(db_path=path)
    except StorageError as exc:
        logger.error("Storage unavailable: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail=f"Storage is unavailable: {exc.message}")
    with storage:
        yield ReceiptStore(storage, hanko_image=_cfg.default_hanko_image)


def _record_at(store: ReceiptStore, index: int) -> ReceiptRecord:
    history = store.history
    if not 0 <= index < len(history):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="Receipt not found.")
    return history[index]


def _record_to_response(record: ReceiptRecord) -> dict:
    d = record.to_dict()
    d["figures"] = record.figures.to_dict()
    return d


# ---------------------------------------------------------------------------
# Meta routes
# ---------------------------------------------------------------------------

@app.get("/health", tags=["meta"])
def health():
    path = db_path()
    return {
        "status":    "ok",
        "db_path":   str(path),
        "db_exists": path.exists(),
    }


@app.get("/config", tags=["meta"])
def get_config():
    """Return the defaults a new receipt starts from."""
    d = _cfg.get_billing_defaults()
    return {
        "tax_rate":           str(d.tax_rate),
        "tax_mode":           d.tax_mode,
        "electronic_receipt": d.electronic_receipt,
        "description":        d.description,
        "customer_title":     d.customer_title,
        "project":            _cfg.project,
    }


# ---------------------------------------------------------------------------
# Issuer routes
# ---------------------------------------------------------------------------

@app.get("/issuers", tags=["issuers"])
def list_issuers(store: ReceiptStore = Depends(get_store)):
    return {"issuers": [i.to_dict() for i in store.issuers]}


@app.post("/issuers", status_code=status.HTTP_201_CREATED, tags=["issuers"])
def create_issuer(body: IssuerIn, store: ReceiptStore = Depends(get_store)):
    issuer = store.add_issuer(body.to_issuer())
    return {**issuer.to_dict(), "saved": store.last_save_ok}


@app.put("/issuers/{issuer_id}", tags=["issuers"])
def update_issuer(issuer_id: int, body: IssuerIn, store: ReceiptStore = Depends(get_store)):
    """Replace an issuer's fields; its id and list position are kept."""
    try:
        issuer = store.update_issuer(issuer_id, body.to_issuer())
    except IssuerNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="Issuer not found.")
    return {**issuer.to_dict(), "saved": store.last_save_ok}


@app.delete("/issuers/{issuer_id}", tags=["issuers"])
def delete_issuer(issuer_id: int, store: ReceiptStore = Depends(get_store)):
    if not store.remove_issuer(issuer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="Issuer not found.")
    return {"removed": issuer_id, "saved": store.last_save_ok}


@app.post("/issuers/restore-defaults", tags=["issuers"])
def restore_defaults(store: ReceiptStore = Depends(get_store)):
    added = store.restore_default_issuers()
    return {"added": added, "saved": store.last_save_ok}


# ---------------------------------------------------------------------------
# Billing / receipt routes
# ---------------------------------------------------------------------------

@app.post("/billing/preview", tags=["receipts"])
def preview(body: ReceiptIn, store: ReceiptStore = Depends(get_store)):
    return ReceiptService(store, _cfg).preview(body.to_form()).to_dict()


@app.post("/receipts", status_code=status.HTTP_201_CREATED, tags=["receipts"])
def issue_receipt(body: ReceiptIn, store: ReceiptStore = Depends(get_store)):
    """
    Issue a receipt and prepend it to history.

    ``saved: false`` means the receipt was issued but the history could not
    be written to disk.
    """
    try:
        record = ReceiptService(store, _cfg).issue(body.to_form())
    except IssuerNotSelectedError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    response = _record_to_response(record)
    response["saved"] = store.last_save_ok
    return response


@app.get("/receipts", tags=["receipts"])
def list_receipts(store: ReceiptStore = Depends(get_store)):
    history = store.history
    return {
        "receipts": [_record_to_response(r) for r in history],
        "total":    len(history),
    }


@app.delete("/receipts", tags=["receipts"])
def clear_receipts(store: ReceiptStore = Depends(get_store)):
    removed = store.clear_history()
    return {"removed": removed, "saved": store.last_save_ok}


@app.get("/receipts/{index}", tags=["receipts"])
def get_receipt(index: int, store: ReceiptStore = Depends(get_store)):
    return _record_to_response(_record_at(store, index))


@app.delete("/receipts/{index}", tags=["receipts"])
def delete_receipt(index: int, store: ReceiptStore = Depends(get_store)):
    try:
        removed = store.remove_history_record(index)
    except IndexError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                            detail="Receipt not found.")
    return {"removed": removed.receipt_number, "saved": store.last_save_ok}


@app.get("/receipts/{index}/html", response_class=HTMLResponse, tags=["receipts"])
def get_receipt_html(index: int, store: ReceiptStore = Depends(get_store)):
    record = _record_at(store, index)
    return HTMLResponse(HtmlFormatter(assets_dir=_cfg.assets_dir).format(build_document(record)))


@app.get("/receipts/{index}/pdf", tags=["receipts"])
def get_receipt_pdf(index: int, store: ReceiptStore = Depends(get_store)):
    record = _record_at(store, index)
    try:
        content = PdfFormatter(assets_dir=_cfg.assets_dir).render(build_document(record))
    except RenderError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    filename = _UNSAFE_FILENAME.sub("_", record.receipt_number).strip("_") or "receipt"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}.pdf"'},
    )


# ---------------------------------------------------------------------------
# Postal-code lookup
# ---------------------------------------------------------------------------

@app.get("/postal/{code}", tags=["postal"])
def lookup_postal_code(code: str):
    """
    Address candidates for a 7-digit postal code.

    Lookup failures are reported in the body (``success: false``) so the form
    can show a hint without blocking.
    """
    if normalize_postal_code(code) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Postal code must have 7 digits.")
    return PostalCodeClient(_cfg).lookup(code).to_dict()
