from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from dataclasses import asdict
from typing import Any, Dict, List, Optional
import logging
import sys
from pathlib import Path

# Add src to path for internal imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from proposal_engine import __version__
from proposal_engine.engine import ProposalEditError, ProposalTree, ServiceLine, apply_operations, compute_service, recalculate
from proposal_engine.engine.catalog import get_catalog
from proposal_engine.engine.pricing_options import generate_options, staffing_alternatives
from proposal_engine.tracking import ChangeRecord, ProposalShapeError, describe, diff

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Proposal Engine API",
    description="Pricing, editing and change tracking for wellness event proposals",
    version=__version__
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ProposalRequest(BaseModel):
    proposal: Dict[str, Any]


class EditRequest(BaseModel):
    proposal: Dict[str, Any]
    operations: List[Dict[str, Any]]


class DiffRequest(BaseModel):
    # Validated by the tracker so shape errors carry its message
    before: Any
    after: Any


class ServiceRequest(BaseModel):
    service: Dict[str, Any]
    target_appointments: Optional[int] = None


class DescribeRequest(BaseModel):
    changes: List[Dict[str, Any]]


def _line(service: Dict[str, Any]) -> ServiceLine:
    return ServiceLine.from_dict(get_catalog().apply_defaults(service))


def _server_error(e: Exception) -> HTTPException:
    logger.exception("Request failed")
    return HTTPException(status_code=500, detail=str(e))


@app.get("/")
async def root():
    return {"status": "online", "message": "Proposal Engine API Active", "version": __version__}


@app.post("/proposals/recalculate")
async def recalculate_proposal(req: ProposalRequest):
    try:
        tree = recalculate(ProposalTree.from_dict(req.proposal))
        return jsonable_encoder(tree.to_dict())
    except Exception as e:
        raise _server_error(e)


@app.post("/proposals/edit")
async def edit_proposal(req: EditRequest):
    try:
        result = apply_operations(req.proposal, req.operations)
    except ProposalEditError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise _server_error(e)
    return jsonable_encoder({
        "proposal": result.tree.to_dict(),
        "changesSummary": result.changes_summary,
    })


@app.post("/proposals/diff")
async def diff_proposals(req: DiffRequest):
    try:
        changes = diff(req.before, req.after)
    except ProposalShapeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise _server_error(e)
    return jsonable_encoder({
        "changes": [
            {**change.to_dict(), "display": describe(change).to_dict()}
            for change in changes
        ]
    })


@app.post("/services/compute")
async def compute(req: ServiceRequest):
    try:
        result = compute_service(_line(req.service))
        return jsonable_encoder({**result.to_dict(), "warnings": result.warnings})
    except Exception as e:
        raise _server_error(e)


@app.post("/services/options")
async def service_options(req: ServiceRequest):
    try:
        line = _line(req.service)
        response = {"pricingOptions": [option.to_dict() for option in generate_options(line)]}
        if req.target_appointments is not None:
            response["staffingAlternatives"] = [
                asdict(alternative)
                for alternative in staffing_alternatives(line, req.target_appointments)
            ]
        return jsonable_encoder(response)
    except Exception as e:
        raise _server_error(e)


@app.post("/changes/describe")
async def describe_changes(req: DescribeRequest):
    try:
        records = [ChangeRecord.from_dict(change) for change in req.changes]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return jsonable_encoder({"changes": [describe(record).to_dict() for record in records]})
