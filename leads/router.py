from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy import orm
from sqlalchemy.exc import IntegrityError
from config.database import get_db
from shared_utils.auth import get_current_user_id
from .schema import LeadCreate, LeadUpdate, LeadResponse
from . import crud
from typing import List, Optional
import logging

router = APIRouter(prefix="/api/leads", tags=["leads"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[LeadResponse])
def read_leads(
    consultant_id: Optional[int] = None,
    status: Optional[str] = None,
    db: orm.Session = Depends(get_db)
):
    try:
        return crud.get_leads(db, consultant_id=consultant_id, status=status)
    except Exception as e:
        logger.error(f"Error fetching leads: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch leads")


@router.get("/{lead_id}", response_model=LeadResponse)
def read_lead(lead_id: int, db: orm.Session = Depends(get_db)):
    lead = crud.get_lead(db, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


@router.post("", response_model=LeadResponse, status_code=201)
def create_lead(payload: LeadCreate, request: Request, db: orm.Session = Depends(get_db)):
    try:
        fields = payload.model_dump()
        if not fields.get("whatsapp_number"):
            fields["whatsapp_number"] = fields["phone"]
        lead = crud.create_lead(db, created_by=get_current_user_id(request), **fields)
        logger.info(f"✅ Lead {lead.id} created for {lead.phone}")
        return lead
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error creating lead: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create lead")


@router.put("/{lead_id}", response_model=LeadResponse)
def update_lead(lead_id: int, payload: LeadUpdate, db: orm.Session = Depends(get_db)):
    try:
        lead = crud.get_lead(db, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        return crud.update_lead(db, lead, payload.model_dump(exclude_unset=True))
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating lead {lead_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update lead")


@router.delete("/{lead_id}")
def delete_lead(lead_id: int, db: orm.Session = Depends(get_db)):
    try:
        lead = crud.get_lead(db, lead_id)
        if not lead:
            raise HTTPException(status_code=404, detail="Lead not found")
        crud.delete_lead(db, lead)
        return {"message": f"Lead {lead_id} deleted successfully"}
    except HTTPException:
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Lead is still referenced by other records")
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting lead {lead_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete lead")
