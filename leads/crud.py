from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from .models import Lead


def get_leads(db: Session, consultant_id: Optional[int] = None, status: Optional[str] = None) -> List[Lead]:
    query = db.query(Lead)
    if consultant_id is not None:
        query = query.filter(Lead.consultant_id == consultant_id)
    if status:
        query = query.filter(Lead.status == status)
    return query.order_by(Lead.id.asc()).all()

def get_lead(db: Session, lead_id: int) -> Optional[Lead]:
    return db.query(Lead).filter(Lead.id == lead_id).first()

# A lead matches a phone number on either its phone or its WhatsApp number
def find_lead_by_phone(db: Session, phone_number: str) -> Optional[Lead]:
    return (db.query(Lead)
            .filter(or_(Lead.phone == phone_number, Lead.whatsapp_number == phone_number))
            .order_by(Lead.id.asc())
            .first())

def create_lead(db: Session, **fields) -> Lead:
    lead = Lead(**fields)
    db.add(lead)
    db.commit()
    db.refresh(lead)
    return lead

def update_lead(db: Session, lead: Lead, changes: Dict[str, Any]) -> Lead:
    for key, value in changes.items():
        setattr(lead, key, value)
    db.commit()
    db.refresh(lead)
    return lead

def delete_lead(db: Session, lead: Lead) -> None:
    db.delete(lead)
    db.commit()
