"""FastAPI dependencies shared by the routers - collaborators and the planner"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .services.crm_sync import CrmSyncClient
from .services.job_planner import JobPlanner
from .services.payment_links import PaymentLinkClient


def get_payment_link_client() -> PaymentLinkClient:
    return PaymentLinkClient()


def get_crm_client() -> CrmSyncClient:
    return CrmSyncClient()


def get_job_planner(
    db: Session = Depends(get_db),
    payment_links: PaymentLinkClient = Depends(get_payment_link_client),
    crm: CrmSyncClient = Depends(get_crm_client),
) -> JobPlanner:
    """Dependency injection for JobPlanner"""
    return JobPlanner(db, payment_links=payment_links, crm=crm)
