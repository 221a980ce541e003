"""
FastAPI dependencies for the service layer. Tests swap the store, scheduler
and checkout dispatch through app.dependency_overrides.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from animeleak.db.session import get_db
from animeleak.services.payments.checkout import CheckoutService
from animeleak.services.transformations.scheduler import CeleryGenerationScheduler, GenerationScheduler
from animeleak.services.transformations.service import TransformationService
from animeleak.storage.base import AssetStore
from animeleak.storage.local import get_asset_store
from animeleak.visibility.service import VisibilityService


def get_store() -> AssetStore:
    return get_asset_store()


def get_scheduler() -> GenerationScheduler:
    return CeleryGenerationScheduler()


def get_transformation_service(
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_store),
    scheduler: GenerationScheduler = Depends(get_scheduler),
) -> TransformationService:
    return TransformationService(db, store=store, scheduler=scheduler)


def get_visibility_service(
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_store),
) -> VisibilityService:
    return VisibilityService(db, store=store)


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    return CheckoutService(db)
