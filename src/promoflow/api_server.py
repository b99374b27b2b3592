"""PromoFlow API - FastAPI Application"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Dict, Optional, Union

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from promoflow.analytics import dashboard_summary
from promoflow.campaigns import get_active_campaign
from promoflow.config import LOG_FORMAT, Settings
from promoflow.customers import opt_in
from promoflow.errors import (
    CampaignNotFound,
    CustomerNotFound,
    InvalidCampaignDates,
    InventoryItemNotFound,
    PromoFlowError,
)
from promoflow.flows import build_flows
from promoflow.inventory import available_rewards, inventory_report
from promoflow.llm.manager import LLMClientManager
from promoflow.models import Campaign, CampaignStatus, Customer, InventoryItem
from promoflow.notifications import RedemptionNotifier
from promoflow.redemption import RedemptionService
from promoflow.repository import PromoRepository
from promoflow.store import DocumentStore, create_store

logger = logging.getLogger(__name__)


# Pydantic models
class OptInRequest(BaseModel):
    """Landing page sign-up"""
    name: str
    email: str
    phone: str = ""
    birthdate: str = ""


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birthdate: Optional[str] = None


class CampaignCreate(BaseModel):
    """Campaign creation model"""
    name: str = Field(min_length=3)
    status: CampaignStatus = CampaignStatus.SCHEDULED
    inventoryId: str
    startDate: date
    endDate: date
    flyerImage: Optional[str] = None


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3)
    status: Optional[CampaignStatus] = None
    inventoryId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    flyerImage: Optional[str] = None


class InventoryItemCreate(BaseModel):
    name: str
    stock: Union[int, str]
    category: str
    image: Optional[str] = None
    aiHint: str = ""


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    stock: Optional[Union[int, str]] = None
    category: Optional[str] = None
    image: Optional[str] = None
    aiHint: Optional[str] = None


class RedeemRequest(BaseModel):
    """Scanned QR code payload"""
    customerId: str


class FlowRequest(BaseModel):
    input: Dict[str, Any]


class SocialRewardRequest(BaseModel):
    customerId: str
    platform: str


def _campaign_out(campaign: Campaign) -> dict:
    return {"id": campaign.id, **campaign.to_document()}


def _customer_out(customer: Customer) -> dict:
    return {"id": customer.id, **customer.to_document()}


def _item_out(item: InventoryItem) -> dict:
    return {"id": item.id, **item.to_document()}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    llm_manager: Optional[LLMClientManager] = None,
    notifier: Optional[RedemptionNotifier] = None,
    today: Callable[[], date] = date.today,
) -> FastAPI:
    """Build the API with explicitly constructed collaborators."""
    settings = settings or Settings.from_env()
    store = store or create_store(settings)
    repository = PromoRepository(store)
    llm_manager = llm_manager or LLMClientManager(settings)
    notifier = notifier or RedemptionNotifier(settings.sendgrid_api_key, settings.notification_from_email)
    redemption_service = RedemptionService(repository, settings.redemption_policy, today)
    flows = build_flows(llm_manager, repository, settings.ai_provider)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info(
            f"PromoFlow API started (store={settings.store_backend}, "
            f"policy={settings.redemption_policy}, providers={llm_manager.list_providers()})"
        )
        yield
        store.close()
        logger.info("PromoFlow API stopped")

    app = FastAPI(
        title="PromoFlow API",
        description="Promotional campaigns, customer opt-ins, inventory and reward redemption",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.repository = repository

    @app.exception_handler(PromoFlowError)
    async def promoflow_error_handler(request: Request, exc: PromoFlowError):
        logger.warning(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": "ValidationError", "message": str(exc)})

    # Health check
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        store_health = getattr(store, "health", None)
        return {
            "status": "healthy",
            "store": settings.store_backend,
            "database": "healthy" if store_health is None or store_health() else "unavailable",
            "providers": llm_manager.list_providers(),
        }

    # Customers

    @app.post("/api/opt-in")
    async def customer_opt_in(request: OptInRequest):
        """Register a customer, or return the existing one for this email"""
        result = opt_in(repository, request.name, request.email, request.phone, request.birthdate)
        return {
            "customer": _customer_out(result.customer),
            "created": result.created,
            "qrCodeUrl": result.qr_code_url,
        }

    @app.get("/api/customers")
    async def list_customers():
        return [_customer_out(c) for c in repository.get_customers()]

    @app.get("/api/customers/{customer_id}")
    async def get_customer(customer_id: str):
        customer = repository.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFound()
        return _customer_out(customer)

    @app.patch("/api/customers/{customer_id}")
    async def update_customer(customer_id: str, request: CustomerUpdate):
        repository.update_customer(customer_id, request.model_dump(exclude_unset=True))
        return _customer_out(repository.get_customer(customer_id))

    @app.get("/api/customers/{customer_id}/redemptions")
    async def list_customer_redemptions(customer_id: str):
        if repository.get_customer(customer_id) is None:
            raise CustomerNotFound()
        return [
            {"id": r.id, **r.to_document()}
            for r in repository.get_redemptions(customer_id)
        ]

    # Campaigns

    @app.get("/api/campaigns")
    async def list_campaigns():
        return [_campaign_out(c) for c in repository.get_campaigns()]

    @app.get("/api/campaigns/active")
    async def active_campaign():
        campaign = get_active_campaign(store, today())
        return {"campaign": _campaign_out(campaign) if campaign else None}

    @app.get("/api/campaigns/{campaign_id}")
    async def get_campaign(campaign_id: str):
        campaign = repository.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFound()
        return _campaign_out(campaign)

    @app.post("/api/campaigns", status_code=201)
    async def create_campaign(request: CampaignCreate):
        """Create a campaign rewarding an inventory item"""
        if request.endDate < request.startDate:
            raise InvalidCampaignDates()
        item = repository.get_inventory_item(request.inventoryId)
        if item is None:
            raise InventoryItemNotFound("Invalid inventory item selected.")

        data = request.model_dump(mode="json", exclude_none=True)
        data.update({"rewardType": "Inventory Item", "rewardValue": item.name})
        campaign_id = repository.add_campaign(data)
        return _campaign_out(repository.get_campaign(campaign_id))

    @app.patch("/api/campaigns/{campaign_id}")
    async def update_campaign(campaign_id: str, request: CampaignUpdate):
        changes = request.model_dump(mode="json", exclude_unset=True)
        if changes.get("inventoryId"):
            item = repository.get_inventory_item(changes["inventoryId"])
            if item is None:
                raise InventoryItemNotFound("Invalid inventory item selected.")
            changes["rewardValue"] = item.name
        repository.update_campaign(campaign_id, changes)
        return _campaign_out(repository.get_campaign(campaign_id))

    @app.delete("/api/campaigns/{campaign_id}", status_code=204)
    async def delete_campaign(campaign_id: str):
        repository.delete_campaign(campaign_id)

    # Inventory

    @app.get("/api/inventory")
    async def list_inventory():
        return [_item_out(i) for i in repository.get_inventory()]

    @app.get("/api/inventory/availability")
    async def inventory_availability():
        """Stock, redemptions and status of every item"""
        return inventory_report(
            repository.get_inventory(),
            repository.get_campaigns(),
            settings.low_stock_threshold,
        )

    @app.get("/api/inventory/rewards")
    async def reward_candidates():
        """Reward candidates in the shape the birthday reward flow expects"""
        return available_rewards(repository.get_inventory(), repository.get_campaigns())

    @app.post("/api/inventory", status_code=201)
    async def create_inventory_item(request: InventoryItemCreate):
        item_id = repository.add_inventory_item(request.model_dump(exclude_none=True))
        return _item_out(repository.get_inventory_item(item_id))

    @app.patch("/api/inventory/{item_id}")
    async def update_inventory_item(item_id: str, request: InventoryItemUpdate):
        repository.update_inventory_item(item_id, request.model_dump(exclude_unset=True))
        return _item_out(repository.get_inventory_item(item_id))

    @app.delete("/api/inventory/{item_id}", status_code=204)
    async def delete_inventory_item(item_id: str):
        repository.delete_inventory_item(item_id)

    # Redemption

    @app.post("/api/redeem")
    async def redeem(request: RedeemRequest, background_tasks: BackgroundTasks):
        """
        Redeem the active campaign's reward for a scanned customer.

        The confirmation email is sent after the response and never
        affects the outcome of the redemption.
        """
        result = redemption_service.redeem(request.customerId)
        background_tasks.add_task(notifier.notify, result.customer, result.record)
        return {"status": "success", **result.to_dict()}

    # AI flows

    @app.post("/api/flows/{slug}")
    async def run_flow(slug: str, request: FlowRequest):
        """Run a named AI flow on the given input"""
        flow = flows.get(slug)
        if flow is None:
            raise HTTPException(status_code=404, detail=f"Unknown flow '{slug}'")
        output = await flow.run(request.input)
        return output.model_dump()

    @app.post("/api/social-rewards")
    async def social_reward(request: SocialRewardRequest):
        output = await flows["socialMediaRewardFlow"].run(request.model_dump())
        return output.model_dump()

    # Dashboard

    @app.get("/api/dashboard/analytics")
    async def analytics():
        return dashboard_summary(repository.get_campaigns(), repository.get_customers())

    return app


def main():
    import uvicorn

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
