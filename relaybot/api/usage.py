"""Search credential usage endpoint."""
from fastapi import APIRouter, Depends

from relaybot.config import settings
from relaybot.db.repository import create_store
from relaybot.logging_config import mask_secret
from relaybot.services.ledger import UsageLedger

router = APIRouter(tags=["usage"])


def get_usage_ledger() -> UsageLedger:
    return UsageLedger(settings.tavily_api_keys_list, create_store("usage"))


@router.get("/usage")
async def get_usage(ledger: UsageLedger = Depends(get_usage_ledger)) -> dict:
    """Use counts per configured credential, keys masked."""
    usage = await ledger.load()
    counts = [
        {"key": mask_secret(credential), "uses": usage[credential]}
        for credential in ledger.credentials
    ]
    return {"credentials": counts, "total": sum(item["uses"] for item in counts)}
